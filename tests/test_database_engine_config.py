from sqlalchemy import inspect


def test_get_engine_kwargs_sqlite_has_check_same_thread():
    from tomanage.database import database as db

    kwargs = db.get_engine_kwargs("sqlite:///./tomanage.db")
    assert "connect_args" in kwargs
    assert kwargs["connect_args"]["check_same_thread"] is False
    # SQLite should not require pool sizing knobs.
    assert "pool_size" not in kwargs
    assert "max_overflow" not in kwargs
    assert kwargs["pool_pre_ping"] is True


def test_get_engine_kwargs_postgres_has_conservative_pooling(monkeypatch):
    from tomanage.database import database as db

    monkeypatch.setenv("DB_POOL_SIZE", "5")
    monkeypatch.setenv("DB_MAX_OVERFLOW", "5")
    monkeypatch.setenv("DB_POOL_TIMEOUT_SEC", "30")

    kwargs = db.get_engine_kwargs("postgresql+psycopg://u:p@localhost:5432/db")
    assert "connect_args" not in kwargs
    assert kwargs["pool_pre_ping"] is True
    assert kwargs["pool_size"] == 5
    assert kwargs["max_overflow"] == 5
    assert kwargs["pool_timeout"] == 30


def test_is_sqlite_url():
    from tomanage.database import database as db

    assert db._is_sqlite_url("sqlite:///./tomanage.db") is True
    assert db._is_sqlite_url("postgresql+psycopg://u:p@localhost/db") is False


def test_init_db_creates_tables_for_sqlite(tmp_path, monkeypatch):
    """SQLite databases get the schema via create_all, even with RUN_MIGRATIONS set."""
    from tomanage.database import database as db

    monkeypatch.setenv("RUN_MIGRATIONS", "true")
    url = f"sqlite:///{tmp_path / 'fresh.db'}"
    engine = db.build_engine(url)
    try:
        db.init_db(bind=engine, database_url=url)
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()

    assert {"tasks", "user_state", "analytics_entries", "ticktick_tokens"} <= tables
