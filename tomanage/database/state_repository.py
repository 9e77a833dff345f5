"""Repositories for per-user key/value state, analytics and TickTick tokens.

Security notes:
- Access tokens are secrets: stored encrypted-at-rest and never logged.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from tomanage.auth.token_crypto import decrypt_secret, encrypt_secret
from tomanage.database.models import AnalyticsEntryDB, TickTickTokenDB, UserStateDB, db_now
from tomanage.models.preferences import AnalyticsEntry

logger = logging.getLogger(__name__)


class UserStateRepository:
    """JSON documents per (user_id, key). Last write wins."""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, user_id: str, key: str) -> Optional[UserStateDB]:
        return self.db.query(UserStateDB).filter(
            UserStateDB.user_id == user_id,
            UserStateDB.key == key,
        ).first()

    def get(self, user_id: str, key: str) -> Optional[Any]:
        row = self._get_row(user_id, key)
        return row.value if row else None

    def get_with_timestamp(self, user_id: str, key: str):
        """Return (value, updated_at) or (None, None)."""
        row = self._get_row(user_id, key)
        if not row:
            return None, None
        return row.value, row.updated_at

    def get_by_prefix(self, user_id: str, prefix: str) -> Dict[str, Any]:
        """All documents whose key starts with prefix, keyed by the remainder."""
        rows = self.db.query(UserStateDB).filter(
            UserStateDB.user_id == user_id,
            UserStateDB.key.like(f"{prefix}%"),
        ).order_by(UserStateDB.key).all()
        return {row.key[len(prefix):]: row.value for row in rows}

    def set(self, user_id: str, key: str, value: Any) -> None:
        row = self._get_row(user_id, key)
        try:
            if row is None:
                self.db.add(UserStateDB(user_id=user_id, key=key, value=value, updated_at=db_now()))
            else:
                row.value = value
                row.updated_at = db_now()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to save state '{key}' for user {user_id}: {type(e).__name__}")
            raise

    def delete(self, user_id: str, key: str) -> bool:
        affected = self.db.query(UserStateDB).filter(
            UserStateDB.user_id == user_id,
            UserStateDB.key == key,
        ).delete(synchronize_session=False)
        self.db.commit()
        return bool(affected)


class AnalyticsRepository:
    """Append-only analytics entries."""

    def __init__(self, db: Session):
        self.db = db

    def add(self, user_id: str, entry: AnalyticsEntry) -> AnalyticsEntry:
        try:
            row = AnalyticsEntryDB.from_pydantic(entry, user_id=user_id)
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return row.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to save analytics for user {user_id}: {type(e).__name__}")
            raise

    def list(self, user_id: str, limit: Optional[int] = None) -> List[AnalyticsEntry]:
        """Entries in insertion order; with limit, only the most recent ones."""
        query = self.db.query(AnalyticsEntryDB).filter(AnalyticsEntryDB.user_id == user_id)
        if limit:
            rows = query.order_by(AnalyticsEntryDB.id.desc()).limit(limit).all()
            rows.reverse()
        else:
            rows = query.order_by(AnalyticsEntryDB.id).all()
        return [row.to_pydantic() for row in rows]


class TickTickTokenRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[TickTickTokenDB]:
        return self.db.query(TickTickTokenDB).filter(TickTickTokenDB.user_id == user_id).first()

    def get_access_token(self, user_id: str) -> Optional[str]:
        row = self.get(user_id)
        return decrypt_secret(row.access_token_encrypted) if row else None

    def upsert(self, user_id: str, access_token: str, scopes: Sequence[str] = ()) -> TickTickTokenDB:
        row = self.get(user_id)
        if row is None:
            row = TickTickTokenDB(
                user_id=user_id,
                access_token_encrypted=encrypt_secret(access_token),
                scopes=list(scopes),
                created_at=db_now(),
                updated_at=db_now(),
            )
            self.db.add(row)
        else:
            row.access_token_encrypted = encrypt_secret(access_token)
            row.scopes = list(scopes)
            row.updated_at = db_now()

        self.db.commit()
        self.db.refresh(row)
        return row

    def delete(self, user_id: str) -> int:
        """Delete the stored token for a user. Returns rows deleted (0 or 1)."""
        affected = self.db.query(TickTickTokenDB).filter(
            TickTickTokenDB.user_id == user_id,
        ).delete(synchronize_session=False)
        self.db.commit()
        return int(affected)
