"""Per-user storage: preferences, learned patterns, analytics and TickTick state.

Every method opens its own short-lived session from the injected session
factory, so one StorageService can be shared by the whole app.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from tomanage.database.state_repository import (
    AnalyticsRepository,
    TickTickTokenRepository,
    UserStateRepository,
)
from tomanage.integrations.ticktick_converter import parse_ticktick_date
from tomanage.models.constants import DEFAULT_CACHE_MAX_AGE_SECONDS
from tomanage.models.preferences import AnalyticsEntry, PatternType, UserPreferences
from tomanage.models.task import enum_to_value
from tomanage.models.timeutil import as_utc, utc_now

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "preferences"
PATTERN_KEY_PREFIX = "pattern:"
OAUTH_STATE_KEY = "ticktick_oauth_state"
TASK_CACHE_KEY = "ticktick_tasks_cache"
LAST_SYNC_KEY = "last_sync"

TICKTICK_SCOPES = ["tasks:read", "tasks:write"]


@dataclass
class TaskCache:
    """Snapshot of raw TickTick task records."""
    tasks: List[Dict[str, Any]] = field(default_factory=list)
    fetched_at: Optional[datetime] = None

    def is_stale(self, now: Optional[datetime] = None, max_age_seconds: int = DEFAULT_CACHE_MAX_AGE_SECONDS) -> bool:
        """Stale when older than max_age_seconds (or never fetched)."""
        if self.fetched_at is None:
            return True
        now = as_utc(now) or utc_now()
        return now - self.fetched_at > timedelta(seconds=max_age_seconds)


class StorageService:
    """Storage facade over the state, analytics and token repositories."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    # Preferences

    def get_preferences(self, user_id: str) -> UserPreferences:
        """Return the user's preferences, creating defaults on first access."""
        with self.session_factory() as db:
            repo = UserStateRepository(db)
            stored = repo.get(user_id, PREFERENCES_KEY)
            if stored is not None:
                return UserPreferences(**stored)

            preferences = UserPreferences()
            repo.set(user_id, PREFERENCES_KEY, preferences.model_dump(mode="json"))
            logger.info(f"Created default preferences for user {user_id}")
            return preferences

    def save_preferences(self, user_id: str, preferences: UserPreferences) -> UserPreferences:
        """Replace the user's preferences wholesale."""
        with self.session_factory() as db:
            UserStateRepository(db).set(user_id, PREFERENCES_KEY, preferences.model_dump(mode="json"))
        return preferences

    # Patterns

    def save_pattern(self, user_id: str, pattern_type: PatternType, data: Dict[str, Any]) -> None:
        with self.session_factory() as db:
            UserStateRepository(db).set(user_id, f"{PATTERN_KEY_PREFIX}{enum_to_value(pattern_type)}", data)
        logger.debug(f"Saved pattern {enum_to_value(pattern_type)} for user {user_id}")

    def get_pattern(self, user_id: str, pattern_type: PatternType) -> Optional[Dict[str, Any]]:
        with self.session_factory() as db:
            return UserStateRepository(db).get(user_id, f"{PATTERN_KEY_PREFIX}{enum_to_value(pattern_type)}")

    def get_all_patterns(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        with self.session_factory() as db:
            return UserStateRepository(db).get_by_prefix(user_id, PATTERN_KEY_PREFIX)

    # Analytics

    def save_analytics(self, user_id: str, entry: AnalyticsEntry) -> AnalyticsEntry:
        with self.session_factory() as db:
            return AnalyticsRepository(db).add(user_id, entry)

    def get_analytics(self, user_id: str, limit: Optional[int] = None) -> List[AnalyticsEntry]:
        with self.session_factory() as db:
            return AnalyticsRepository(db).list(user_id, limit=limit)

    # TickTick connection

    def set_ticktick_token(self, user_id: str, access_token: str) -> None:
        with self.session_factory() as db:
            TickTickTokenRepository(db).upsert(user_id, access_token, scopes=TICKTICK_SCOPES)
        logger.info(f"Stored TickTick token for user {user_id}")

    def get_ticktick_token(self, user_id: str) -> Optional[str]:
        with self.session_factory() as db:
            return TickTickTokenRepository(db).get_access_token(user_id)

    def save_oauth_state(self, user_id: str, state: str) -> None:
        with self.session_factory() as db:
            UserStateRepository(db).set(user_id, OAUTH_STATE_KEY, state)

    def pop_oauth_state(self, user_id: str) -> Optional[str]:
        """Return and clear the pending OAuth state (single use)."""
        with self.session_factory() as db:
            repo = UserStateRepository(db)
            state = repo.get(user_id, OAUTH_STATE_KEY)
            if state is not None:
                repo.delete(user_id, OAUTH_STATE_KEY)
            return state

    def save_task_cache(self, user_id: str, tasks: List[Dict[str, Any]], fetched_at: Optional[datetime] = None) -> TaskCache:
        fetched_at = as_utc(fetched_at) or utc_now()
        with self.session_factory() as db:
            UserStateRepository(db).set(user_id, TASK_CACHE_KEY, {
                "tasks": tasks,
                "fetched_at": fetched_at.isoformat(),
            })
        return TaskCache(tasks=list(tasks), fetched_at=fetched_at)

    def get_task_cache(self, user_id: str) -> TaskCache:
        with self.session_factory() as db:
            stored = UserStateRepository(db).get(user_id, TASK_CACHE_KEY)
        if not stored:
            return TaskCache()
        return TaskCache(
            tasks=list(stored.get("tasks") or []),
            fetched_at=parse_ticktick_date(stored.get("fetched_at")),
        )

    def set_last_sync(self, user_id: str, when: datetime) -> None:
        with self.session_factory() as db:
            UserStateRepository(db).set(user_id, LAST_SYNC_KEY, as_utc(when).isoformat())

    def get_last_sync(self, user_id: str) -> Optional[datetime]:
        with self.session_factory() as db:
            return parse_ticktick_date(UserStateRepository(db).get(user_id, LAST_SYNC_KEY))

    def clear_ticktick(self, user_id: str) -> None:
        """Forget the token, any pending OAuth state and the cached snapshot."""
        with self.session_factory() as db:
            TickTickTokenRepository(db).delete(user_id)
            state_repo = UserStateRepository(db)
            state_repo.delete(user_id, OAUTH_STATE_KEY)
            state_repo.delete(user_id, TASK_CACHE_KEY)
        logger.info(f"Cleared TickTick connection for user {user_id}")
