"""Error taxonomy for toManage.

Pure functions (enrichment, format conversion) never raise these for
malformed input; they fall back to documented defaults instead.
"""


class TomanageError(Exception):
    """Base class for all toManage errors."""


class ValidationError(TomanageError):
    """Malformed task data at a schema-checked boundary."""


class NotFoundError(TomanageError):
    """A task id (or other keyed record) does not exist for the user."""


class ExternalServiceError(TomanageError):
    """TickTick or the AI reasoning service failed (network, auth, rate limit, timeout)."""


class NotConnectedError(ExternalServiceError):
    """The user has no TickTick access token yet."""


class AuthStateError(TomanageError):
    """OAuth callback state does not match the stored value."""


class ToolExecutionError(TomanageError):
    """An AI-requested tool call failed or the tool loop hit its iteration cap."""
