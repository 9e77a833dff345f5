"""TickTick OAuth2 authorization-code flow."""

import os
import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

import requests
from dotenv import load_dotenv

from tomanage.errors import AuthStateError, ExternalServiceError
from tomanage.models.constants import DEFAULT_TICKTICK_TIMEOUT_SEC

load_dotenv()

logger = logging.getLogger(__name__)

# TickTick OAuth configuration
TICKTICK_CLIENT_ID = os.getenv("TICKTICK_CLIENT_ID")
TICKTICK_CLIENT_SECRET = os.getenv("TICKTICK_CLIENT_SECRET")
TICKTICK_OAUTH_URL = os.getenv("TICKTICK_OAUTH_URL", "https://ticktick.com/oauth")
TICKTICK_SCOPE = "tasks:read tasks:write"


def generate_state() -> str:
    """Generate a random state token for CSRF protection."""
    return secrets.token_urlsafe(32)


def build_authorize_url(redirect_uri: str, state: str, client_id: Optional[str] = None) -> str:
    """Build the URL the user visits to grant access.

    Raises:
        ExternalServiceError: If TICKTICK_CLIENT_ID is not configured
    """
    client_id = client_id or TICKTICK_CLIENT_ID
    if not client_id:
        raise ExternalServiceError("TickTick client ID not configured")
    query = urlencode({
        "client_id": client_id,
        "scope": TICKTICK_SCOPE,
        "state": state,
        "redirect_uri": redirect_uri,
        "response_type": "code",
    })
    return f"{TICKTICK_OAUTH_URL}/authorize?{query}"


def verify_state(expected: Optional[str], received: Optional[str]) -> None:
    """Check the callback state against the stored one.

    Raises:
        AuthStateError: If either value is missing or they differ
    """
    if not expected or not received or not secrets.compare_digest(expected, received):
        raise AuthStateError("OAuth state mismatch")


def exchange_code_for_token(
    code: str,
    redirect_uri: str,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    timeout: Optional[float] = None,
) -> str:
    """Exchange an authorization code for an access token.

    Uses HTTP basic auth with the client credentials and a form-encoded body.

    Returns:
        The access token (never logged)

    Raises:
        ExternalServiceError: Missing credentials, HTTP failure, or no token in the response
    """
    client_id = client_id or TICKTICK_CLIENT_ID
    client_secret = client_secret or TICKTICK_CLIENT_SECRET
    if not client_id or not client_secret:
        raise ExternalServiceError("TickTick client ID or secret not configured")

    timeout = timeout or float(os.getenv("TICKTICK_TIMEOUT_SEC", str(DEFAULT_TICKTICK_TIMEOUT_SEC)))
    form = {
        "client_id": client_id,
        "code": code,
        "grant_type": "authorization_code",
        "scope": TICKTICK_SCOPE,
        "redirect_uri": redirect_uri,
    }
    try:
        response = requests.post(
            f"{TICKTICK_OAUTH_URL}/token",
            data=form,
            auth=(client_id, client_secret),
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
    except requests.RequestException as e:
        logger.error(f"TickTick token exchange failed: {type(e).__name__}")
        raise ExternalServiceError("TickTick token exchange failed") from e
    except ValueError as e:
        raise ExternalServiceError("TickTick token response was not JSON") from e

    access_token = data.get("access_token") if isinstance(data, dict) else None
    if not access_token:
        raise ExternalServiceError("No access token received from TickTick")
    return access_token
