"""
Kroger API client-credentials token exchange.
"""
import logging
from typing import Optional

import requests
from requests.auth import HTTPBasicAuth

from config.settings import settings

logger = logging.getLogger("kroger.auth")


# ============================================================================
# Custom Exceptions
# ============================================================================

class KrogerAPIError(Exception):
    """Raised when a Kroger API call fails."""
    pass


class TokenError(KrogerAPIError):
    """Raised when no bearer token could be obtained."""
    pass


def get_token(http: Optional[requests.Session] = None) -> str:
    """
    Obtain a short-lived bearer token for the product API.

    Performs exactly one client-credentials grant; no retry and no caching,
    each warming run asks for a fresh token.

    Args:
        http: Session to use (defaults to the requests module)

    Returns:
        The access token string

    Raises:
        TokenError: Missing credentials, transport error, non-2xx response
                    or a response without an access token
    """
    client_id = settings.kroger_client_id
    client_secret = settings.kroger_client_secret
    if not client_id or not client_secret:
        logger.error("Missing Kroger credentials")
        raise TokenError("Kroger client credentials are not configured")

    http = http or requests
    try:
        response = http.post(
            settings.kroger_token_url,
            auth=HTTPBasicAuth(client_id, client_secret),
            data={
                "grant_type": "client_credentials",
                "scope": settings.kroger_scope,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=settings.request_timeout_seconds,
        )
    except requests.RequestException as e:
        logger.error(f"Error getting Kroger token: {e}")
        raise TokenError(f"Token request failed: {e}") from e

    if not response.ok:
        logger.error(f"Failed to get Kroger token: {response.status_code}")
        raise TokenError(f"Token endpoint returned {response.status_code}")

    try:
        token = response.json().get("access_token")
    except ValueError as e:
        raise TokenError("Token endpoint returned invalid JSON") from e

    if not token:
        raise TokenError("Token endpoint response has no access_token")
    return token
