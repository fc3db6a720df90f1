import logging

import httpx

from ..core.config import RelayConfig
from ..core.errors import UpstreamAuthError
from ..core.logging_config import redact_headers

__all__ = ["acquire_token"]

logger = logging.getLogger("apex_mcp_relay.token")


async def acquire_token(config: RelayConfig, client: httpx.AsyncClient) -> str:
    """
    Exchanges the APEX service credentials for a bearer token.

    A fresh token is requested on every call; nothing is cached.
    """
    try:
        response = await client.post(
            config.token_url,
            data={"grant_type": "client_credentials"},
            # Sent as "Authorization: Basic base64(username:password)".
            auth=(config.apex_username, config.apex_password.get_secret_value()),
        )
    except httpx.HTTPError as exc:
        logger.error("Token request failed: %s", exc)
        raise UpstreamAuthError("Failed to get access token from Oracle APEX", detail=str(exc))

    logger.debug(
        "POST %s -> %s headers=%s",
        response.request.url, response.status_code, redact_headers(response.request.headers),
    )

    if not response.is_success:
        logger.error("Error fetching token: %s %s", response.status_code, response.text)
        raise UpstreamAuthError("Failed to get access token from Oracle APEX", detail=response.text)

    try:
        token = response.json().get("access_token")
    except (ValueError, AttributeError):
        token = None
    if not token or not isinstance(token, str):
        logger.error("Token response carried no access_token: %s", response.text)
        raise UpstreamAuthError("Oracle APEX token response has no access_token", detail=response.text)

    logger.info("Access token retrieved successfully")
    return token
