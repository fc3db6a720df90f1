import logging
import secrets
from typing import Optional

from fastapi import Depends, Request

from ..core.config import RelayConfig, get_config
from ..core.errors import UnauthorizedError

logger = logging.getLogger("apex_mcp_relay.auth")


def check_bearer(authorization: Optional[str], config: RelayConfig) -> None:
    """
    Admits the caller only when `authorization` is exactly
    "Bearer <MCP_API_KEY>". Comparison is case-sensitive and does not strip
    whitespace.

    Raises UnauthorizedError: 401 when the header is missing or no key is
    configured, 403 when a header is present but does not match.
    """
    if not config.require_auth:
        return

    if config.mcp_api_key is None:
        logger.warning("MCP_API_KEY is not set; rejecting request")
        raise UnauthorizedError("Unauthorized: server has no MCP API key configured", status_code=401)

    if not authorization:
        raise UnauthorizedError("Unauthorized: Invalid or missing MCP API Key", status_code=401)

    expected = f"Bearer {config.mcp_api_key.get_secret_value()}"
    if not secrets.compare_digest(authorization.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError("Forbidden: Invalid MCP API Key", status_code=403)


async def require_api_key(request: Request, config: RelayConfig = Depends(get_config)) -> None:
    """FastAPI dependency guarding the invocation routes."""
    try:
        check_bearer(request.headers.get("authorization"), config)
    except UnauthorizedError:
        logger.warning("Unauthorized request: %s %s", request.method, request.url.path)
        raise
