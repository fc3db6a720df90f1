import asyncio
import json
import logging
import os
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError
from sse_starlette.sse import EventSourceResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .core.config import RelayConfig, get_config
from .core.errors import RelayError, UnsupportedRequestError
from .core.logging_config import setup_logging
from .core.tools import TOOL_REGISTRY, list_tools
from .services.security import check_bearer, require_api_key

logger = logging.getLogger("apex_mcp_relay.main")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Origin, X-Requested-With, Content-Type, Accept, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}


# --- Models ---
class McpEnvelope(BaseModel):
    type: str
    tool_name: Optional[str] = None
    arguments: Optional[Dict[str, Any]] = None


async def dispatch_mcp_message(envelope: McpEnvelope, config: RelayConfig) -> Dict[str, Any]:
    """Route one MCP envelope to the tool registry."""
    logger.info("MCP request received: %s (%s)", envelope.type, envelope.tool_name)

    if envelope.type == "mcp_list_tools":
        return {"type": "mcp_list_tools", "tools": list_tools(abbreviated=True)}

    if envelope.type != "mcp_call":
        raise UnsupportedRequestError("Unsupported MCP message type", detail=envelope.type)

    tool = TOOL_REGISTRY.get(envelope.tool_name or "")
    if tool is None:
        raise UnsupportedRequestError("Unsupported MCP tool", detail=envelope.tool_name)

    try:
        arguments = tool.arguments_model(**(envelope.arguments or {}))
    except ValidationError as e:
        raise UnsupportedRequestError(f"Invalid arguments for '{tool.descriptor.name}'", detail=str(e))

    result = await tool.handler(arguments, config)
    logger.info("%s executed successfully", tool.descriptor.name)
    return {"type": "mcp_call_result", "result": result}


async def discovery_events(
        config: RelayConfig,
        is_disconnected: Callable[[], Awaitable[bool]],
        poll_interval: float = 1.0,
):
    """
    Handshake stream: a comment line to force proxies to flush, one
    mcp_list_tools event, then nothing until the client goes away.
    """
    try:
        yield {"comment": "ping"}

        await asyncio.sleep(config.discovery_delay)
        payload = {"type": "mcp_list_tools", "tools": list_tools()}
        yield {"data": json.dumps(payload, ensure_ascii=False)}
        logger.info("Sent mcp_list_tools to MCP client")

        if not config.discovery_hold_open:
            return
        while not await is_disconnected():
            await asyncio.sleep(poll_interval)
    finally:
        logger.info("MCP client disconnected from discovery stream")


def request_config(request: Request, config: RelayConfig = Depends(get_config)) -> RelayConfig:
    # Kept on the request so error handlers can honour expose_upstream_errors.
    request.state.relay_config = config
    return config


class CorsLoggingMiddleware(BaseHTTPMiddleware):
    """Adds permissive CORS headers, logs each request, answers OPTIONS directly."""

    async def dispatch(self, request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)

        logger.info("%s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception("MCP tool error on %s %s", request.method, request.url.path)
            return JSONResponse(status_code=500, content={"error": str(exc)}, headers=CORS_HEADERS)
        response.headers.update(CORS_HEADERS)
        return response


# --- App Creation ---
def create_app() -> FastAPI:
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))
    app = FastAPI(title="APEX MCP Relay")
    app.add_middleware(CorsLoggingMiddleware)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        config = getattr(request.state, "relay_config", None)
        expose = config.expose_upstream_errors if config is not None else True
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body(expose_detail=expose))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        error = UnsupportedRequestError("Unsupported MCP message", detail=str(exc.errors()))
        return JSONResponse(status_code=error.status_code, content=error.to_body())

    async def discovery(request: Request, config: RelayConfig = Depends(request_config)):
        if config.protect_discovery:
            check_bearer(request.headers.get("authorization"), config)
        logger.info("MCP client connected to %s", request.url.path)

        return EventSourceResponse(
            discovery_events(config, request.is_disconnected),
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
            sep="\n",
        )

    async def invoke(
            envelope: McpEnvelope,
            config: RelayConfig = Depends(request_config),
            _: None = Depends(require_api_key),
    ):
        return await dispatch_mcp_message(envelope, config)

    async def debug(request: Request):
        return {
            "method": request.method,
            "path": request.url.path,
            "origin": request.headers.get("origin"),
            "headers": dict(request.headers),
        }

    for path in ("/sse", "/discovery"):
        app.add_api_route(path, discovery, methods=["GET"], tags=["Transports"])
    for path in ("/mcp", "/invoke"):
        app.add_api_route(path, invoke, methods=["POST"], tags=["Transports"])
    app.add_api_route(
        "/debug", debug, methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"], tags=["Diagnostics"]
    )

    return app


app = create_app()
