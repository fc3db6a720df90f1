import os
import sys
import json
import asyncio
import logging
from typing import TextIO

import uvicorn
from pydantic import ValidationError

from .app.core.config import RelayConfig, get_config
from .app.core.errors import RelayError
from .app.core.logging_config import setup_logging
from .app.main import McpEnvelope, app, dispatch_mcp_message

logger = logging.getLogger("apex_mcp_relay.run")


async def run_stdio_mode(config: RelayConfig, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout):
    """Reads one MCP envelope per line and writes one JSON response per line."""
    logger.info("MCP relay running in stdio mode")

    while True:
        line = stdin.readline()
        if not line:
            break
        if not line.strip():
            continue

        try:
            envelope = McpEnvelope(**json.loads(line))
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            envelope = None
            response = {"error": "Unsupported MCP message", "detail": str(e)}

        if envelope is not None:
            try:
                response = await dispatch_mcp_message(envelope, config)
            except RelayError as e:
                logger.error("%s: %s", type(e).__name__, e.message)
                response = e.to_body(expose_detail=config.expose_upstream_errors)
            except Exception as e:
                logger.exception("MCP tool error")
                response = {"error": str(e)}

        stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
        stdout.flush()


def run_web_server(config: RelayConfig):
    """Launches the Uvicorn web server."""
    logger.info("MCP relay running on port %s", config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


def main():
    config = get_config()
    setup_logging(config.log_level)

    mode = os.getenv("TRANSPORT_MODE", "web").lower()
    if mode == "stdio":
        asyncio.run(run_stdio_mode(config))
    else:
        run_web_server(config)


if __name__ == "__main__":
    main()
