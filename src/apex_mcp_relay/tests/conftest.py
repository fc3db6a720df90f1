import json

import pytest
import sse_starlette.sse as sse_module

from apex_mcp_relay.app.core.config import RelayConfig

TOKEN_URL = "http://apex.test/ords/oauth/token"
PRODUCTS_URL = "http://apex.test/ords/ali_products/get"
API_KEY = "relay-secret"


def make_item(nazwa="Widget", cena="9.99", ocena="4.5", url="http://x", **extra):
    """An upstream record with its payload JSON-encoded the way APEX sends it."""
    payload = {"nazwa": nazwa, "cena": cena, "ocena": ocena, **extra}
    return {"dane_produktu": json.dumps(payload), "url": url}


RELAY_ENV_NAMES = (
    "APEX_USERNAME", "APEX_PASSWORD", "MCP_API_KEY", "HOST", "PORT", "LOG_LEVEL",
    "APEX_TOKEN_URL", "APEX_PRODUCTS_URL", "PRODUCTS_DEFAULT_LIMIT", "PRODUCTS_INCLUDE_URL",
    "MCP_REQUIRE_AUTH", "MCP_PROTECT_DISCOVERY", "MCP_EXPOSE_UPSTREAM_ERRORS",
    "UPSTREAM_TIMEOUT", "DISCOVERY_DELAY", "DISCOVERY_HOLD_OPEN", "VAULT_SECRET_PATH",
)


@pytest.fixture(autouse=True)
def clean_relay_env(monkeypatch):
    """Tests see only the relay variables they set themselves."""
    for name in RELAY_ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def relay_config():
    return RelayConfig(
        _env_file=None,
        apex_username="svc",
        apex_password="pa55",
        mcp_api_key=API_KEY,
        token_url=TOKEN_URL,
        products_url=PRODUCTS_URL,
        discovery_delay=0,
        discovery_hold_open=False,
    )


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a module-level exit event bound to the first event loop."""
    app_status = getattr(sse_module, "AppStatus", None)
    if app_status is not None and hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None
    yield
