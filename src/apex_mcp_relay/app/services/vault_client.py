import os
import hvac
from functools import lru_cache
from typing import Dict, Optional


@lru_cache(maxsize=1)
def get_vault_client() -> Optional[hvac.Client]:
    """Returns a Vault client when VAULT_ADDR and VAULT_TOKEN are both set."""
    vault_addr = os.getenv("VAULT_ADDR")
    vault_token = os.getenv("VAULT_TOKEN")
    if not vault_addr or not vault_token:
        return None
    return hvac.Client(url=vault_addr, token=vault_token)


def read_relay_secrets(path: str) -> Dict[str, str]:
    """
    Reads the KV v2 secret at `path` and returns its key/value pairs.

    The secret is expected to hold the same names as the environment
    (APEX_USERNAME, APEX_PASSWORD, MCP_API_KEY); any subset is accepted.
    """
    client = get_vault_client()
    if not client:
        raise ValueError("Vault client is not configured. Check VAULT_ADDR and VAULT_TOKEN.")

    read_response = client.secrets.kv.v2.read_secret_version(path=path)
    secrets = read_response.get("data", {}).get("data") or {}
    return {str(k): str(v) for k, v in secrets.items() if v is not None}
