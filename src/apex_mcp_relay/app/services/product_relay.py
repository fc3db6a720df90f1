"""
Product listing relay for Oracle APEX.

Fetches ``ali_products/get`` with a fresh bearer token and projects each
record's nested ``dane_produktu`` JSON string down to the fields an agent
needs:

* ``nazwa`` (name), ``cena`` (price), ``ocena`` (rating) are required.
* ``liczba_sprzedanych`` (sold count) is copied when the payload has it.
* ``url`` comes from the record itself and is copied only when
  ``RelayConfig.include_url`` is set.

A single unparsable record fails the whole call; there is no partial result.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from ..core.config import RelayConfig
from ..core.errors import MalformedPayloadError, UpstreamDataError
from ..core.logging_config import redact_headers
from .token_provider import acquire_token

__all__ = [
    "ProjectedProduct",
    "fetch_products",
    "project_record",
]

logger = logging.getLogger("apex_mcp_relay.products")

_PAYLOAD_FIELD = "dane_produktu"
_REQUIRED_FIELDS = ("nazwa", "cena", "ocena")


class ProjectedProduct(BaseModel):
    model_config = ConfigDict(frozen=True)

    nazwa: Any
    cena: Any
    ocena: Any
    liczba_sprzedanych: Optional[Any] = None
    url: Optional[str] = None

    def to_result(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def project_record(record: Any, include_url: bool = False) -> ProjectedProduct:
    """Parse one upstream record's nested payload and keep the exposed fields."""
    if not isinstance(record, dict):
        raise MalformedPayloadError("Product record is not an object", detail=repr(record))

    raw = record.get(_PAYLOAD_FIELD)
    if not isinstance(raw, str):
        raise MalformedPayloadError(
            f"Product record has no '{_PAYLOAD_FIELD}' string", detail=repr(raw)
        )

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError(f"Invalid JSON in '{_PAYLOAD_FIELD}': {exc}", detail=raw)

    if not isinstance(payload, dict):
        raise MalformedPayloadError(f"'{_PAYLOAD_FIELD}' is not a JSON object", detail=raw)

    missing = [name for name in _REQUIRED_FIELDS if name not in payload]
    if missing:
        raise MalformedPayloadError(
            f"'{_PAYLOAD_FIELD}' is missing {', '.join(missing)}", detail=raw
        )

    fields = {name: payload[name] for name in _REQUIRED_FIELDS}
    if payload.get("liczba_sprzedanych") is not None:
        fields["liczba_sprzedanych"] = payload["liczba_sprzedanych"]
    if include_url and record.get("url") is not None:
        if not isinstance(record["url"], str):
            raise MalformedPayloadError("Product record 'url' is not a string", detail=repr(record["url"]))
        fields["url"] = record["url"]

    try:
        return ProjectedProduct(**fields)
    except ValidationError as exc:
        raise MalformedPayloadError("Product record could not be projected", detail=str(exc))


async def _get_listing(config: RelayConfig, client: httpx.AsyncClient, token: str) -> List[Any]:
    try:
        response = await client.get(
            config.products_url,
            headers={"Authorization": f"Bearer {token}"},
        )
    except httpx.HTTPError as exc:
        logger.error("Product request failed: %s", exc)
        raise UpstreamDataError("Failed to fetch products from Oracle APEX", detail=str(exc))

    logger.debug(
        "GET %s -> %s headers=%s",
        response.request.url, response.status_code, redact_headers(response.request.headers),
    )

    if not response.is_success:
        logger.error("Downstream API error: %s %s", response.status_code, response.text)
        raise UpstreamDataError("Failed to fetch products from Oracle APEX", detail=response.text)

    try:
        data = response.json()
    except ValueError:
        raise UpstreamDataError("Oracle APEX returned a non-JSON product listing", detail=response.text)

    items = data.get("items") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise UpstreamDataError("Oracle APEX product listing has no 'items' list", detail=response.text)
    return items


async def fetch_products(config: RelayConfig, limit: Optional[int] = None) -> List[ProjectedProduct]:
    """
    Acquire a token, read the full listing and return at most `limit`
    projected products in upstream order.

    `limit=None` falls back to `config.default_limit`; when that is None too
    the whole listing is returned. `limit=0` yields an empty list.
    """
    if limit is None:
        limit = config.default_limit
    if limit is not None and limit < 0:
        raise ValueError("limit must be >= 0")

    async with httpx.AsyncClient(timeout=config.request_timeout) as client:
        token = await acquire_token(config, client)
        items = await _get_listing(config, client, token)

    # Parse everything, then truncate: a bad record past the slice still fails.
    products = [project_record(item, include_url=config.include_url) for item in items]
    if limit is not None:
        products = products[:limit]

    logger.info("Fetched %d of %d products", len(products), len(items))
    return products
