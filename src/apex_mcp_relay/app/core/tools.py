from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from .config import RelayConfig
from ..services.product_relay import fetch_products


class ToolDescriptor(BaseModel):
    """Static declaration of one callable tool, as announced on discovery."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: Dict[str, Any]
    output_schema: Optional[Dict[str, Any]] = None

    def summary(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description}

    def announcement(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


@dataclass(frozen=True)
class RegisteredTool:
    descriptor: ToolDescriptor
    arguments_model: Type[BaseModel]
    handler: Callable[[BaseModel, RelayConfig], Awaitable[Any]]


# --- fetch_products ---
class FetchProductsArguments(BaseModel):
    limit: Optional[int] = Field(None, ge=0)


async def _run_fetch_products(arguments: FetchProductsArguments, config: RelayConfig) -> List[Dict[str, Any]]:
    products = await fetch_products(config, limit=arguments.limit)
    return [p.to_result() for p in products]


FETCH_PRODUCTS = ToolDescriptor(
    name="fetch_products",
    description="Pobiera listę produktów z Oracle APEX REST API",
    input_schema={
        "type": "object",
        "properties": {
            "limit": {
                "type": "integer",
                "minimum": 0,
                "description": "Liczba produktów do pobrania (domyślnie wartość serwera)",
            },
        },
        "required": [],
    },
    output_schema={
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "nazwa": {"description": "Nazwa produktu"},
                "cena": {"description": "Cena"},
                "ocena": {"description": "Ocena"},
                "liczba_sprzedanych": {"description": "Liczba sprzedanych sztuk"},
                "url": {"type": "string", "description": "Adres produktu"},
            },
            "required": ["nazwa", "cena", "ocena"],
        },
    },
)

TOOL_REGISTRY: Dict[str, RegisteredTool] = {
    FETCH_PRODUCTS.name: RegisteredTool(
        descriptor=FETCH_PRODUCTS,
        arguments_model=FetchProductsArguments,
        handler=_run_fetch_products,
    ),
}


def list_tools(abbreviated: bool = False) -> List[Dict[str, Any]]:
    """Descriptors of all registered tools; name + description only when abbreviated."""
    if abbreviated:
        return [tool.descriptor.summary() for tool in TOOL_REGISTRY.values()]
    return [tool.descriptor.announcement() for tool in TOOL_REGISTRY.values()]
