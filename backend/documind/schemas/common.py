"""
Shared schema plumbing.

Wire payloads use camelCase (relevantDocuments, keyMatches, …); Python code
uses snake_case. CamelModel bridges the two: it accepts either spelling on
input and FastAPI serialises response models by alias.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""
    error:   str
    details: Any | None = None
