"""Shared pydantic configuration for models that travel over the wire.

The dashboard, the SDK and the event stream all speak camelCase
(``toolCallId``, ``maxOutputTokens``); Python code uses snake_case.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model with camelCase aliases that also accepts field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    def to_wire(self) -> dict:
        """Dump to the JSON-ready camelCase dict sent to callers and stored in rows."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
