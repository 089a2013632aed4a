"""Base pydantic model for camelCase JSON payloads."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; Python code uses snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def dump(self) -> dict:
        """Serialize with camelCase keys, leaving out unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def require_text(value: str | None, message: str) -> str:
    """Reject missing or blank strings with ``message``."""
    if value is None or not str(value).strip():
        raise ValueError(message)
    return value
