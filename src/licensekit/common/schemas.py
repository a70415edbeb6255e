"""Shared Pydantic schemas for licensekit wire models."""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

from licensekit.tokens.signing import parse_timestamp


def _coerce_timestamp(value: Any) -> Any:
    # License servers emit seven fractional digits; pydantic stops at six.
    if isinstance(value, str):
        return parse_timestamp(value)
    return value


Timestamp = Annotated[datetime, BeforeValidator(_coerce_timestamp)]


class WireModel(BaseModel):
    """camelCase JSON on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
