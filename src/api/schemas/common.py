"""Common API response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.shared.datetime_utils import utc_now
from src.shared.models import BaseSchema


class CamelModel(BaseSchema):
    """Schema that accepts snake_case or camelCase and emits camelCase."""

    model_config = ConfigDict(alias_generator=to_camel)


class ErrorResponse(BaseModel):
    """Structured error response."""

    success: bool = False
    error: dict[str, Any] = Field(
        ...,
        description="Error details",
        examples=[{
            "code": "CONFLICT",
            "message": "State version mismatch. Please refresh.",
            "details": {"current_state_version": 4},
        }],
    )
    request_id: str = Field(
        ...,
        description="Unique request identifier for debugging",
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="Error timestamp",
    )
