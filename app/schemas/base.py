"""
trackd - Schema Base

Shared pydantic configuration: camelCase on the wire, snake_case in Python,
money as Decimal internally and JSON numbers externally.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


class APIModel(BaseModel):
    """Base for request and response bodies."""
    
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise an incoming datetime to naive UTC for storage."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class MessageResponse(APIModel):
    """Generic acknowledgement."""
    message: str
    success: bool = True
