"""
Base schema classes.

RULE: response schemas that read from ORM rows inherit from BaseResponseSchema;
request bodies inherit from BaseRequestSchema, which rejects unknown fields.
"""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for response schemas built from ORM rows.

    Usage:
        class PaymentResponse(BaseResponseSchema):
            id: UUID
            invoice_number: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
        },
        populate_by_name=True,
    )


class BaseRequestSchema(BaseModel):
    """
    Base class for request bodies.

    Unknown fields are an error, so a misspelt or unexpected key never
    travels further than the API boundary.
    """
    model_config = ConfigDict(
        extra='forbid',
        str_strip_whitespace=True,
    )
