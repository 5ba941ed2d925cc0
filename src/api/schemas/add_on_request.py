"""Request schemas for Add-On API"""

from pydantic import BaseModel, Field
from src.domain.add_on_credit import AddOnSource


class AddOnCheckoutRequestSchema(BaseModel):
    source: AddOnSource = Field(
        default=AddOnSource.EMERGENCY_MODAL,
        description="Dashboard surface that started the purchase"
    )

    class Config:
        json_schema_extra = {"example": {"source": "preventive_dashboard"}}
