"""Service catalogue data models."""

from enum import Enum

from pydantic import AliasChoices, BaseModel, Field


class AddOnType(str, Enum):
    """Classification driving which add-ons a main service offers."""
    HAIR = "hair_add_on"
    BEARD = "beard_add_on"
    GENERAL = "general_add_on"
    KID = "kid_add_on"


class Service(BaseModel):
    """A purchasable offering, read-only to the booking logic."""
    id: str
    name: str
    # The hosted table spells this column "discerption".
    description: str = Field(
        default="", validation_alias=AliasChoices("description", "discerption")
    )
    price: float
    duration_minutes: int
    category: str = ""
    is_active: bool = True
    add_on_type: AddOnType
