"""Menu schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, StrictBool

from canteen.services.menu_service import MenuItemUpdate


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = Field(None, max_length=500)
    vendor_id: Optional[int] = None


class MenuItemPatch(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    price: Optional[Decimal] = None
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = Field(None, max_length=500)
    is_available: Optional[StrictBool] = None
    vendor_id: Optional[int] = None

    def to_update(self) -> MenuItemUpdate:
        return MenuItemUpdate(
            name=self.name,
            description=self.description,
            price=self.price,
            category=self.category,
            image_url=self.image_url,
            is_available=self.is_available,
        )


class AvailabilityUpdate(BaseModel):
    is_available: StrictBool
    vendor_id: Optional[int] = None
