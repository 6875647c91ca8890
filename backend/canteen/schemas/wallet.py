"""Wallet and outlet settings schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, StrictBool


class TopUpRequest(BaseModel):
    amount: Decimal


class UpiUpdateRequest(BaseModel):
    upi_id: str = Field(..., max_length=100)
    vendor_id: Optional[int] = None


class OnlineUpdateRequest(BaseModel):
    is_online: StrictBool
    vendor_id: Optional[int] = None


class ManagerLinkRequest(BaseModel):
    user_id: int
