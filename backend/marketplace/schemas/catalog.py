"""Pydantic schemas for suppliers and offerings."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class SupplierCreate(BaseModel):
    display_name: str = Field(..., min_length=1)
    is_verified: bool = False


class SupplierOut(BaseModel):
    supplier_id: str
    display_name: str
    is_verified: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class OfferingCreate(BaseModel):
    supplier_id: str
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    price_per_day: int = Field(..., ge=0)
    is_verified: bool = False
    quantity_available: int = Field(1, ge=0)
    is_active: bool = True


class OfferingOut(BaseModel):
    offering_id: str
    supplier_id: str
    name: str
    category: str
    price_per_day: int
    is_verified: bool
    quantity_available: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
