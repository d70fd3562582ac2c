from __future__ import annotations
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

# ---------- Categories ----------
class CategoryIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    sort_order: int = 0
    is_active: bool = True

class CategoryPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None

class CategoryOut(CategoryIn):
    id: int

# ---------- Menu items ----------
class MenuItemIn(BaseModel):
    category_id: int
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    image: Optional[str] = Field(None, max_length=500)
    sort_order: int = 0
    is_active: bool = True

class MenuItemPatch(BaseModel):
    category_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    image: Optional[str] = Field(None, max_length=500)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None

class MenuItemOut(BaseModel):
    id: int
    category_id: int
    name: str
    description: Optional[str] = None
    price: float
    image: Optional[str] = None
    sort_order: int
    is_active: bool

# ---------- Pickup locations ----------
class LocationIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    address: Optional[str] = Field(None, max_length=255)
    sort_order: int = 0
    is_active: bool = True

class LocationPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    address: Optional[str] = Field(None, max_length=255)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None

class LocationOut(LocationIn):
    id: int
