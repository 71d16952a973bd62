from pydantic import BaseModel
from typing import Optional


class Tax(BaseModel):
    """A tax classification. tax_rate is a decimal, e.g. 0.21 for 21%."""
    code: str
    name: str
    tax_rate: float
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Product(BaseModel):
    """A catalog product, identified by its EAN code."""
    ean: str
    ref: Optional[str] = None
    title: str
    description: Optional[str] = None
    base_price: float
    tax_code: str
    unit_of_measure: str
    quantity_measure: float
    image_url: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class DeliveryCenter(BaseModel):
    code: str
    name: str
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Store(BaseModel):
    """A store. Every store is served by exactly one delivery center."""
    code: str
    name: str
    responsible_email: Optional[str] = None
    delivery_center_code: str
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class User(BaseModel):
    email: str
    store_id: str
    name: Optional[str] = None
    is_active: bool = True
    last_login: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
