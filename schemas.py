"""
Database Schemas for DrapeGear

Each Pydantic model describes a document shape in one MongoDB collection
(users, products, cart, orders). Products, cart rows and orders accept extra
fields, which are stored as sent.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class User(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., description="BCrypt hashed password")
    role: Literal["admin", "user"] = "user"


class Product(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    collection: str = Field(..., description="Product line, e.g. summer")
    category: str
    availability: bool = True
    price: float = Field(..., ge=0)
    sale_price: Optional[float] = Field(None, ge=0)


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    collection: Optional[str] = None
    category: Optional[str] = None
    availability: Optional[bool] = None
    price: Optional[float] = Field(None, ge=0)
    sale_price: Optional[float] = Field(None, ge=0)

    @field_validator("name", "collection", "category")
    @classmethod
    def not_null(cls, v):
        # may be omitted, but never cleared
        if v is None:
            raise ValueError("must not be null")
        return v


class CartItem(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    product_id: str = Field(..., alias="productId", min_length=1)
    quantity: int = Field(1, ge=1)


class Order(BaseModel):
    """Orders are stored verbatim; only the owner is set by the server."""
    model_config = ConfigDict(extra="allow")

    user_email: EmailStr
