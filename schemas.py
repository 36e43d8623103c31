"""
Database Schemas for the Product Catalog

Each Pydantic model describes documents of a MongoDB collection.
Collection name is lowercase of the owning class name.
- Product -> "product" (reviews are embedded in the product document)
- User -> "user"
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime

# identity and bookkeeping fields are owned by the store
STORE_FIELDS = ("_id", "reviews", "created_at", "updated_at")


def _without_store_fields(data: dict) -> dict:
    return {k: v for k, v in data.items() if k not in STORE_FIELDS}


class ReviewIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    rating: Optional[int] = Field(None, ge=1, le=5, description="Rating 1-5")
    text: Optional[str] = Field(None, description="Review text")


class ProductIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1, description="Product name")
    price: float = Field(..., ge=0, description="Unit price")
    category: str = Field(..., description="Category name")
    brand: Optional[str] = Field(None, description="Brand")
    description: Optional[str] = Field(None, description="Free-form description")
    image_url: Optional[str] = Field(None, description="Hosted image URL")

    def document(self) -> dict:
        return _without_store_fields(self.model_dump())


class ProductUpdate(BaseModel):
    """Partial update: only the fields sent by the client are applied."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("name", "price", "category", mode="before")
    @classmethod
    def _required_fields_not_null(cls, v: object) -> object:
        # these may be left out but never cleared
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v

    def changes(self) -> dict:
        return _without_store_fields(self.model_dump(exclude_unset=True))


class PurchaseEntry(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    date: Optional[datetime] = None


class User(BaseModel):
    name: str = Field(..., description="First name")
    surname: str = Field(..., description="Last name")
    email: EmailStr = Field(..., description="Email address, stored lowercase")
    age: int = Field(18, ge=18, le=65, description="Age, 18-65")
    professions: List[str] = Field(default_factory=list)
    purchase_history: List[PurchaseEntry] = Field(default_factory=list)

    @field_validator("email", mode="before")
    @classmethod
    def _lowercase_email(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v
