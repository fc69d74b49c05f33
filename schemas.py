"""
Database Schemas

Each Pydantic model represents a collection in MongoDB.
Model name in snake_case is the collection name:
- User -> "user" collection
- Category -> "category" collection
- Sub -> "sub" collection
- Product -> "product" collection
- Comment -> "comment" collection
- PasswordResetToken -> "password_reset_token" collection

References to other documents are ObjectId strings in these models and are
stored as ObjectId by the repositories.
"""

import re
import unicodedata
from datetime import datetime
from typing import List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

def slugify(value: str) -> str:
    ascii_value = (
        unicodedata.normalize("NFKD", (value or "").strip().lower())
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_value).strip("-")
    return slug or uuid4().hex


def profile_picture(firstname: Optional[str], lastname: Optional[str], picture: Optional[str] = None) -> str:
    """The user's picture, or a generated avatar from their initials."""
    if picture:
        return picture
    initials = f"{(firstname or '')[:1]}{(lastname or '')[:1]}".upper()
    return f"https://ui-avatars.com/api/?name={initials}&background=random&color=fff&size=200"


class CartItem(BaseModel):
    product: str = Field(..., description="Product ObjectId as string")
    count: int = Field(1, ge=1)
    color: Optional[str] = None
    price: float = Field(0, ge=0)


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    email: EmailStr = Field(..., description="Unique email, stored lowercase")
    password: Optional[str] = Field(None, description="Password, hashed before insert")
    firstname: Optional[str] = None
    lastname: Optional[str] = Field(None, description="Stored upper-case")
    picture: Optional[str] = None
    avatar: Optional[str] = None
    google_id: Optional[str] = None
    azure_id: Optional[str] = None
    address: str = ""
    cart: List[CartItem] = Field(default_factory=list)
    role: Literal["admin", "user"] = "user"
    is_active: bool = False

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("firstname", "picture", "avatar", "google_id", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("lastname", mode="before")
    @classmethod
    def upper_lastname(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def password_or_oauth(self):
        if not self.password and not self.google_id and not self.azure_id:
            raise ValueError("Password is required without a Google or Azure id")
        return self


class Category(BaseModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    name: str = Field(..., min_length=3, max_length=32, description="Unique category name")
    slug: Optional[str] = Field(None, description="Derived from name when absent")
    subs: List[str] = Field(default_factory=list, description="Sub ObjectIds")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def fill_slug(self):
        self.slug = slugify(self.slug or self.name)
        return self


class Sub(BaseModel):
    """
    Sub-categories collection schema
    Collection name: "sub"
    """
    name: str = Field(..., min_length=3, max_length=32, description="Unique sub-category name")
    slug: Optional[str] = None
    parent: str = Field(..., description="Parent Category ObjectId")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def fill_slug(self):
        self.slug = slugify(self.slug or self.name)
        return self


class Rating(BaseModel):
    star: int = Field(..., ge=1, le=5)
    posted_by: str = Field(..., description="User ObjectId")


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    title: str = Field(..., min_length=1, max_length=32, description="Product title")
    slug: Optional[str] = None
    price: float = Field(..., ge=0, description="Price in euros")
    description: str = Field(..., max_length=2000)
    category: str = Field(..., description="Category ObjectId")
    sub: str = Field(..., description="Sub ObjectId, must belong to category")
    quantity: int = Field(0, ge=0)
    sold: int = Field(0, ge=0)
    images: List[str] = Field(default_factory=list)
    shipping: Optional[Literal["Yes", "No"]] = None
    color: Optional[Literal["Black", "Brown", "Silver", "Blue", "White", "Green"]] = None
    brand: Optional[Literal["Apple", "Samsung", "Microsoft", "Lenovo", "Asus", "Dell", "HP", "Acer"]] = None
    rating: List[Rating] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def fill_slug(self):
        self.slug = slugify(self.slug or self.title)
        return self


class Comment(BaseModel):
    """
    Comments collection schema
    Collection name: "comment"
    One comment per (user, product).
    """
    product: str
    user: str
    text: str = Field(..., min_length=1, max_length=1000)
    rating: Optional[int] = Field(None, ge=1, le=5)

    @field_validator("text", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class PasswordResetToken(BaseModel):
    """
    Password reset tokens schema
    Collection name: "password_reset_token"
    Documents expire 15 minutes after created_at (TTL index).
    """
    user_id: str
    token: str
    hashed_token: str
    created_at: Optional[datetime] = None


# Invoice payloads

class InvoiceCustomer(BaseModel):
    name: str
    email: EmailStr


class InvoiceProduct(BaseModel):
    title: str
    price: float = Field(..., ge=0)


class InvoiceItem(BaseModel):
    product: InvoiceProduct
    quantity: int = Field(..., ge=1)


class InvoiceOrder(BaseModel):
    user: InvoiceCustomer
    items: List[InvoiceItem] = Field(..., min_length=1)
    total: Optional[float] = Field(None, ge=0, description="Computed from items when absent")

    @property
    def computed_total(self) -> float:
        if self.total is not None:
            return self.total
        return round(sum(i.product.price * i.quantity for i in self.items), 2)
