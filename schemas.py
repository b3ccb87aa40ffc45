"""
Database Schemas for the SwiftCart storefront

Each Pydantic model describes the shape of a MongoDB document or of a request/response body.

Collections:
- products (string ids such as "002")
- reviews (one document per review, `product_id` points at the parent product)
- user
- revoked_token
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class User(BaseModel):
    name: str = Field(..., description="Display name")
    email: EmailStr
    password_hash: str = Field(..., description="Salted PBKDF2 hash")


class SignupBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = None


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class Review(BaseModel):
    id: str
    product_id: str
    rating: float
    comment: str
    reviewerName: str
    reviewerEmail: str
    date: Optional[datetime] = None


class ReviewCreate(BaseModel):
    rating: float = Field(..., gt=0, le=5)
    comment: str = Field(..., min_length=1)
    reviewerEmail: str = Field(..., min_length=1, description="Shown next to the review, not verified")
    reviewerName: str = Field(..., min_length=1)

    @field_validator("rating")
    @classmethod
    def half_steps_only(cls, v: float):
        if (v * 2) != int(v * 2):
            raise ValueError("rating must be a multiple of 0.5")
        return v


class ReviewUpdate(BaseModel):
    comment: str = Field(..., min_length=1)


class Product(BaseModel):
    id: Optional[str] = None
    title: str = "Title Not Available"
    description: str = "Description Not Available"
    category: str = "Category Not Available"
    price: float = Field(0, ge=0)
    rating: float = Field(0, ge=0, le=5)
    images: List[str] = []
    stock: int = Field(0, ge=0)
    tags: List[str] = []
    reviews: List[Review] = []


class ProductFilter(BaseModel):
    search_term: str = ""
    category: str = ""
    sort_by_price: str = Field("", description='"asc", "desc" or "" for title order')
    page: int = Field(1, ge=1)


class ProductPage(BaseModel):
    items: List[Product]
    current_page: int
    total_pages: int
    message: Optional[str] = None
