from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict
from decimal import Decimal
from datetime import datetime

from storefront.shared.security_config import sanitize_input
from storefront.shared.utils import CamelModel, Money
from storefront.products.models import Category, Fit, Size

class ProductCreate(BaseModel):
    id: int = Field(..., ge=1)
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    category: Category
    subcategory: str = ""
    image: str = Field(..., min_length=1)
    images: List[str] = []
    description: str = ""
    fabric: str = ""
    fit: Fit = Fit.REGULAR
    sizes: List[Size] = []
    colors: List[str] = []
    stock: int = Field(0, ge=0)
    rating: float = Field(0, ge=0, le=5)

    @field_validator('name', 'subcategory', 'description', 'fabric')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, ge=0)
    category: Optional[Category] = None
    subcategory: Optional[str] = None
    image: Optional[str] = None
    images: Optional[List[str]] = None
    description: Optional[str] = None
    fabric: Optional[str] = None
    fit: Optional[Fit] = None
    sizes: Optional[List[Size]] = None
    colors: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    rating: Optional[float] = Field(None, ge=0, le=5)

    @field_validator('name', 'subcategory', 'description', 'fabric')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProductResponse(CamelModel):
    id: int
    name: str
    price: Money
    category: str
    subcategory: str = ""
    image: str
    images: List[str] = []
    description: str = ""
    fabric: str = ""
    fit: str = Fit.REGULAR.value
    sizes: List[str] = []
    colors: List[str] = []
    stock: int = 0
    rating: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ProductFilters(CamelModel):
    subcategories: List[str] = []
    sizes: List[str] = []
    colors: List[str] = []
    fits: List[str] = []
    category_counts: Dict[str, int] = {}
