from datetime import datetime
from enum import Enum
from typing import Optional, List
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict

class Category(str, Enum):
    MEN = "men"
    WOMEN = "women"
    KIDS = "kids"
    ACCESSORIES = "accessories"

    @classmethod
    def parse(cls, value: str) -> Optional["Category"]:
        try:
            return cls(value)
        except ValueError:
            return None

class Fit(str, Enum):
    REGULAR = "Regular Fit"
    SLIM = "Slim Fit"
    OVERSIZED = "Oversized"
    RELAXED = "Relaxed Fit"

class Size(str, Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"
    TWO_XL = "2XL"
    THREE_XL = "3XL"
    FOUR_XL = "4XL"
    FIVE_XL = "5XL"
    SIX_XL = "6XL"

class ProductDB(BaseModel):
    # Mongo's own _id is never exposed; `id` is the catalog number
    id: int
    name: str
    price: Decimal
    category: Category
    subcategory: str = ""
    image: str
    images: List[str] = []
    description: str = ""
    fabric: str = ""
    fit: Fit = Fit.REGULAR
    sizes: List[Size] = []
    colors: List[str] = []
    stock: int = 0
    rating: float = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(use_enum_values=True)
