from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator


class Category(BaseModel):
    id: int
    name: str
    description: Optional[str] = None


class Template(BaseModel):
    id: int
    name: str
    categoryId: Optional[int] = None


class ProductVariation(BaseModel):
    name: str
    price: Optional[Decimal] = None

    @field_validator("price", mode="before")
    @classmethod
    def _price_from_float(cls, v: Any) -> Any:
        if isinstance(v, float):
            return Decimal(str(v))
        return v


class Product(BaseModel):
    id: int
    name: str
    basePrice: Decimal
    unit: str = "each"
    categoryId: Optional[int] = None
    variations: List[ProductVariation] = Field(default_factory=list)

    @field_validator("basePrice", mode="before")
    @classmethod
    def _price_from_float(cls, v: Any) -> Any:
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("variations", mode="before")
    @classmethod
    def _null_variations(cls, v: Any) -> Any:
        return v or []

    def variation(self, name: Optional[str]) -> Optional[ProductVariation]:
        if not name:
            return None
        return next((v for v in self.variations if v.name == name), None)
