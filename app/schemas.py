from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------- Справочники ----------

class MaterialOut(BaseModel):
    id: int
    name: str
    waste_percentage: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class ProductTypeOut(BaseModel):
    id: int
    name: str
    ratio: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class WorkshopOut(BaseModel):
    id: int
    name: str
    kind: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ---------- Продукция ----------

class ProductCreate(BaseModel):
    product_name: str = Field(min_length=1)
    material_id: int = Field(gt=0)
    type_id: int = Field(gt=0)
    min_price: Decimal = Field(default=Decimal("0"), ge=0)
    article: str = ""


class WorkshopTimeIn(BaseModel):
    workshop_id: int = Field(gt=0)
    production_time: Decimal = Field(ge=0)


class ProductWithWorkshopsCreate(ProductCreate):
    workshops: List[WorkshopTimeIn] = Field(default_factory=list)


# ---------- Карточка продукции с суммарным временем ----------

class ProductWithTime(BaseModel):
    id: int
    product_name: str
    material_name: str
    type_name: str
    min_price: float
    article: str
    total_production_time: float


class ProductList(BaseModel):
    products: List[ProductWithTime]
    count: int


class Message(BaseModel):
    message: str
