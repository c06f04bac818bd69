# app/domain/schemas.py
from decimal import Decimal
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    StringConstraints,
    model_validator,
)

from app.domain.product import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    PRICE_MAX,
    QTY_MAX,
    Product,
)
from app.utils.settings import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

UUID4_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-4[0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}$"

ProductId = Annotated[str, StringConstraints(pattern=UUID4_PATTERN)]

Name = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH),
]
Description = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        min_length=DESCRIPTION_MIN_LENGTH,
        max_length=DESCRIPTION_MAX_LENGTH,
    ),
]
Price = Annotated[Decimal, Field(gt=0, le=PRICE_MAX, decimal_places=2)]
Qty = Annotated[int, Field(ge=0, le=QTY_MAX)]

# prices leave the API as JSON numbers, not strings
PriceOut = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ProductCreate(BaseModel):
    """Body of POST /products."""

    name: Name = Field(..., description="Unique product name")
    description: Description
    price: Price = Field(..., description="Unit price, at most 2 decimals")
    qty: Qty = Field(..., description="Units in stock")

    def fields(self) -> Dict[str, Any]:
        return self.model_dump()


class ProductUpdate(ProductCreate):
    """Body of PUT /products/{id}: every field is replaced."""


class ProductPatch(BaseModel):
    """Body of PATCH /products/{id}: any non-empty subset of the fields."""

    # defaults are not validated, an explicit null is still rejected
    name: Name = None
    description: Description = None
    price: Price = None
    qty: Qty = None

    @model_validator(mode="after")
    def at_least_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for the update")
        return self

    def fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class PaginationParams(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)


class ProductFilters(BaseModel):
    # populated by alias only: minPrice / maxPrice
    name: Optional[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]] = None
    min_price: Optional[Price] = Field(None, alias="minPrice")
    max_price: Optional[Price] = Field(None, alias="maxPrice")

    @model_validator(mode="after")
    def min_below_max(self):
        if self.min_price is not None and self.max_price is not None and self.min_price >= self.max_price:
            raise ValueError("minPrice must be less than maxPrice")
        return self

    def echo(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.name is not None:
            out["name"] = self.name
        if self.min_price is not None:
            out["minPrice"] = float(self.min_price)
        if self.max_price is not None:
            out["maxPrice"] = float(self.max_price)
        return out


class ProductListQuery(PaginationParams, ProductFilters):
    """Query string of GET /products, validated in one pass."""


class ProductOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str
    price: PriceOut
    qty: int
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_product(cls, product: Product) -> "ProductOut":
        return cls(**product.to_dict())


class PaginationMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")
    has_next: bool = Field(alias="hasNext")
    has_prev: bool = Field(alias="hasPrev")


class ProductEnvelope(BaseModel):
    success: bool = True
    data: ProductOut
    message: str | None = None


class ProductListEnvelope(BaseModel):
    success: bool = True
    data: List[ProductOut]
    pagination: PaginationMeta
    filters: Dict[str, Any] = Field(default_factory=dict)


class StatsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_products: int = Field(alias="totalProducts")
    timestamp: datetime


class StatsEnvelope(BaseModel):
    success: bool = True
    data: StatsOut
