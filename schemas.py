from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Each class name determines collection name (lowercased)

class Category(BaseModel):
    id: str
    name: str = Field(..., description="Unique category name, stored trimmed")
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

class Product(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    price: float
    stock: int
    # Embedded category, or the bare id when the category no longer exists
    category: Union[Category, str]
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

class ProductPage(BaseModel):
    products: List[Product]
    total: int

class Message(BaseModel):
    message: str


# Request bodies. Fields are optional here so missing values reach the
# handlers and come back as field errors rather than schema failures.

class CategoryIn(BaseModel):
    name: Optional[str] = None

class ProductIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Any = None
    price: Any = None
    stock: Any = None
    category: Any = None


class ProductListQuery(BaseModel):
    """Parsed ``GET /products`` query string."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)
    search: Optional[str] = None
    category: Optional[str] = None
    min_stock: Optional[float] = None
    max_stock: Optional[float] = None
    sort_by: str = "createdAt"
    order: str = "desc"

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def direction(self) -> int:
        return 1 if self.order == "asc" else -1
