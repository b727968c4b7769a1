from typing import Optional

from pydantic import BaseModel


class Product(BaseModel):
    id: str
    code: str
    name: str
    category: str = ""
    item_category: str = ""
    price: float
    stock: int = 0
    description: str = ""
    variant_label: str = ""
    has_variants: bool = False
    status: Optional[str] = None
