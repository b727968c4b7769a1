from dataclasses import dataclass
from typing import Dict, List

from dealer_portal.schemas.product import Product


@dataclass
class CartLine:
    code: str
    name: str
    price: float
    qty: int = 1

    @property
    def total(self) -> float:
        return round(self.price * self.qty, 2)


class Cart:

    def __init__(self):
        self._lines: Dict[str, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def add(self, product: Product, qty: int = 1) -> CartLine:
        line = self._lines.get(product.code)
        if line is None:
            line = self._lines[product.code] = CartLine(product.code, product.name, product.price, 0)
        line.qty += qty
        return line

    def update_qty(self, code: str, delta: int):
        line = self._lines.get(code)
        if line is not None:
            line.qty = max(1, line.qty + delta)

    def remove(self, code: str):
        self._lines.pop(code, None)

    def clear(self):
        self._lines.clear()

    @property
    def total(self) -> float:
        return round(sum(line.total for line in self._lines.values()), 2)

    @property
    def count(self) -> int:
        return sum(line.qty for line in self._lines.values())
