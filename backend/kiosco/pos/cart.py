from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..errors import StockExceeded
from .money import ZERO, quantize, to_decimal


@dataclass
class CartLine:
    """
    One product in the in-progress sale.

    product_name/category are snapshots taken when the product was added;
    price is a per-line copy that the cashier may override. subtotal is
    always derived from quantity and price.
    """
    product_id: int
    product_name: str
    quantity: int
    price: Decimal
    category: str = ""
    available_stock: int | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.price

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "category": self.category,
            "quantity": self.quantity,
            "price": self.price,
            "subtotal": self.subtotal,
        }


@dataclass
class Cart:
    """Ordered line items of a sale that has not been settled yet."""
    lines: list[CartLine] = field(default_factory=list)

    def _find(self, product_id: int) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), ZERO)

    def add_to_cart(self, product) -> CartLine:
        """
        Add one unit of product.

        Raises StockExceeded (cart unchanged) when the line already holds
        as many units as the product's current stock.
        """
        stock = int(product.stock or 0)
        existing = self._find(product.id)

        if existing:
            if existing.quantity + 1 > stock:
                raise StockExceeded(
                    "Insufficient stock",
                    details={
                        "product_id": product.id,
                        "requested_quantity": existing.quantity + 1,
                        "stock": stock,
                    },
                )
            existing.quantity += 1
            existing.available_stock = stock
            return existing

        line = CartLine(
            product_id=product.id,
            product_name=product.name,
            category=product.category or "",
            quantity=1,
            price=to_decimal(product.price),
            available_stock=stock,
        )
        self.lines.append(line)
        return line

    def update_quantity(self, product_id: int, quantity: int) -> CartLine | None:
        """
        Set a line's quantity; quantity <= 0 removes the line.

        The stock bound applies here too: a quantity above the stock known
        for the line raises StockExceeded and leaves the cart unchanged.
        """
        line = self._find(product_id)
        if line is None:
            return None

        if quantity <= 0:
            self.lines.remove(line)
            return None

        if line.available_stock is not None and quantity > line.available_stock:
            raise StockExceeded(
                "Insufficient stock",
                details={
                    "product_id": product_id,
                    "requested_quantity": quantity,
                    "stock": line.available_stock,
                },
            )

        line.quantity = quantity
        return line

    def update_price(self, product_id: int, price) -> CartLine | None:
        """
        Override a line's unit price, rounded to cents. Negative prices are
        ignored; non-numeric ones raise ValueError.
        """
        line = self._find(product_id)
        if line is None:
            return None

        new_price = to_decimal(price)
        if new_price < 0:
            return line

        line.price = quantize(new_price)
        return line

    def clear(self) -> None:
        self.lines.clear()

    def snapshot(self) -> list[dict]:
        return [line.to_dict() for line in self.lines]
