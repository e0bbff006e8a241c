from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Mapping, Tuple, Union

Amount = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


def to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    # str() keeps 1000.01 as 1000.01 instead of its binary float expansion
    return Decimal(str(amount))


def to_cents(amount: Amount) -> int:
    value = to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(value * 100)


def from_cents(cents: int) -> float:
    return round(cents / 100, 2)


@dataclass(frozen=True)
class Product:
    product_id: str
    name: str
    unit_price: Decimal
    stock_available: int
    image_ref: str = ""

    def __post_init__(self) -> None:
        price = to_decimal(self.unit_price)
        if price < 0:
            raise ValueError(f"unit_price must be >= 0, got {price}")
        if self.stock_available < 0:
            raise ValueError(f"stock_available must be >= 0, got {self.stock_available}")
        object.__setattr__(self, "unit_price", price)

    @property
    def in_stock(self) -> bool:
        return self.stock_available > 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Product":
        """Build a product from a catalog record.

        Accepts the snake_case field names as well as the catalog API keys
        (``_id``, ``price``, ``countInStock``, ``image``).
        """
        def pick(*keys, default=None):
            for k in keys:
                if k in data:
                    return data[k]
            return default

        return cls(
            product_id=str(pick("product_id", "_id", "id")),
            name=pick("name", default=""),
            unit_price=to_decimal(pick("unit_price", "price", default=0)),
            stock_available=int(pick("stock_available", "countInStock", default=0)),
            image_ref=pick("image_ref", "image", default=""),
        )


@dataclass(frozen=True)
class LineItem:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    stock_available: int
    image_ref: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))

    @property
    def line_total_cents(self) -> int:
        return to_cents(self.unit_price * self.quantity)

    @property
    def line_total(self) -> float:
        return from_cents(self.line_total_cents)

    @property
    def in_stock(self) -> bool:
        return self.stock_available > 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "image_ref": self.image_ref,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "stock_available": self.stock_available,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LineItem":
        return cls(
            product_id=str(data["product_id"]),
            name=data.get("name", ""),
            unit_price=to_decimal(data["unit_price"]),
            quantity=int(data["quantity"]),
            stock_available=int(data["stock_available"]),
            image_ref=data.get("image_ref", ""),
        )

    @classmethod
    def from_product(cls, product: Product, quantity: int) -> "LineItem":
        return cls(
            product_id=product.product_id,
            name=product.name,
            unit_price=product.unit_price,
            quantity=quantity,
            stock_available=product.stock_available,
            image_ref=product.image_ref,
        )


CartState = Tuple[LineItem, ...]


@dataclass(frozen=True)
class PricingSummary:
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int
    item_count: int = 0

    @property
    def subtotal(self) -> float:
        return from_cents(self.subtotal_cents)

    @property
    def shipping_fee(self) -> float:
        return from_cents(self.shipping_cents)

    @property
    def tax(self) -> float:
        return from_cents(self.tax_cents)

    @property
    def total(self) -> float:
        return from_cents(self.total_cents)

    @property
    def free_shipping(self) -> bool:
        return self.shipping_cents == 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "subtotal": self.subtotal,
            "shipping_fee": self.shipping_fee,
            "tax": self.tax,
            "total": self.total,
            "item_count": self.item_count,
            "free_shipping": self.free_shipping,
        }
