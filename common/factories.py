from dataclasses import dataclass
from typing import List

from cart_engine.models import LineItem, Product
from cart_engine.store import CartStore, MemoryStore


@dataclass(frozen=True)
class Defaults:
    base_price: float = 10.0
    stock: int = 5


def make_product(pid: str = "P1", price=Defaults.base_price, stock: int = Defaults.stock) -> Product:
    return Product(product_id=pid, name=f"Product {pid}", unit_price=price,
                   stock_available=stock, image_ref=f"/images/{pid}.jpg")


def make_products(n: int = 1, base: float = Defaults.base_price) -> List[Product]:
    return [make_product(f"SKU-{i}", price=base + i) for i in range(n)]


def make_catalog_page(*ids: str) -> List[dict]:
    # 目录服务返回的原始记录格式
    return [
        {"_id": pid, "name": f"Product {pid}", "image": f"/images/{pid}.jpg",
         "price": 25, "countInStock": 3}
        for pid in ids
    ]


def make_store(products: List[Product] = None, qty: int = 1, persistence=None) -> CartStore:
    s = CartStore(persistence if persistence is not None else MemoryStore())
    if products:
        for p in products:
            s.add_or_update(p, qty)
    return s


class FakeCatalog:
    def __init__(self, pages: List[list]):
        self.pages = list(pages)
        self.calls: List[int] = []

    def fetch(self, limit: int):
        self.calls.append(limit)
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


def make_line(pid: str = "P1", price=Defaults.base_price, qty: int = 1, stock: int = 10) -> LineItem:
    return LineItem(product_id=pid, name=f"Product {pid}", unit_price=price,
                    quantity=qty, stock_available=stock)
