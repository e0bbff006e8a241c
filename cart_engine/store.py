import json
import logging
import os
import tempfile
from dataclasses import replace
from decimal import InvalidOperation
from typing import Callable, Iterator, List, Optional

from .errors import PersistenceError
from .models import CartState, LineItem, Product

logger = logging.getLogger("cart_engine.store")

Listener = Callable[[CartState], None]

STATE_VERSION = 1


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


class MemoryStore:
    def __init__(self, items: Optional[List[LineItem]] = None):
        self.state: CartState = tuple(items or ())
        self.saves = 0

    def load(self) -> CartState:
        return self.state

    def save(self, state: CartState) -> None:
        self.state = tuple(state)
        self.saves += 1


class JsonFileStore:
    """Keeps the cart in a JSON document on disk.

    A missing file loads as an empty cart. Any read, decode or write failure
    is raised as ``PersistenceError``.
    """

    def __init__(self, path):
        self.path = os.fspath(path)

    def load(self) -> CartState:
        if not os.path.exists(self.path):
            return ()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            return tuple(LineItem.from_dict(d) for d in payload["items"])
        except (OSError, ValueError, KeyError, TypeError, InvalidOperation) as exc:
            raise PersistenceError(f"cannot load cart from {self.path}: {exc}") from exc

    def save(self, state: CartState) -> None:
        payload = {"version": STATE_VERSION, "items": [i.to_dict() for i in state]}
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
        except OSError as exc:
            raise PersistenceError(f"cannot save cart to {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as exc:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise PersistenceError(f"cannot save cart to {self.path}: {exc}") from exc


class CartStore:
    """Owns the cart's line items.

    Quantities are clamped into ``[1, stock_available]`` instead of being
    rejected. Every mutation is handed to the persistence collaborator and
    to subscribed listeners; calls that change nothing do neither.
    """

    def __init__(self, persistence=None):
        self.persistence = persistence if persistence is not None else MemoryStore()
        self.unsaved = False
        self.degraded_load = False
        self._listeners: List[Listener] = []
        self._items: List[LineItem] = []
        try:
            loaded = list(self.persistence.load())
        except PersistenceError as exc:
            self.degraded_load = True
            logger.warning("cart load failed, starting empty: %s", exc)
            return
        for item in loaded:
            pos = self._index(item.product_id)
            if item.stock_available < 1:
                logger.info("dropped restored %s: no stock left", item.product_id)
                if pos is not None:
                    del self._items[pos]
                continue
            qty = clamp(int(item.quantity), 1, item.stock_available)
            if qty != item.quantity:
                logger.info("clamped restored %s qty %s -> %s", item.product_id, item.quantity, qty)
                item = replace(item, quantity=qty)
            if pos is None:
                self._items.append(item)
            else:
                self._items[pos] = item

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self.snapshot())

    def __contains__(self, product_id: object) -> bool:
        return self._index(product_id) is not None

    def _index(self, product_id) -> Optional[int]:
        for pos, item in enumerate(self._items):
            if item.product_id == product_id:
                return pos
        return None

    def get(self, product_id: str) -> Optional[LineItem]:
        pos = self._index(product_id)
        return None if pos is None else self._items[pos]

    def snapshot(self) -> CartState:
        return tuple(self._items)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_or_update(self, product: Product, requested_qty: int) -> CartState:
        pos = self._index(product.product_id)
        if product.stock_available < 1:
            # no quantity satisfies 1 <= qty <= 0
            if pos is None:
                logger.debug("skip add of out-of-stock product %s", product.product_id)
                return self.snapshot()
            del self._items[pos]
            logger.info("dropped %s: no stock left", product.product_id)
            return self._commit()

        qty = clamp(int(requested_qty), 1, product.stock_available)
        if qty != requested_qty:
            logger.debug("clamped %s qty %s -> %s", product.product_id, requested_qty, qty)
        item = LineItem.from_product(product, qty)
        if pos is None:
            self._items.append(item)
            logger.info("added %s qty=%s", product.product_id, qty)
        else:
            if self._items[pos] == item:
                return self.snapshot()
            self._items[pos] = item
            logger.info("updated %s qty=%s", product.product_id, qty)
        return self._commit()

    def remove(self, product_id: str) -> CartState:
        pos = self._index(product_id)
        if pos is None:
            return self.snapshot()
        del self._items[pos]
        logger.info("removed %s", product_id)
        return self._commit()

    def adjust_quantity(self, product_id: str, delta: int) -> CartState:
        pos = self._index(product_id)
        if pos is None or delta == 0:
            return self.snapshot()
        item = self._items[pos]
        new_qty = item.quantity + delta
        if not 1 <= new_qty <= item.stock_available:
            logger.debug("ignored %s qty change %s%+d", product_id, item.quantity, delta)
            return self.snapshot()
        self._items[pos] = replace(item, quantity=new_qty)
        return self._commit()

    def clear(self) -> CartState:
        if not self._items:
            return self.snapshot()
        self._items = []
        logger.info("cart cleared")
        return self._commit()

    def _commit(self) -> CartState:
        state = self.snapshot()
        try:
            self.persistence.save(state)
            self.unsaved = False
        except PersistenceError as exc:
            self.unsaved = True
            logger.warning("cart save failed, keeping in-memory state: %s", exc)
        for listener in list(self._listeners):
            listener(state)
        return state
