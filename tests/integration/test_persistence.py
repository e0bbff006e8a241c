import json

import pytest

from common.factories import make_product, make_products
from cart_engine.errors import PersistenceError
from cart_engine import store as store_module
from cart_engine.store import CartStore, JsonFileStore


@pytest.mark.integration
def test_cart_survives_restart(file_store, cart_file):
    store = CartStore(file_store)
    for p in make_products(3):
        store.add_or_update(p, 2)
    store.adjust_quantity("SKU-0", 1)
    store.remove("SKU-1")

    # 模拟进程重启：新的 store 从同一文件恢复
    restored = CartStore(JsonFileStore(cart_file))
    assert restored.snapshot() == store.snapshot()
    assert not restored.degraded_load

    payload = json.loads(cart_file.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert [d["product_id"] for d in payload["items"]] == ["SKU-0", "SKU-2"]


@pytest.mark.integration
def test_missing_file_is_empty_cart(file_store):
    assert file_store.load() == ()
    assert CartStore(file_store).snapshot() == ()


@pytest.mark.integration
def test_corrupt_file_degrades_to_empty(cart_file):
    cart_file.write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError):
        JsonFileStore(cart_file).load()

    store = CartStore(JsonFileStore(cart_file))
    assert store.degraded_load
    assert store.snapshot() == ()


@pytest.mark.integration
def test_duplicate_rows_collapse_on_load(cart_file):
    items = [
        {"product_id": "A", "name": "A", "image_ref": "", "unit_price": "10", "quantity": 1, "stock_available": 5},
        {"product_id": "B", "name": "B", "image_ref": "", "unit_price": "4", "quantity": 1, "stock_available": 5},
        {"product_id": "A", "name": "A", "image_ref": "", "unit_price": "10", "quantity": 3, "stock_available": 5},
    ]
    cart_file.write_text(json.dumps({"version": 1, "items": items}), encoding="utf-8")
    store = CartStore(JsonFileStore(cart_file))
    assert [(i.product_id, i.quantity) for i in store.snapshot()] == [("A", 3), ("B", 1)]


@pytest.mark.integration
def test_unwritable_location_keeps_memory_state(tmp_path):
    store = CartStore(JsonFileStore(tmp_path / "missing-dir" / "cart.json"))
    state = store.add_or_update(make_product("A"), 2)
    assert store.unsaved
    assert [i.quantity for i in state] == [2]


def _row(pid, qty, stock, price="10"):
    return {"product_id": pid, "name": pid, "image_ref": "", "unit_price": price,
            "quantity": qty, "stock_available": stock}


@pytest.mark.integration
def test_restored_quantities_are_brought_into_stock_range(cart_file):
    rows = [_row("A", 9, 2), _row("B", 0, 5), _row("C", 1, 0)]
    cart_file.write_text(json.dumps({"version": 1, "items": rows}), encoding="utf-8")

    store = CartStore(JsonFileStore(cart_file))
    assert [(i.product_id, i.quantity) for i in store.snapshot()] == [("A", 2), ("B", 1)]

    # 恢复后仍可正常调整数量
    store.adjust_quantity("A", -1)
    assert store.get("A").quantity == 1
    assert all(1 <= i.quantity <= i.stock_available for i in store.snapshot())


@pytest.mark.integration
def test_corrupt_price_degrades_to_empty(cart_file):
    cart_file.write_text(json.dumps({"version": 1, "items": [_row("A", 1, 5, price="abc")]}),
                         encoding="utf-8")
    with pytest.raises(PersistenceError):
        JsonFileStore(cart_file).load()

    store = CartStore(JsonFileStore(cart_file))
    assert store.degraded_load
    assert store.snapshot() == ()


@pytest.mark.integration
def test_failed_write_leaves_no_temp_file(tmp_path, monkeypatch):
    def broken_replace(src, dst):
        raise OSError("read-only")

    monkeypatch.setattr(store_module.os, "replace", broken_replace)
    store = CartStore(JsonFileStore(tmp_path / "cart.json"))
    store.add_or_update(make_product("A"), 1)
    assert store.unsaved
    assert list(tmp_path.iterdir()) == []
