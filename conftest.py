import logging

import pytest

from cart_engine.config import reset_policy_cache
from cart_engine.store import CartStore, JsonFileStore, MemoryStore

# 激活本地插件
pytest_plugins = [
    "common.plugins.cart_plugin",
]

POLICY_ENV = (
    "CART_POLICY_FILE",
    "CART_SHIPPING_FREE_THRESHOLD",
    "CART_SHIPPING_FLAT_FEE",
    "CART_TAX_RATE",
    "CART_RECOMMEND_LIMIT",
)


def pytest_addoption(parser):
    parser.addoption("--env", action="store", default="dev", help="运行环境")


@pytest.fixture(scope="session")
def env(pytestconfig):
    return pytestconfig.getoption("--env")


@pytest.fixture(autouse=True)
def clean_policy_env(monkeypatch):
    # 默认策略不受宿主机环境变量影响
    for key in POLICY_ENV:
        monkeypatch.delenv(key, raising=False)
    reset_policy_cache()
    yield
    reset_policy_cache()


@pytest.fixture(scope="function")
def free_shipping_500(monkeypatch):
    monkeypatch.setenv("CART_SHIPPING_FREE_THRESHOLD", "500")
    yield
    monkeypatch.delenv("CART_SHIPPING_FREE_THRESHOLD", raising=False)


@pytest.fixture(scope="function")
def log_capture(caplog):
    logger = logging.getLogger("cart_engine.pricing")
    caplog.set_level(logging.INFO, logger=logger.name)
    return caplog


@pytest.fixture
def memory():
    return MemoryStore()


@pytest.fixture
def store(memory):
    return CartStore(memory)


@pytest.fixture(scope="function")
def cart_file(tmp_path):
    p = tmp_path / "cart.json"
    yield p
    p.unlink(missing_ok=True)


@pytest.fixture
def file_store(cart_file):
    return JsonFileStore(cart_file)
