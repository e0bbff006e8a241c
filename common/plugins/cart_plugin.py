import pytest


def pytest_collection_modifyitems(config, items):
    """根据环境跳过慢测试，并按测试层级排序"""
    if config.getoption("--env") == "prod":
        for item in items:
            if "slow" in [m.name for m in item.iter_markers()]:
                item.add_marker(pytest.mark.skip(reason="生产环境跳过慢测试"))

    order = {"unit": 0, "contract": 1, "integration": 2, "e2e": 3}

    def item_priority(item):
        ranks = [order[m.name] for m in item.iter_markers() if m.name in order]
        return min(ranks) if ranks else len(order)

    items.sort(key=item_priority)


def pytest_report_header(config):
    return f"cart_engine env: {config.getoption('--env')}"
