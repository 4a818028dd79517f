import pytest

from scroll_paths.core.config import set_config
from scroll_paths.core.utils import transaction


def pytest_configure(config):
    config.addinivalue_line("markers", "smoke: mark test as a smoke test")
    config.addinivalue_line("markers", "integration: mark test as integration")


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "smoke" in item.nodeid:
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def _isolated_state():
    set_config({})
    transaction._ACCOUNT_LOCKS.clear()
    yield
    set_config({})
    transaction._ACCOUNT_LOCKS.clear()
