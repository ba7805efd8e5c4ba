import pytest

from ramcore.profiles import profile_manager


@pytest.fixture(autouse=True)
def _reset_profile():
    profile_manager.load_default()
    yield
    profile_manager.load_default()
