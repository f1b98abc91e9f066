import pytest

from pixelping.config import Config


@pytest.fixture(autouse=True)
def default_config():
    """Every test starts from the built-in defaults."""
    Config.load(None)
    yield Config()
    Config.load(None)
