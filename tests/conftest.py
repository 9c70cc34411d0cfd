import pytest

from apitest.config import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, log_level="debug", request_timeout=5.0)
