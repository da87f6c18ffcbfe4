import pytest


@pytest.fixture
def anyio_backend():
    # The API is built on asyncio primitives (asyncio.to_thread/gather) per the spec.
    return "asyncio"
