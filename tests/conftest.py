# tests/conftest.py
import os

# Settings read the environment at import time, so this must run before any
# application module is imported.
os.environ.setdefault("SHOPIFY_STORE", "test-store")
os.environ.setdefault("SHOPIFY_ACCESS_TOKEN", "shpat_test")
os.environ.setdefault("PRIMECOD_TOKEN", "primecod_test")
os.environ["SYNC_WORKER_ENABLED"] = "false"
os.environ.pop("SYNC_SECRET", None)

import pytest  # noqa: E402

from config import Settings  # noqa: E402
from tests.fakes import FakePrimeCOD, FakeShopify  # noqa: E402


@pytest.fixture()
def config() -> Settings:
    return Settings(
        shopify_store="test-store",
        shopify_access_token="shpat_test",
        primecod_token="primecod_test",
        live_email_lookup=False,
        sync_secret=None,
    )


@pytest.fixture()
def fake_shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture()
def shop(fake_shopify, config):
    client = fake_shopify.client(config)
    try:
        yield client
    finally:
        client.close()


@pytest.fixture()
def fake_primecod() -> FakePrimeCOD:
    return FakePrimeCOD()
