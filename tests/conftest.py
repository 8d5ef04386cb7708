import pytest
from datetime import datetime, timedelta, timezone
from typing import Any

from feedgen.config.settings import Settings
from feedgen.models.schemas import FeedOptions, Product
from feedgen.pipeline.lifecycle import LifecycleTracker
from feedgen.pipeline.orchestrator import FeedGenerationService
from feedgen.storage.artifact_store import InMemoryArtifactStore
from feedgen.storage.catalog import InMemoryCatalogStore
from feedgen.storage.records import InMemoryFeedRecordStore


class FakeClock:
    """Deterministic clock; each call returns the current value, `advance` moves it."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_product(
    product_id: str = "p1",
    business_id: str = "b1",
    variants: list[dict[str, Any]] | None = None,
    **overrides: Any,
) -> Product:
    """Catalog product in its stored (camelCase) shape."""
    data: dict[str, Any] = {
        "productId": product_id,
        "business_id": business_id,
        "status": "active",
        "title": "basic cotton tee",
        "description": "<p>Soft cotton</p>",
        "handle": f"tee-{product_id}",
        "vendor": "Acme",
        "variants": variants if variants is not None else [
            {"variantId": f"{product_id}-v1", "price": 10.0},
        ],
    }
    data.update(overrides)
    return Product.model_validate(data)


@pytest.fixture
def product_factory():
    return make_product


@pytest.fixture
def settings():
    """Real settings isolated from the environment and .env files."""
    return Settings(
        _env_file=None,
        APP_ENV="development",
        DATABASE_URL="sqlite://",
        R2_ACCOUNT_ID="acct",
        R2_ACCESS_KEY_ID="key-id",
        R2_SECRET_ACCESS_KEY="secret",
        R2_BUCKET_NAME="feeds",
        R2_PUBLIC_DOMAIN="cdn.example.com",
        RUN_TIMEOUT_SECONDS=600,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return LifecycleTracker(clock=clock)


@pytest.fixture
def options():
    return FeedOptions(primary_domain="shop.com.br", currency_code="BRL")


@pytest.fixture
def catalog():
    return InMemoryCatalogStore([
        make_product("p1"),
        make_product("p2", variants=[{"variantId": "p2-v1", "price": 0}]),
    ])


@pytest.fixture
def records():
    return InMemoryFeedRecordStore()


@pytest.fixture
def artifacts():
    return InMemoryArtifactStore(public_domain="cdn.example.com")


@pytest.fixture
def service(catalog, records, artifacts, settings, tracker):
    return FeedGenerationService(
        catalog=catalog,
        records=records,
        artifacts=artifacts,
        settings=settings,
        tracker=tracker,
    )
