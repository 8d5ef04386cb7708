"""
Integration tests for the CLI using Click's CliRunner.
"""

import asyncio
import json
import xml.etree.ElementTree as ET
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from feedgen.config.settings import Settings
from feedgen.main import cli
from feedgen.models.schemas import RunStatus
from feedgen.pipeline.orchestrator import FeedGenerationService
from feedgen.storage.catalog import SqlCatalogStore
from feedgen.storage.database import create_db_engine

# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def patched_settings(settings):
    with patch("feedgen.main.get_settings", return_value=settings):
        yield settings


@pytest.fixture
def patched_service(catalog, records, artifacts, settings, tracker):
    """build_service returning a fresh service over shared in-memory stores."""
    def build(*args, **kwargs):
        return FeedGenerationService(catalog, records, artifacts, settings=settings, tracker=tracker)

    with patch("feedgen.main.build_service", side_effect=build) as mock_build:
        yield mock_build


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"products": [
        {
            "productId": "p1",
            "business_id": "b1",
            "title": "linen shirt",
            "handle": "linen-shirt",
            "variants": [{"variantId": "v1", "price": 49.9, "compareAtPrice": 59.9}],
        },
        {
            "productId": "p2",
            "business_id": "b1",
            "title": "draft",
            "status": "draft",
            "handle": "draft",
            "variants": [{"variantId": "v2", "price": 10}],
        },
    ]}))
    return path


def generate_args(file_key="k.xml", domain="shop.com.br"):
    return [
        "generate",
        "--business-id", "b1",
        "--name", "Main feed",
        "--platform", "facebook",
        "--domain", domain,
        "--file-key", file_key,
    ]


# =============================================================================
# Tests
# =============================================================================

def test_cli_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("generate", "update", "exclude", "preview", "reconcile", "init-db"):
        assert command in result.output


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "1.0.0" in result.output


def test_generate_success(runner, patched_service, records, artifacts):
    result = runner.invoke(cli, generate_args())

    assert result.exit_code == 0, result.output
    assert "Feed Generated" in result.output
    assert "k.xml" in artifacts.blobs
    run = asyncio.run(records.find("k.xml"))
    assert run.status == RunStatus.COMPLETED


def test_generate_invalid_domain(runner, patched_service, records):
    result = runner.invoke(cli, generate_args(domain="not a domain"))

    assert result.exit_code == 1
    assert "primaryDomain" in result.output
    patched_service.assert_not_called()


def test_generate_rejects_unknown_platform(runner, patched_service):
    args = generate_args()
    args[args.index("facebook")] = "google"
    result = runner.invoke(cli, args)

    assert result.exit_code == 2
    patched_service.assert_not_called()


def test_update_existing_feed(runner, patched_service, artifacts):
    runner.invoke(cli, generate_args())

    result = runner.invoke(cli, [
        "update", "--business-id", "b1", "--file-key", "k.xml", "--currency", "usd",
    ])

    assert result.exit_code == 0, result.output
    assert b"10.00 USD" in artifacts.blobs["k.xml"]


def test_update_missing_feed(runner, patched_service):
    result = runner.invoke(cli, ["update", "--business-id", "b1", "--file-key", "missing.xml"])

    assert result.exit_code == 1
    assert "Feed not found" in result.output


def test_exclude_feed(runner, patched_service, records, artifacts):
    runner.invoke(cli, generate_args())

    result = runner.invoke(cli, ["exclude", "--business-id", "b1", "--file-key", "k.xml"])

    assert result.exit_code == 0, result.output
    assert "Feed Excluded" in result.output
    assert artifacts.blobs == {}
    assert asyncio.run(records.find("k.xml")) is None


def test_reconcile_without_stale_runs(runner, patched_service):
    result = runner.invoke(cli, ["reconcile"])

    assert result.exit_code == 0
    assert "No stale runs" in result.output


def test_preview_to_stdout(runner, catalog_file):
    result = runner.invoke(cli, ["preview", str(catalog_file), "--domain", "shop.com"])

    assert result.exit_code == 0, result.output
    assert "<rss" in result.output
    assert "https://shop.com/products/linen-shirt" in result.output
    assert "<g:sale_price>49.90 BRL</g:sale_price>" in result.output
    assert "draft" not in result.output


def test_preview_to_file(runner, catalog_file, tmp_path):
    output = tmp_path / "feed.xml"
    result = runner.invoke(cli, [
        "preview", str(catalog_file),
        "--platform", "pinterest",
        "--product-type", "variant",
        "--output", str(output),
    ])

    assert result.exit_code == 0, result.output
    assert "1 items" in result.output
    root = ET.fromstring(output.read_bytes())
    assert root.findtext("channel/description") == "Product feed for Pinterest Catalog"
    assert root.findtext("channel/item/link") == "https://defaultdomain.com/products/linen-shirt?variant=v1"


def test_preview_invalid_currency(runner, catalog_file):
    result = runner.invoke(cli, ["preview", str(catalog_file), "--currency", "REAL"])

    assert result.exit_code == 1
    assert "currencyCode" in result.output


def test_validate_setup_configured(runner):
    result = runner.invoke(cli, ["validate-setup"])

    assert result.exit_code == 0
    assert "R2 Storage" in result.output


def test_validate_setup_missing_storage(runner, patched_settings):
    unconfigured = Settings(_env_file=None, DATABASE_URL="sqlite://")
    with patch("feedgen.main.get_settings", return_value=unconfigured):
        result = runner.invoke(cli, ["validate-setup"])

    assert result.exit_code == 1
    assert "not configured" in result.output


def test_init_db_and_load_catalog(runner, catalog_file, tmp_path):
    db_url = f"sqlite:///{tmp_path / 'feeds.db'}"
    file_settings = Settings(_env_file=None, DATABASE_URL=db_url)

    with patch("feedgen.main.get_settings", return_value=file_settings):
        init_result = runner.invoke(cli, ["init-db"])
        load_result = runner.invoke(cli, ["load-catalog", str(catalog_file)])

    assert init_result.exit_code == 0, init_result.output
    assert load_result.exit_code == 0, load_result.output
    assert "Loaded" in load_result.output

    products = asyncio.run(SqlCatalogStore(create_db_engine(db_url)).list_active_products("b1"))
    assert [p.product_id for p in products] == ["p1"]
