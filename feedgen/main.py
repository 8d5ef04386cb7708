"""
Catalog Feed Generator - CLI Entry Point.
Production-grade CLI using Click and Rich.
"""

import sys
import asyncio
import json
import logging
from pathlib import Path
from functools import wraps
from typing import Any, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.logging import RichHandler

from feedgen import __version__
from feedgen.config.settings import get_settings
from feedgen.feeds.assembler import get_assembler, supported_platforms
from feedgen.models.schemas import ExclusionResult, GenerationResult, Product
from feedgen.pipeline.orchestrator import build_service
from feedgen.services.validation_service import ValidationService
from feedgen.storage.catalog import SqlCatalogStore
from feedgen.storage.database import create_db_engine, init_db
from feedgen.utils.errors import ErrorHandler
from feedgen.utils.logger import setup_logging

# Rich consoles; logs go to stderr
console = Console()
err_console = Console(stderr=True)

# =============================================================================
# Helper Functions
# =============================================================================

def async_command(f):
    """Decorator to run async click commands."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper


def setup_logger(verbose: bool):
    """Configure logging from settings; --verbose forces DEBUG."""
    settings = get_settings()
    level = "DEBUG" if verbose else settings.log_level
    setup_logging(level=level, json_format=settings.log_json)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )
    # Silence third-party libs
    logging.getLogger("botocore").setLevel(logging.WARNING)


def fail(error: Exception, verbose: bool = False) -> None:
    """Print an error with its response mapping and exit non-zero."""
    status_code, body = ErrorHandler.to_response(error)
    console.print(f"[bold red]Error ({status_code} {body['error']}):[/bold red] {body['message']}")
    for item in body.get("errors", []):
        console.print(f"  [red]-[/red] {item['field']}: {item['message']}")
    if verbose:
        console.print_exception()
    sys.exit(1)


def options_payload(
    domain: Optional[str],
    currency: Optional[str],
    product_type: Optional[str],
    language: Optional[str],
) -> dict[str, Any]:
    """Request options from command-line flags, leaving unset flags out."""
    payload = {
        "primaryDomain": domain,
        "currencyCode": currency,
        "productType": product_type,
        "language": language,
    }
    return {k: v for k, v in payload.items() if v is not None}


def print_result(result: GenerationResult) -> None:
    table = Table(title="Feed Generated", show_header=False)
    table.add_row("Feed", result.feed_name)
    table.add_row("Platform", str(result.platform))
    table.add_row("File Key", result.file_key)
    table.add_row("Products", str(result.product_count))
    table.add_row("Variants", str(result.variant_count))
    table.add_row("Items", str(result.item_count))
    table.add_row("Skipped", str(result.skipped_count))
    table.add_row("Size", f"{result.file_size} bytes")
    table.add_row("Duration", f"{result.duration_ms} ms")
    table.add_row("URL", result.file_url or "-")
    console.print(table)


def load_products(file_path: str) -> list[Product]:
    """Read a JSON catalog: a list of products or {"products": [...]}."""
    data = json.loads(Path(file_path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("products", [])
    return [Product.model_validate(item) for item in data]


product_type_option = click.option(
    "--product-type", type=click.Choice(["group", "variant"]), default=None,
    help="One item per product (group) or per variant (variant)",
)
currency_option = click.option("--currency", default=None, help="ISO currency code (default BRL)")
language_option = click.option("--language", default=None, help="Feed language (default pt-BR)")
verbose_option = click.option("--verbose", is_flag=True, help="Detailed logging")

# =============================================================================
# CLI Group
# =============================================================================

@click.group()
@click.version_option(version=__version__)
def cli():
    """Catalog Feed Generator"""
    pass

# =============================================================================
# Commands
# =============================================================================

@cli.command("init-db")
def init_database():
    """Create the catalog and feed record tables."""
    settings = get_settings()
    try:
        init_db(create_db_engine(settings.database_url))
    except Exception as e:
        fail(e)
    console.print(f"[green]✓[/green] Database ready: {settings.database_url}")


@cli.command()
@click.argument("file_path", type=click.Path(exists=True))
@verbose_option
@async_command
async def load_catalog(file_path: str, verbose: bool):
    """
    Load catalog products into the database.

    FILE_PATH: JSON file with a list of products.
    """
    setup_logger(verbose)

    try:
        products = load_products(file_path)
        engine = create_db_engine(get_settings().database_url)
        init_db(engine)
        count = await SqlCatalogStore(engine).add_products(products)
    except Exception as e:
        fail(e, verbose)

    console.print(f"[green]✓[/green] Loaded [cyan]{count}[/cyan] products")


@cli.command()
@click.option("--business-id", required=True, help="Catalog owner")
@click.option("--name", required=True, help="Feed name")
@click.option("--platform", required=True, type=click.Choice(["facebook", "pinterest"]))
@click.option("--domain", required=True, help="Store domain used in links")
@click.option("--file-key", default=None, help="Blob key (default {business_id}_{epoch_ms}.xml)")
@currency_option
@product_type_option
@language_option
@verbose_option
@async_command
async def generate(
    business_id: str,
    name: str,
    platform: str,
    domain: str,
    file_key: Optional[str],
    currency: Optional[str],
    product_type: Optional[str],
    language: Optional[str],
    verbose: bool,
):
    """Generate a new feed and upload it."""
    setup_logger(verbose)

    console.print(Panel.fit(f"[bold blue]Feed Generation[/bold blue]\nBusiness: [cyan]{business_id}[/cyan]"))

    try:
        request = ValidationService().validate_generate({
            "businessId": business_id,
            "name": name,
            "platform": platform,
            "fileKey": file_key,
            "options": options_payload(domain, currency, product_type, language),
        })
        async with build_service() as service:
            result = await service.generate(
                business_id=request.business_id,
                name=request.name,
                platform=request.platform,
                options=request.options.to_feed_options(),
                file_key=request.file_key,
            )
    except Exception as e:
        fail(e, verbose)

    print_result(result)


@cli.command()
@click.option("--business-id", required=True, help="Catalog owner")
@click.option("--file-key", required=True, help="Key of the feed to regenerate")
@click.option("--domain", default=None, help="New store domain")
@currency_option
@product_type_option
@language_option
@verbose_option
@async_command
async def update(
    business_id: str,
    file_key: str,
    domain: Optional[str],
    currency: Optional[str],
    product_type: Optional[str],
    language: Optional[str],
    verbose: bool,
):
    """Regenerate an existing feed; unset options keep their saved values."""
    setup_logger(verbose)

    try:
        payload = options_payload(domain, currency, product_type, language)
        request = ValidationService().validate_update({
            "businessId": business_id,
            "fileKey": file_key,
            "options": payload or None,
        })
        async with build_service() as service:
            result = await service.update(
                request.business_id,
                request.file_key,
                request.to_feed_options(),
            )
    except Exception as e:
        fail(e, verbose)

    print_result(result)


@cli.command()
@click.option("--business-id", required=True, help="Catalog owner")
@click.option("--file-key", required=True, help="Key of the feed to remove")
@verbose_option
@async_command
async def exclude(business_id: str, file_key: str, verbose: bool):
    """Delete a feed's file and its record."""
    setup_logger(verbose)

    try:
        request = ValidationService().validate_exclude({"businessId": business_id, "fileKey": file_key})
        async with build_service() as service:
            result: ExclusionResult = await service.exclude(request.business_id, request.file_key)
    except Exception as e:
        fail(e, verbose)

    table = Table(title="Feed Excluded", show_header=False)
    table.add_row("File Key", result.file_key)
    table.add_row("File Deleted", "[green]yes[/green]" if result.file_deleted else "[yellow]no[/yellow]")
    table.add_row("Record Deleted", "[green]yes[/green]" if result.record_deleted else "[yellow]no[/yellow]")
    console.print(table)


@cli.command()
@verbose_option
@async_command
async def reconcile(verbose: bool):
    """Mark runs abandoned in processing as failed."""
    setup_logger(verbose)

    try:
        async with build_service() as service:
            reconciled = await service.reconcile_stale_runs()
    except Exception as e:
        fail(e, verbose)

    if not reconciled:
        console.print("[green]No stale runs.[/green]")
        return
    for run in reconciled:
        console.print(f"[yellow]✗[/yellow] {run.file_key} ({run.business_id}) marked failed")


@cli.command()
@click.argument("file_path", type=click.Path(exists=True))
@click.option("--platform", default="facebook", type=click.Choice(["facebook", "pinterest"]))
@click.option("--domain", default=None, help="Store domain used in links")
@click.option("--output", "output_path", default=None, type=click.Path(), help="Write XML here instead of stdout")
@currency_option
@product_type_option
@language_option
@verbose_option
def preview(
    file_path: str,
    platform: str,
    domain: Optional[str],
    output_path: Optional[str],
    currency: Optional[str],
    product_type: Optional[str],
    language: Optional[str],
    verbose: bool,
):
    """
    Assemble a feed from a JSON catalog without touching storage.

    FILE_PATH: JSON file with a list of products.
    """
    setup_logger(verbose)

    try:
        products = load_products(file_path)
        request_options = ValidationService().validate_options(
            options_payload(domain, currency, product_type, language)
        )
        options = get_settings().default_feed_options().merged_with(request_options.to_feed_options())
        document = get_assembler(platform).assemble(products, options)
        data = document.serialize()
    except Exception as e:
        fail(e, verbose)

    if output_path:
        Path(output_path).write_bytes(data)
        stats = document.stats
        console.print(
            f"[green]✓[/green] {stats.item_count} items "
            f"({stats.product_count} products, {stats.skipped_count} skipped) written to {output_path}"
        )
    else:
        click.echo(data.decode("utf-8"))


@cli.command()
def validate_setup():
    """Check storage credentials and database configuration."""
    console.print("[bold]Validating Setup...[/bold]")

    try:
        settings = get_settings()

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Check")
        table.add_column("Status")
        table.add_column("Details")

        storage_ok = settings.storage_configured()
        status = "[green]Pass[/green]" if storage_ok else "[red]Fail[/red]"
        table.add_row("R2 Storage", status, settings.r2_endpoint() or "no endpoint")
        table.add_row("Bucket", status, settings.r2_bucket_name or "-")
        table.add_row("Public Domain", "[blue]Info[/blue]", settings.r2_public_domain or "bucket URL")
        table.add_row("Database", "[blue]Info[/blue]", settings.database_url)
        table.add_row("Platforms", "[blue]Info[/blue]", ", ".join(supported_platforms()))
        table.add_row("Environment", "[blue]Info[/blue]", settings.app_env)

        console.print(table)

        if not storage_ok:
            console.print("\n[yellow]Warning: R2 storage is not configured. Feeds cannot be uploaded.[/yellow]")
            sys.exit(1)

    except Exception as e:
        fail(e)

if __name__ == "__main__":
    cli()
