"""CLI entry point for Food Tracker."""

from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer

from .app_logging import configure_logging
from .backup import ArchiveImportError, BackupRunner, ExportError, ExportPackager, ImportMerger
from .catalog import CatalogManager, FoodstuffsNotFoundError, PhotoNotFoundError, record_data
from .config import ConfigManager
from .data_store import BackendType, RecordStore, StorageError, create_data_store
from .drafts import DraftValidationError, PriceValidationError
from .models import MergePolicy
from .output_formatter import OutputFormatter
from .photo_library import PhotoLibrary

app = typer.Typer(
    name="foodtracker",
    help="Catalogue groceries with prices, photos and reviews",
    no_args_is_help=True,
)

# Global state for formatter and config (set by callback)
formatter: OutputFormatter = OutputFormatter()
config: ConfigManager | None = None
data_store: RecordStore | None = None
photo_library: PhotoLibrary | None = None
catalog: CatalogManager | None = None


def get_config() -> ConfigManager:
    """Get or create ConfigManager instance."""
    global config
    if config is None:
        config = ConfigManager()
    return config


def get_catalog() -> CatalogManager:
    """Get or create CatalogManager instance."""
    global catalog
    if catalog is None:
        catalog = CatalogManager(data_store, photo_library)  # type: ignore[arg-type]
    return catalog


def fail(message: str, error_code: str | None = None) -> None:
    formatter.error(message, error_code=error_code)
    raise typer.Exit(code=1)


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON for programmatic use")
    ] = False,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Data directory path")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Food Tracker CLI - Keep track of what you buy and what it costs."""
    global formatter, config, data_store, photo_library, catalog

    formatter = OutputFormatter(json_mode=json_output)
    if verbose:
        configure_logging(verbose=True)

    config = ConfigManager()

    # CLI --data-dir overrides config, which overrides default
    effective_data_dir = data_dir if data_dir else config.data.storage_dir
    photos_dir = (
        effective_data_dir / "photos" if data_dir else config.data.effective_photos_dir
    )
    backend = BackendType(config.data.backend)

    try:
        data_store = create_data_store(backend=backend, data_dir=effective_data_dir)
        photo_library = PhotoLibrary(photos_dir)
    except (StorageError, OSError) as e:
        fail(str(e), error_code="STORAGE_ERROR")
    catalog = CatalogManager(data_store, photo_library)  # type: ignore[arg-type]


@app.command()
def add(
    name: Annotated[str, typer.Argument(help="Item name")],
    brand: Annotated[str, typer.Option("--brand", "-b", help="Brand")] = "",
    weight: Annotated[str, typer.Option("--weight", "-w", help="Weight in grams")] = "",
    barcode: Annotated[str, typer.Option("--barcode", help="Barcode digits")] = "",
    price: Annotated[str | None, typer.Option("--price", "-p", help="Regular price")] = None,
    special: Annotated[str, typer.Option("--special", "-s", help="Special offer price")] = "",
    review: Annotated[str, typer.Option("--review", "-r", help="First review")] = "",
    photo: Annotated[
        list[Path] | None, typer.Option("--photo", help="JPEG to attach (repeatable)")
    ] = None,
    enjoy: Annotated[bool, typer.Option("--enjoy", help="Mark as enjoyed")] = False,
    health: Annotated[bool, typer.Option("--health", help="Mark as healthy")] = False,
) -> None:
    """Add a foodstuff to the catalog."""
    if special and not price:
        fail("A special price needs a regular price", error_code="INVALID_PRICE")
    try:
        result = get_catalog().add_foodstuff(
            name=name,
            brand=brand,
            weight=weight,
            barcode=barcode,
            regular_price=price,
            special_price=special,
            review=review,
            enjoy=enjoy,
            health=health,
            photo_files=photo,
        )
        formatter.output(result, result["message"])
    except PriceValidationError as e:
        fail(str(e), error_code="INVALID_PRICE")
    except DraftValidationError as e:
        fail(str(e), error_code="INVALID_INPUT")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")
    except OSError as e:
        fail(str(e))


@app.command(name="list")
def list_foodstuffs(
    unsorted: Annotated[
        bool, typer.Option("--unsorted", help="Keep insertion order instead of sorting by name")
    ] = False,
) -> None:
    """List every foodstuff."""
    try:
        result = get_catalog().list_foodstuffs(sorted_by_name=not unsorted)
        formatter.output(result)
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


@app.command()
def show(
    record_id: Annotated[str, typer.Argument(help="Foodstuff ID")],
) -> None:
    """Show one foodstuff."""
    try:
        record = get_catalog().get_foodstuff(record_id)
        formatter.output({"success": True, "data": {"foodstuff": record_data(record)}})
    except FoodstuffsNotFoundError as e:
        fail(str(e), error_code="NOT_FOUND")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


@app.command()
def search(
    text: Annotated[str, typer.Argument(help="Text to look for in name or brand")],
) -> None:
    """Search foodstuffs by name or brand."""
    try:
        result = get_catalog().search(text)
        formatter.output(result, f"Matches for '{text}'")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


@app.command()
def brands(
    text: Annotated[str, typer.Argument(help="Part of a brand name")],
) -> None:
    """Suggest known brands."""
    try:
        suggestions = get_catalog().brand_suggestions(text)
        formatter.output({"success": True, "data": {"brands": suggestions}})
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


@app.command()
def edit(
    record_id: Annotated[str, typer.Argument(help="Foodstuff ID")],
    name: Annotated[str | None, typer.Option("--name", help="New name")] = None,
    brand: Annotated[str | None, typer.Option("--brand", "-b", help="New brand")] = None,
    weight: Annotated[str | None, typer.Option("--weight", "-w", help="New weight")] = None,
    barcode: Annotated[str | None, typer.Option("--barcode", help="New barcode")] = None,
    enjoy: Annotated[
        bool | None, typer.Option("--enjoy/--no-enjoy", help="Enjoy flag")
    ] = None,
    health: Annotated[
        bool | None, typer.Option("--health/--no-health", help="Health flag")
    ] = None,
) -> None:
    """Edit an existing foodstuff."""
    try:
        result = get_catalog().update_foodstuff(
            record_id,
            name=name,
            brand=brand,
            weight=weight,
            barcode=barcode,
            enjoy=enjoy,
            health=health,
        )
        formatter.output(result, result["message"])
    except FoodstuffsNotFoundError as e:
        fail(str(e), error_code="NOT_FOUND")
    except DraftValidationError as e:
        fail(str(e), error_code="INVALID_INPUT")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


@app.command()
def remove(
    record_id: Annotated[str, typer.Argument(help="Foodstuff ID")],
) -> None:
    """Remove a foodstuff and its photos."""
    try:
        result = get_catalog().remove_foodstuff(record_id)
        formatter.output(result, result["message"])
    except FoodstuffsNotFoundError as e:
        fail(str(e), error_code="NOT_FOUND")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


# Price subcommand group
price_app = typer.Typer(help="Price history commands")
app.add_typer(price_app, name="price")


@price_app.command("add")
def price_add(
    record_id: Annotated[str, typer.Argument(help="Foodstuff ID")],
    regular: Annotated[str, typer.Argument(help="Regular price")],
    special: Annotated[str, typer.Option("--special", "-s", help="Special offer price")] = "",
    on: Annotated[
        datetime | None, typer.Option("--date", "-d", help="Date seen, defaults to now")
    ] = None,
) -> None:
    """Record a price."""
    try:
        result = get_catalog().add_price(record_id, regular, special, on=on)
        formatter.output(result, result["message"])
    except FoodstuffsNotFoundError as e:
        fail(str(e), error_code="NOT_FOUND")
    except PriceValidationError as e:
        fail(str(e), error_code="INVALID_PRICE")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


@price_app.command("history")
def price_history(
    record_id: Annotated[str, typer.Argument(help="Foodstuff ID")],
) -> None:
    """View price history, newest first."""
    try:
        result = get_catalog().price_history(record_id)
        if not result["data"]["price_points"]:
            formatter.warning(f"No prices recorded for '{result['data']['item']}'")
            return
        formatter.output(result)
    except FoodstuffsNotFoundError as e:
        fail(str(e), error_code="NOT_FOUND")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


# Review subcommand group
review_app = typer.Typer(help="Review commands")
app.add_typer(review_app, name="review")


@review_app.command("add")
def review_add(
    record_id: Annotated[str, typer.Argument(help="Foodstuff ID")],
    text: Annotated[str, typer.Argument(help="Review text")],
) -> None:
    """Add a review."""
    if not text.strip():
        fail("Review text is empty", error_code="INVALID_INPUT")
    try:
        result = get_catalog().add_review(record_id, text)
        formatter.output(result, result["message"])
    except FoodstuffsNotFoundError as e:
        fail(str(e), error_code="NOT_FOUND")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


# Photo subcommand group
photo_app = typer.Typer(help="Photo commands")
app.add_typer(photo_app, name="photo")


@photo_app.command("add")
def photo_add(
    record_id: Annotated[str, typer.Argument(help="Foodstuff ID")],
    image: Annotated[Path, typer.Argument(help="JPEG file", exists=True, dir_okay=False)],
) -> None:
    """Attach a photo."""
    try:
        result = get_catalog().attach_photo(record_id, image)
        formatter.output(result, result["message"])
    except FoodstuffsNotFoundError as e:
        fail(str(e), error_code="NOT_FOUND")
    except (StorageError, OSError) as e:
        fail(str(e), error_code="STORAGE_ERROR")


@photo_app.command("remove")
def photo_remove(
    record_id: Annotated[str, typer.Argument(help="Foodstuff ID")],
    filename: Annotated[str, typer.Argument(help="Photo filename")],
) -> None:
    """Detach a photo and delete its file."""
    try:
        result = get_catalog().detach_photo(record_id, filename)
        formatter.output(result, result["message"])
    except (FoodstuffsNotFoundError, PhotoNotFoundError) as e:
        fail(str(e), error_code="NOT_FOUND")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


# Backup commands


def _backup_runner(policy: MergePolicy | None = None) -> BackupRunner:
    cfg = get_config()
    packager = ExportPackager(
        data_store,  # type: ignore[arg-type]
        photo_library,  # type: ignore[arg-type]
        archive_name=cfg.backup.archive_name,
    )
    merger = ImportMerger(
        data_store,  # type: ignore[arg-type]
        photo_library,  # type: ignore[arg-type]
        policy=policy or cfg.backup.merge_policy,
    )
    return BackupRunner(packager, merger)


@app.command(name="export")
def export_backup(
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Archive file or directory")
    ] = None,
) -> None:
    """Export every foodstuff and its photos to a zip archive."""
    try:
        with _backup_runner() as runner:
            result = runner.submit_export(output).result()
        formatter.output(
            {"success": True, "data": {"export": result.model_dump(mode="json")}},
            f"Exported {result.records} foodstuffs",
        )
    except ExportError as e:
        fail(str(e), error_code="EXPORT_FAILED")


@app.command(name="import")
def import_backup(
    archive: Annotated[Path, typer.Argument(help="Zip archive to import")],
    policy: Annotated[
        MergePolicy | None,
        typer.Option("--policy", help="What to do with records that already exist"),
    ] = None,
) -> None:
    """Import foodstuffs and photos from a zip archive."""
    try:
        with _backup_runner(policy) as runner:
            result = runner.submit_import(archive).result()
        formatter.output(
            {"success": True, "data": {"import": result.model_dump(mode="json")}},
            f"Imported {len(result.inserted)} new foodstuffs",
        )
    except ArchiveImportError as e:
        fail(str(e), error_code=f"IMPORT_FAILED_{e.reason.value.upper()}")
    except StorageError as e:
        fail(str(e), error_code="STORAGE_ERROR")


if __name__ == "__main__":
    app()
