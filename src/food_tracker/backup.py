"""Zip backup export and import.

An archive holds a ``Foodstuffs.json`` manifest, either at its root or inside
a single top-level folder, next to the photo files the manifest names.
"""

import json
import logging
import os
import shutil
import tempfile
import threading
import zipfile
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .data_store import RecordStore, StorageError
from .models import ExportResult, FoodstuffsTransfer, ImportResult, MergePolicy
from .photo_library import PhotoLibrary, is_bare_filename

logger = logging.getLogger(__name__)

MANIFEST_NAME = "Foodstuffs.json"
DEFAULT_ARCHIVE_NAME = "FoodstuffsBackup.zip"
_IGNORED_DIRS = ("__MACOSX",)


def is_photo_filename(filename: str) -> bool:
    """True for a name that can sit next to the manifest without replacing it."""
    return is_bare_filename(filename) and filename.casefold() != MANIFEST_NAME.casefold()


class ExportError(Exception):
    """Raised when an export cannot be staged or packaged."""


class ImportFailure(str, Enum):
    """Why an import was aborted."""

    NOT_FOUND = "not_found"
    UNPACK = "unpack"
    DECODE = "decode"


class ArchiveImportError(Exception):
    """Raised when an archive cannot be imported at all."""

    def __init__(self, reason: ImportFailure, message: str):
        self.reason = reason
        super().__init__(message)


class OperationInProgressError(Exception):
    """Raised when a backup operation is requested while another is running."""

    def __init__(self) -> None:
        super().__init__("Another export or import is still running")


def encode_manifest(transfers: list[FoodstuffsTransfer]) -> str:
    """Serialize transfer shapes with sorted keys and ISO-8601 dates."""
    payload = [t.model_dump(mode="json", by_alias=True) for t in transfers]
    return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def decode_manifest(text: str | bytes) -> tuple[list[FoodstuffsTransfer], list[str]]:
    """Decode a manifest.

    Entries that fail validation are skipped and reported, the rest are kept.

    Returns:
        Tuple of (transfer shapes, failure messages)

    Raises:
        ArchiveImportError: If the document is not a JSON list
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ArchiveImportError(ImportFailure.DECODE, f"Manifest is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ArchiveImportError(ImportFailure.DECODE, "Manifest must contain a list of records")

    transfers: list[FoodstuffsTransfer] = []
    failures: list[str] = []
    for index, entry in enumerate(data):
        try:
            transfers.append(FoodstuffsTransfer.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping manifest entry %d: %s", index, e)
            failures.append(f"record #{index}: {e.error_count()} validation error(s)")
    return transfers, failures


def locate_export_root(folder: Path) -> Path:
    """Find the folder holding the manifest inside an unpacked archive.

    Checks the folder itself, then its only subfolder.

    Raises:
        ArchiveImportError: If no manifest is found in either place
    """
    if (folder / MANIFEST_NAME).is_file():
        return folder

    subdirs = [
        p
        for p in folder.iterdir()
        if p.is_dir() and p.name not in _IGNORED_DIRS and not p.name.startswith(".")
    ]
    if len(subdirs) == 1 and (subdirs[0] / MANIFEST_NAME).is_file():
        return subdirs[0]

    raise ArchiveImportError(ImportFailure.NOT_FOUND, f"No {MANIFEST_NAME} found in archive")


class ExportPackager:
    """Snapshots every record and its photos into one zip archive."""

    def __init__(
        self,
        store: RecordStore,
        photos: PhotoLibrary,
        archive_name: str = DEFAULT_ARCHIVE_NAME,
    ):
        self.store = store
        self.photos = photos
        self.archive_name = archive_name

    def export(self, destination: Path | None = None) -> ExportResult:
        """Build a backup archive.

        Args:
            destination: Target file or directory. Defaults to a fresh
                         temporary directory.

        Returns:
            ExportResult describing the archive

        Raises:
            ExportError: If any step fails; nothing is left at destination
        """
        work_dir = Path(tempfile.mkdtemp(prefix="food-tracker-export-"))
        try:
            records = self.store.fetch_all()
            transfers = [FoodstuffsTransfer.from_record(r) for r in records]

            staging = work_dir / "FoodstuffsExport"
            staging.mkdir()
            (staging / MANIFEST_NAME).write_text(encode_manifest(transfers), encoding="utf-8")
            copied, missing = self._stage_photos(transfers, staging)

            archive = work_dir / self.archive_name
            self._package(staging, archive)
            final_path = self._deliver(archive, destination)
        except (OSError, StorageError, zipfile.BadZipFile) as e:
            logger.error("Export failed: %s", e)
            raise ExportError(f"Export failed: {e}") from e
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        logger.info(
            "Exported %d records and %d photos to %s", len(transfers), copied, final_path
        )
        return ExportResult(
            archive_path=final_path,
            records=len(transfers),
            photos_copied=copied,
            photos_missing=missing,
        )

    def _stage_photos(
        self, transfers: list[FoodstuffsTransfer], staging: Path
    ) -> tuple[int, list[str]]:
        """Copy each distinct referenced photo next to the manifest."""
        copied = 0
        missing: list[str] = []
        seen: set[str] = set()

        for transfer in transfers:
            for photo in transfer.photos:
                if photo.filename in seen:
                    continue
                seen.add(photo.filename)

                if not is_photo_filename(photo.filename):
                    logger.warning(
                        "Photo name %r clashes with the archive layout, leaving it out",
                        photo.filename,
                    )
                    missing.append(photo.filename)
                    continue
                if not self.photos.exists(photo.filename):
                    logger.warning("Photo %s is missing, leaving it out", photo.filename)
                    missing.append(photo.filename)
                    continue
                try:
                    shutil.copy2(self.photos.path_for(photo.filename), staging / photo.filename)
                    copied += 1
                except OSError as e:
                    logger.warning("Could not copy photo %s: %s", photo.filename, e)
                    missing.append(photo.filename)

        return copied, missing

    def _package(self, staging: Path, archive: Path) -> None:
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in sorted(staging.iterdir()):
                zf.write(path, arcname=path.name)

    def _deliver(self, archive: Path, destination: Path | None) -> Path:
        """Move the finished archive into place without exposing a partial file."""
        if destination is None:
            destination = Path(tempfile.mkdtemp(prefix="food-tracker-backup-"))
        if destination.is_dir():
            destination = destination / self.archive_name

        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        try:
            shutil.copyfile(archive, partial)
            os.replace(partial, destination)
        except OSError:
            partial.unlink(missing_ok=True)
            raise
        return destination


class ImportMerger:
    """Merges a backup archive into the record store and photo library."""

    def __init__(
        self,
        store: RecordStore,
        photos: PhotoLibrary,
        policy: MergePolicy = MergePolicy.KEEP_EXISTING,
    ):
        self.store = store
        self.photos = photos
        self.policy = policy

    def import_archive(self, archive: Path) -> ImportResult:
        """Import records and photos from an archive.

        Args:
            archive: Path to a zip produced by ExportPackager

        Returns:
            ImportResult with counts and any skipped items

        Raises:
            ArchiveImportError: If the archive or manifest is unusable; the
                                store is untouched in that case
            StorageError: If the store cannot be read or written; staged
                          changes are rolled back
        """
        work_dir = Path(tempfile.mkdtemp(prefix="food-tracker-import-"))
        try:
            self._unpack(archive, work_dir)
            root = locate_export_root(work_dir)
            transfers, failures = self._read_manifest(root)

            result = ImportResult(failures=failures)
            try:
                for transfer in transfers:
                    self._merge_record(transfer, result)
                    self._copy_photos(transfer, root, result)

                if self.store.has_pending_changes:
                    self.store.persist()
            except StorageError:
                self.store.rollback()
                raise
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        logger.info(
            "Imported %s: %d new, %d updated, %d unchanged, %d photos copied",
            archive,
            len(result.inserted),
            len(result.updated),
            len(result.unchanged),
            result.photos_copied,
        )
        if result.partial:
            logger.warning(
                "Import of %s skipped %d item(s) and %d missing photo(s)",
                archive,
                len(result.failures),
                len(result.photos_missing),
            )
        return result

    def _unpack(self, archive: Path, target: Path) -> None:
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(target)
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveImportError(ImportFailure.UNPACK, f"Cannot unpack {archive}: {e}") from e

    def _read_manifest(self, root: Path) -> tuple[list[FoodstuffsTransfer], list[str]]:
        try:
            text = (root / MANIFEST_NAME).read_bytes()
        except OSError as e:
            raise ArchiveImportError(ImportFailure.DECODE, f"Cannot read manifest: {e}") from e
        return decode_manifest(text)

    def _merge_record(self, transfer: FoodstuffsTransfer, result: ImportResult) -> None:
        try:
            existing = self.store.fetch_by_id(transfer.id)
            if existing is None:
                self.store.insert(transfer.to_record())
                result.inserted.append(transfer.id)
            elif self.policy == MergePolicy.OVERWRITE:
                self.store.insert(transfer.to_record())
                result.updated.append(transfer.id)
            else:
                result.unchanged.append(transfer.id)
        except ValidationError as e:
            logger.warning("Skipping record %s: %s", transfer.id, e)
            result.failures.append(f"record {transfer.id}: {e}")

    def _copy_photos(self, transfer: FoodstuffsTransfer, root: Path, result: ImportResult) -> None:
        for photo in transfer.photos:
            filename = photo.filename
            if not is_photo_filename(filename):
                logger.warning("Ignoring photo with unsafe name %r", filename)
                result.failures.append(f"photo {filename!r}: invalid filename")
                continue

            source = root / filename
            if not source.is_file():
                logger.warning("Photo %s is not in the archive", filename)
                result.photos_missing.append(filename)
                continue

            try:
                if self.photos.copy_in(source, filename):
                    result.photos_copied += 1
                else:
                    result.photos_present += 1
            except OSError as e:
                logger.warning("Could not copy photo %s: %s", filename, e)
                result.failures.append(f"photo {filename}: {e}")


class BackupRunner:
    """Runs exports and imports on a background thread, one at a time."""

    def __init__(self, packager: ExportPackager, merger: ImportMerger):
        self.packager = packager
        self.merger = merger
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="food-tracker-backup")
        self._lock = threading.Lock()
        self._busy = False

    @property
    def busy(self) -> bool:
        """True while an operation is outstanding."""
        with self._lock:
            return self._busy

    def submit_export(self, destination: Path | None = None) -> "Future[ExportResult]":
        return self._submit(self.packager.export, destination)

    def submit_import(self, archive: Path) -> "Future[ImportResult]":
        return self._submit(self.merger.import_archive, archive)

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        with self._lock:
            if self._busy:
                raise OperationInProgressError()
            self._busy = True

        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError:
            self._release()
            raise
        future.add_done_callback(lambda _: self._release())
        return future

    def _release(self) -> None:
        with self._lock:
            self._busy = False

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "BackupRunner":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
