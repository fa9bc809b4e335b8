"""Application-managed photo directory."""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from .models import Photo, utc_now

logger = logging.getLogger(__name__)

PHOTO_SUFFIX = ".jpg"


def is_bare_filename(filename: str) -> bool:
    """True for a plain file name with no directory parts."""
    if not filename or filename in (".", ".."):
        return False
    return Path(filename).name == filename and "\\" not in filename


class PhotoLibrary:
    """Flat directory of JPEG files referenced by Photo entities.

    Filenames are unique tokens, so two photos never share a file.
    """

    def __init__(self, photos_dir: Path):
        self.photos_dir = photos_dir
        self.photos_dir.mkdir(parents=True, exist_ok=True)

    def new_filename(self) -> str:
        """Generate a filename not yet used in the library."""
        while True:
            filename = f"{uuid4().hex}{PHOTO_SUFFIX}"
            if not self.path_for(filename).exists():
                return filename

    def path_for(self, filename: str) -> Path:
        if not is_bare_filename(filename):
            raise ValueError(f"Invalid photo filename: {filename!r}")
        return self.photos_dir / filename

    def exists(self, filename: str) -> bool:
        return is_bare_filename(filename) and self.path_for(filename).is_file()

    def save(self, data: bytes, on: datetime | None = None) -> Photo:
        """Write JPEG bytes under a fresh name.

        Args:
            data: Encoded JPEG image
            on: Photo date, defaults to now

        Returns:
            Photo referencing the new file
        """
        filename = self.new_filename()
        self.path_for(filename).write_bytes(data)
        logger.debug("Saved photo %s (%d bytes)", filename, len(data))
        return Photo(filename=filename, date=on if on is not None else utc_now())

    def import_file(self, source: Path, on: datetime | None = None) -> Photo:
        """Copy an image file from elsewhere into the library."""
        return self.save(source.read_bytes(), on=on)

    def read(self, filename: str) -> bytes | None:
        """Photo bytes, or None when the file is missing."""
        if not self.exists(filename):
            return None
        return self.path_for(filename).read_bytes()

    def delete(self, filename: str) -> bool:
        """Remove a photo file. Returns False if it was already gone."""
        if not self.exists(filename):
            return False
        self.path_for(filename).unlink()
        logger.debug("Deleted photo %s", filename)
        return True

    def copy_in(self, source: Path, filename: str) -> bool:
        """Copy a file into the library unless the name is already taken.

        Existing photo bytes are never overwritten.

        Returns:
            True if the file was copied
        """
        destination = self.path_for(filename)
        if destination.exists():
            return False
        shutil.copy2(source, destination)
        return True

    def filenames(self) -> list[str]:
        return sorted(p.name for p in self.photos_dir.iterdir() if p.is_file())
