"""
services/image_storage.py — Local-disk storage for uploaded images.

Files are written under UPLOAD_FOLDER/<folder>/<uuid>.<ext> and referenced
from the database by that relative path ("products/3f2a….png").

Write ordering for multi-resource mutations:
  - Create/update: images are written FIRST (inside an UploadBatch), then the
    database row is committed. If anything inside the batch raises, every
    file it wrote is removed again before the exception propagates.
  - Delete: the database change is committed FIRST, then the old files are
    removed with remove_many(); removal failures are logged, never raised.

Layer rules:
  - No flask.request / flask.g. Receives werkzeug FileStorage objects.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from uuid import uuid4

from flask import Flask, current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from backend.app.errors import ErrorCode, InternalError, InvalidInputError

logger = logging.getLogger(__name__)

_EXTENSION_KEY = "image_storage"
PUBLIC_PREFIX = "/uploads/"


class ImageStorage:

    def __init__(self, root: str | os.PathLike, allowed_extensions: frozenset[str]) -> None:
        self.root = Path(root)
        self.allowed_extensions = frozenset(ext.lower() for ext in allowed_extensions)

    # ── Writes ─────────────────────────────────────────────────────────────

    def save(self, file: FileStorage, folder: str) -> str:
        """Validates and writes one upload; returns its relative storage path."""
        original = secure_filename(file.filename or "")
        extension = os.path.splitext(original)[1].lower().lstrip(".")
        if not original or extension not in self.allowed_extensions:
            raise InvalidInputError(
                ErrorCode.UNSUPPORTED_IMAGE,
                "Unsupported image format. Upload "
                + ", ".join(sorted(ext.upper() for ext in self.allowed_extensions))
                + " files.",
                field=file.name,
            )
        if file.mimetype and not file.mimetype.startswith("image/"):
            raise InvalidInputError(
                ErrorCode.UNSUPPORTED_IMAGE,
                "Only image uploads are accepted.",
                field=file.name,
            )

        relative = f"{folder}/{uuid4().hex}.{extension}"
        destination = self.root / relative
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            file.save(destination)
        except OSError as exc:
            logger.exception("Could not write upload %s", relative)
            raise InternalError("Could not store the uploaded image.") from exc
        logger.debug("Stored upload %s", relative)
        return relative

    def batch(self) -> "UploadBatch":
        return UploadBatch(self)

    # ── Removals ───────────────────────────────────────────────────────────

    def remove(self, relative: str | None) -> None:
        """Removes one stored file. Missing files and OS errors are logged only."""
        if not relative:
            return
        target = self._resolve(relative)
        if target is None:
            logger.warning("Refusing to remove path outside upload folder: %s", relative)
            return
        try:
            target.unlink()
        except FileNotFoundError:
            return
        except OSError:
            logger.exception("Could not remove stored file %s", relative)

    def remove_many(self, paths) -> None:
        for relative in paths:
            self.remove(relative)

    def exists(self, relative: str) -> bool:
        target = self._resolve(relative)
        return target is not None and target.is_file()

    def _resolve(self, relative: str) -> Path | None:
        root = self.root.resolve()
        target = (root / relative).resolve()
        if root not in target.parents:
            return None
        return target


class UploadBatch:
    """
    Tracks the files written during one request.

        with storage.batch() as uploads:
            path = uploads.save(file, "products")
            ...create rows...
            db.session.commit()

    Any exception inside the block removes every file saved by the batch.
    """

    def __init__(self, storage: ImageStorage) -> None:
        self.storage = storage
        self.saved: list[str] = []

    def save(self, file: FileStorage, folder: str) -> str:
        relative = self.storage.save(file, folder)
        self.saved.append(relative)
        return relative

    def discard(self) -> None:
        self.storage.remove_many(self.saved)
        self.saved.clear()

    def __enter__(self) -> "UploadBatch":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None and self.saved:
            logger.info("Discarding %d upload(s) after failed request", len(self.saved))
            self.discard()
        return False


def public_url(relative: str | None) -> str | None:
    """Maps a storage path to the URL it is served under (see app factory)."""
    if not relative:
        return None
    return PUBLIC_PREFIX + relative


def init_image_storage(app: Flask) -> ImageStorage:
    storage = ImageStorage(
        app.config["UPLOAD_FOLDER"],
        app.config.get("ALLOWED_IMAGE_EXTENSIONS", frozenset({"png", "jpg", "jpeg"})),
    )
    app.extensions[_EXTENSION_KEY] = storage
    return storage


def get_image_storage() -> ImageStorage:
    return current_app.extensions[_EXTENSION_KEY]
