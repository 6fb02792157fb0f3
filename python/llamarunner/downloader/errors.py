"""Error types raised by the downloader package."""

from pathlib import Path
from typing import Optional


class DownloaderError(Exception):
    """Base exception for all downloader errors."""


class InvalidIdError(DownloaderError, ValueError):
    """Model id does not match ``owner/name``."""

    def __init__(self, model_id) -> None:
        self.model_id = model_id
        super().__init__(f"invalid model id {model_id!r}, expected format: username/model-name")


class NotFoundError(DownloaderError):
    """Catalog lookup failed or produced no usable file."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        self.url = url
        if url:
            message = f"{message} (verify at: {url})"
        super().__init__(message)


class LocalArtifactNotFoundError(NotFoundError):
    """No file for the model id exists in the local store."""

    def __init__(self, model_id: str, path: Path) -> None:
        self.model_id = model_id
        self.path = path
        super().__init__(f"model not found locally: {model_id} ({path})")


class DownloadError(DownloaderError):
    """All transfer attempts failed."""

    def __init__(self, url: str, attempts: int, message: str = "") -> None:
        self.url = url
        self.attempts = attempts
        detail = f": {message}" if message else ""
        super().__init__(f"download failed after {attempts} attempts: {url}{detail}")


class IntegrityError(DownloaderError):
    """Transfer finished but the file is missing, empty or too small."""

    def __init__(self, path: Path, size: int, min_bytes: int) -> None:
        self.path = path
        self.size = size
        self.min_bytes = min_bytes
        super().__init__(
            f"downloaded file appears corrupted or incomplete: {path} ({size} bytes, minimum {min_bytes})"
        )


class ArtifactIOError(DownloaderError):
    """Local filesystem operation on the store failed."""


class InsufficientSpaceError(DownloaderError):
    def __init__(self, path: Path, available: int, required: int) -> None:
        self.path = path
        self.available = available
        self.required = required
        super().__init__(
            f"insufficient disk space at {path}: {available / 1024 ** 3:.1f}GB available, "
            f"{required / 1024 ** 3:.1f}GB required"
        )
