"""llamarunner.downloader

Fetches a single GGUF model file from the Hugging Face hub into a local store.
Run as module: python -m llamarunner.downloader
"""

from .catalog import CandidateCatalog
from .entity import ArtifactId, ArtifactType, DownloaderConfig, LocalArtifact
from .errors import (
    ArtifactIOError,
    DownloadError,
    DownloaderError,
    InsufficientSpaceError,
    IntegrityError,
    InvalidIdError,
    LocalArtifactNotFoundError,
    NotFoundError,
)
from .huggingface import HuggingFaceDownloader
from .selection import check_compatibility, select_best_file
from .store import LocalModelStore
from .transfer import ResumableDownloader
from .utils import build_config_from_env

__all__ = [
    "ArtifactId",
    "ArtifactType",
    "DownloaderConfig",
    "LocalArtifact",
    "CandidateCatalog",
    "HuggingFaceDownloader",
    "LocalModelStore",
    "ResumableDownloader",
    "select_best_file",
    "check_compatibility",
    "build_config_from_env",
    "DownloaderError",
    "InvalidIdError",
    "NotFoundError",
    "LocalArtifactNotFoundError",
    "DownloadError",
    "IntegrityError",
    "ArtifactIOError",
    "InsufficientSpaceError",
]
