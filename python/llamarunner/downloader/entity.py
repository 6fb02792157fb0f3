import enum
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import InvalidIdError

_ARTIFACT_ID_RE = re.compile(r"[A-Za-z0-9_-]+/[A-Za-z0-9_.-]+")

DEFAULT_ENDPOINT = "https://huggingface.co"


@dataclass(frozen=True)
class ArtifactId:
    """Hub model identifier of the form ``owner/name``."""
    owner: str
    name: str

    @classmethod
    def parse(cls, value: str) -> "ArtifactId":
        if not isinstance(value, str) or not _ARTIFACT_ID_RE.fullmatch(value):
            raise InvalidIdError(value)
        owner, name = value.split("/", 1)
        return cls(owner=owner, name=name)

    @property
    def basename(self) -> str:
        return self.name

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


class ArtifactType(str, enum.Enum):
    COMPLETION = "completion"
    EMBEDDING = "embedding"
    RERANKING = "reranking"


@dataclass(frozen=True)
class LocalArtifact:
    """A model file materialized under the store root."""
    # display id derived from the file name; lossy when owner or name contains '_'
    model_id: str
    path: Path
    size_bytes: int
    size_human: str


@dataclass(frozen=True)
class DownloadAttempt:
    url: str
    dest: Path
    attempt: int


@dataclass
class DownloaderConfig:
    """Settings shared by catalog, transfer and store.

    Built once by the caller (see utils.build_config_from_env) and passed to
    every component, nothing reads module-level state.
    """
    store_root: Path = Path("./models")
    endpoint: str = DEFAULT_ENDPOINT
    debug: bool = False
    token: Optional[str] = None
    # catalog lookup
    metadata_timeout: float = 30.0
    # outer retry layer
    request_timeout_seconds: float = 3600.0
    max_attempts: int = 3
    retry_delay_seconds: float = 10.0
    # inner retry layer, per transport failure
    transport_retries: int = 3
    transport_retry_delay_seconds: float = 5.0
    min_valid_bytes: int = 1024 * 1024
    min_free_bytes: int = 5 * 1024 ** 3
    chunk_size: int = 1024 * 1024
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))

    def __post_init__(self):
        self.store_root = Path(self.store_root)
        self.temp_dir = Path(self.temp_dir)
        self.endpoint = self.endpoint.rstrip("/")
