import errno
import fcntl
import logging
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List

from .entity import ArtifactId, DownloaderConfig, LocalArtifact
from .errors import ArtifactIOError, LocalArtifactNotFoundError
from .utils import ensure_dir

logger = logging.getLogger(__name__)

MODEL_SUFFIX = ".gguf"


def human_size(num_bytes: int) -> str:
    """Render a byte count with binary units: 512B, 1.5KB, 3.2MB, 4.1GB."""
    for unit, scale in (("GB", 1024 ** 3), ("MB", 1024 ** 2), ("KB", 1024)):
        if num_bytes >= scale:
            return f"{num_bytes / scale:.1f}{unit}"
    return f"{num_bytes}B"


class LocalModelStore:
    """Flat directory of ``<owner>_<name>.gguf`` files, one per model id.

    Every committed file gets the .gguf suffix, whatever the extension of
    the file it was downloaded from.
    """

    def __init__(self, config: DownloaderConfig):
        self.config = config
        self.root = Path(config.store_root)

    @staticmethod
    def filename_for(model_id: ArtifactId) -> str:
        return str(model_id).replace("/", "_") + MODEL_SUFFIX

    def path_for(self, model_id: ArtifactId) -> Path:
        return self.root / self.filename_for(model_id)

    def exists(self, model_id: ArtifactId) -> bool:
        return self.path_for(model_id).is_file()

    def human_size(self, path: Path) -> str:
        path = Path(path)
        if not path.is_file():
            return "N/A"
        return human_size(path.stat().st_size)

    @staticmethod
    def display_id(filename: str) -> str:
        # inverse of filename_for: first '_' becomes '/', so ids with '_' don't round-trip
        stem = filename[:-len(MODEL_SUFFIX)] if filename.endswith(MODEL_SUFFIX) else filename
        return stem.replace("_", "/", 1)

    def list(self) -> List[LocalArtifact]:
        if not self.root.is_dir():
            return []
        artifacts = []
        for path in sorted(self.root.rglob(f"*{MODEL_SUFFIX}")):
            if not path.is_file():
                continue
            size = path.stat().st_size
            artifacts.append(LocalArtifact(
                model_id=self.display_id(path.name),
                path=path,
                size_bytes=size,
                size_human=human_size(size),
            ))
        return artifacts

    def remove(self, model_id: ArtifactId) -> Path:
        path = self.path_for(model_id)
        if not path.is_file():
            logger.warning("Model not found locally: %s", model_id)
            raise LocalArtifactNotFoundError(str(model_id), path)
        try:
            path.unlink()
        except OSError as e:
            raise ArtifactIOError(f"failed to remove {path}: {e}") from e
        logger.info("Model removed: %s", model_id)
        return path

    def commit(self, temp_path: Path, model_id: ArtifactId) -> Path:
        """Move a verified download into its canonical location."""
        temp_path = Path(temp_path)
        target = self.path_for(model_id)
        if not target.parent.is_dir():
            raise ArtifactIOError(f"store directory does not exist: {target.parent}")
        try:
            os.replace(temp_path, target)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise ArtifactIOError(f"failed to move model to final location {target}: {e}") from e
            self._copy_across_devices(temp_path, target)
        logger.debug("Committed %s -> %s", temp_path, target)
        return target

    @staticmethod
    def _copy_across_devices(src: Path, target: Path) -> None:
        # stage next to the target so the final step is still a rename
        staging = target.with_name(f".{target.name}.partial")
        try:
            shutil.copy2(src, staging)
            os.replace(staging, target)
            src.unlink()
        except OSError as e:
            staging.unlink(missing_ok=True)
            raise ArtifactIOError(f"failed to move model to final location {target}: {e}") from e

    @contextmanager
    def lock(self, model_id: ArtifactId) -> Iterator[Path]:
        """Hold an exclusive advisory lock for model_id across processes."""
        lock_dir = self.root / ".locks"
        ensure_dir(str(lock_dir))
        lock_file = lock_dir / (self.filename_for(model_id)[:-len(MODEL_SUFFIX)] + ".lock")
        with open(lock_file, "w") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            try:
                yield lock_file
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)
