import logging
import time
from pathlib import Path
from typing import Callable, Optional, Union

import httpx
from huggingface_hub import hf_hub_url

from .catalog import CandidateCatalog
from .entity import ArtifactId, ArtifactType, DownloaderConfig
from .selection import check_compatibility, select_best_file
from .store import LocalModelStore
from .transfer import ResumableDownloader
from .utils import check_disk_space, ensure_dir, hub_headers, temp_path_for

logger = logging.getLogger(__name__)


class HuggingFaceDownloader:
    """Downloads a single GGUF file for a Hugging Face model id into the local store.

    Resolves the repository's files through the hub API, picks one by
    quantization preference, fetches it to a temp file and commits it as
    ``<store_root>/<owner>_<name>.gguf``. A model already present locally is
    returned without contacting the hub.
    """

    def __init__(self, config: DownloaderConfig, *, client: Optional[httpx.Client] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.catalog = CandidateCatalog(config, client=client)
        self.transfer = ResumableDownloader(config, client=client, sleep=sleep)
        self.store = LocalModelStore(config)

    def download_url(self, model_id: ArtifactId, filename: str) -> str:
        return hf_hub_url(str(model_id), filename, endpoint=self.config.endpoint)

    def _existing(self, model_id: ArtifactId) -> Optional[Path]:
        if not self.store.exists(model_id):
            return None
        path = self.store.path_for(model_id)
        logger.info("Model already exists locally: %s (%s)", path, self.store.human_size(path))
        return path

    def download_artifact(self, model_id: Union[str, ArtifactId],
                          model_type: Union[str, ArtifactType] = ArtifactType.COMPLETION) -> Path:
        if not isinstance(model_id, ArtifactId):
            model_id = ArtifactId.parse(model_id)
        model_type = ArtifactType(model_type)

        path = self._existing(model_id)
        if path is not None:
            return path

        with self.store.lock(model_id):
            # another process may have finished while we waited
            path = self._existing(model_id)
            if path is not None:
                return path
            return self._download_locked(model_id, model_type)

    def _download_locked(self, model_id: ArtifactId, model_type: ArtifactType) -> Path:
        check_disk_space(self.store.root, self.config.min_free_bytes)
        ensure_dir(str(self.config.temp_dir))

        logger.info("Downloading model: %s", model_id)
        files = self.catalog.resolve(model_id)
        selected = select_best_file(files)
        logger.info("Selected model file: %s", selected)

        warning = check_compatibility(model_id, model_type, selected)
        if warning:
            logger.warning(warning)

        url = self.download_url(model_id, selected)
        temp_path = temp_path_for(self.config, self.store.filename_for(model_id))
        final_path = self.store.path_for(model_id)
        logger.info("Downloading from: %s", url)
        logger.debug("Temporary path: %s", temp_path)
        logger.debug("Final path: %s", final_path)

        try:
            self.transfer.fetch(url, temp_path, headers=hub_headers(self.config))
            path = self.store.commit(temp_path, model_id)
        finally:
            temp_path.unlink(missing_ok=True)

        logger.info("Model downloaded successfully: %s (%s)", path, self.store.human_size(path))
        return path
