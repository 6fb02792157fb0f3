"""Remote catalog lookup for GGUF model files."""
import logging
import re
from typing import List, Optional

import httpx

from .entity import ArtifactId, DownloaderConfig
from .errors import NotFoundError
from .utils import hub_headers

logger = logging.getLogger(__name__)

MODEL_FILE_RE = re.compile(r"\.(gguf|bin)$", re.IGNORECASE)
QUANTIZED_GGUF_RE = re.compile(r"(q4_0|q4_k_m|f16|q8_0).*\.gguf$", re.IGNORECASE)


def common_file_guesses(model_id: ArtifactId) -> List[str]:
    base = model_id.basename
    return [
        f"{base}.gguf",
        "model.gguf",
        "ggml-model-q4_0.gguf",
        "ggml-model-q4_k_m.gguf",
        f"{base}-q4_0.gguf",
        f"{base}-f16.gguf",
        "pytorch_model.bin",
    ]


class CandidateCatalog:
    """Resolves a model id to the model files published on the hub."""

    def __init__(self, config: DownloaderConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._client = client

    def api_url(self, model_id: ArtifactId) -> str:
        return f"{self.config.endpoint}/api/models/{model_id}"

    def model_url(self, model_id: ArtifactId) -> str:
        return f"{self.config.endpoint}/{model_id}"

    def _fetch_listing(self, model_id: ArtifactId) -> List[str]:
        api_url = self.api_url(model_id)
        model_url = self.model_url(model_id)
        client = self._client or httpx.Client(follow_redirects=True)
        try:
            resp = client.get(api_url, headers=hub_headers(self.config),
                              timeout=self.config.metadata_timeout)
        except httpx.HTTPError as e:
            raise NotFoundError(f"model metadata request failed for {model_id}: {e}", url=model_url) from e
        finally:
            if self._client is None:
                client.close()

        logger.debug("API URL: %s", api_url)
        logger.debug("HTTP Status: %s", resp.status_code)

        if not resp.is_success:
            raise NotFoundError(
                f"model not found or not accessible: {model_id} (HTTP {resp.status_code})", url=model_url
            )
        try:
            siblings = resp.json().get("siblings") or []
        except (ValueError, AttributeError) as e:
            raise NotFoundError(f"malformed metadata for {model_id}", url=model_url) from e
        if not isinstance(siblings, list):
            raise NotFoundError(f"malformed metadata for {model_id}", url=model_url)

        return [s["rfilename"] for s in siblings
                if isinstance(s, dict) and isinstance(s.get("rfilename"), str)]

    def resolve(self, model_id: ArtifactId) -> List[str]:
        """Return the candidate model files for model_id, never empty.

        Raises NotFoundError when the catalog rejects the id or nothing usable
        is listed.
        """
        logger.info("Validating model existence on %s...", self.config.endpoint)
        all_files = self._fetch_listing(model_id)

        files = [f for f in all_files if MODEL_FILE_RE.search(f)]
        if not files:
            logger.warning("No GGUF/bin files found in API response, analyzing all files...")
            files = [f for f in all_files if MODEL_FILE_RE.search(f)][:10]
        if not files:
            files = [f for f in all_files if QUANTIZED_GGUF_RE.search(f)][:5]
        if not files:
            logger.warning("Still no GGUF files found, trying common patterns...")
            # only the first guess is used
            files = common_file_guesses(model_id)[:1]

        if not files:
            raise NotFoundError(f"no suitable model files found for: {model_id}", url=self.model_url(model_id))

        logger.debug("Found model files: %s", files)
        return files
