import logging
import os
import secrets
import shutil
import string
import sys
import time
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx
from huggingface_hub import constants as hf_constants
from huggingface_hub.utils import build_hf_headers

from .entity import DownloaderConfig
from .errors import InsufficientSpaceError

logger = logging.getLogger(__name__)

TEMP_FILE_GLOB = "*_*.gguf"


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def env_bool(key: str, default: bool) -> bool:
    v = os.environ.get(key)
    if v is None:
        return default
    return v.lower() not in ("0", "false", "no", "")


def _env_number(key: str, default, cast):
    v = os.environ.get(key)
    if v is None or v == "":
        return default
    try:
        return cast(v)
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %r", key, v)
        return default


def build_config_from_env() -> DownloaderConfig:
    """Build a DownloaderConfig from LLAMARUNNER_* environment variables.

    - store_root: LLAMARUNNER_MODELS_DIR or ./models
    - endpoint: LLAMARUNNER_HF_ENDPOINT or the huggingface_hub endpoint (honors HF_ENDPOINT)
    - debug: LLAMARUNNER_DL_DEBUG, or DEBUG=1 as the shell runner accepted
    - token: LLAMARUNNER_HF_TOKEN or HF_TOKEN
    - retries/timeouts/thresholds: LLAMARUNNER_DL_* with the built-in defaults
    """
    defaults = DownloaderConfig()
    debug = env_bool("LLAMARUNNER_DL_DEBUG", False) or os.environ.get("DEBUG") == "1"
    token = os.environ.get("LLAMARUNNER_HF_TOKEN") or os.environ.get("HF_TOKEN") or None
    min_free_gb = _env_number("LLAMARUNNER_DL_MIN_FREE_GB", defaults.min_free_bytes / 1024 ** 3, float)

    return DownloaderConfig(
        store_root=Path(os.environ.get("LLAMARUNNER_MODELS_DIR") or defaults.store_root),
        endpoint=os.environ.get("LLAMARUNNER_HF_ENDPOINT") or hf_constants.ENDPOINT,
        debug=debug,
        token=token,
        metadata_timeout=_env_number("LLAMARUNNER_DL_METADATA_TIMEOUT", defaults.metadata_timeout, float),
        request_timeout_seconds=_env_number("LLAMARUNNER_DL_TIMEOUT", defaults.request_timeout_seconds, float),
        max_attempts=_env_number("LLAMARUNNER_DL_RETRIES", defaults.max_attempts, int),
        retry_delay_seconds=_env_number("LLAMARUNNER_DL_RETRY_DELAY", defaults.retry_delay_seconds, float),
        min_valid_bytes=_env_number("LLAMARUNNER_DL_MIN_BYTES", defaults.min_valid_bytes, int),
        min_free_bytes=int(min_free_gb * 1024 ** 3),
        temp_dir=Path(os.environ.get("LLAMARUNNER_DL_TEMP_DIR") or defaults.temp_dir),
    )


def configure_logging(debug: bool = False, log_file: Optional[str] = None) -> None:
    """Send downloader logs to stderr, and to log_file when given."""
    fmt = "[Downloader] %(asctime)s %(levelname)s: %(message)s"
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        ensure_dir(os.path.dirname(os.path.abspath(log_file)))
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=fmt,
                        datefmt="%Y-%m-%d %H:%M:%S", handlers=handlers, force=True)
    if not debug:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)


def hub_headers(config: DownloaderConfig) -> Dict[str, str]:
    return build_hf_headers(token=config.token)


def random_string(length: int = 8) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def temp_path_for(config: DownloaderConfig, filename: str) -> Path:
    return Path(config.temp_dir) / f"{random_string()}_{filename}"


def check_disk_space(path: Path, required_bytes: int) -> int:
    """Raise InsufficientSpaceError unless required_bytes are free at path."""
    ensure_dir(str(path))
    available = shutil.disk_usage(path).free
    if required_bytes > 0 and available < required_bytes:
        logger.error("Insufficient disk space: %.1fGB available", available / 1024 ** 3)
        raise InsufficientSpaceError(Path(path), available, required_bytes)
    logger.info("Disk space check passed: %.1fGB available", available / 1024 ** 3)
    return available


def wait_for_health(url: str, timeout: int = 30, *, client: Optional[httpx.Client] = None,
                    sleep: Callable[[float], None] = time.sleep) -> bool:
    """Poll url once per second for up to timeout seconds.

    Any HTTP response counts as up; only connection-level failures keep
    polling.
    """
    own_client = client is None
    client = client or httpx.Client(timeout=1.0)
    logger.info("Waiting for service to start...")
    try:
        for _ in range(timeout):
            try:
                client.get(url)
                return True
            except httpx.TransportError as e:
                logger.debug("Health check against %s failed: %r", url, e)
            sleep(1)
    finally:
        if own_client:
            client.close()
    return False


def cleanup_temp_files(temp_dir: Path, older_than_minutes: float = 60,
                       now: Optional[float] = None) -> int:
    """Delete stale partial downloads left in temp_dir; returns how many."""
    now = time.time() if now is None else now
    cutoff = now - older_than_minutes * 60
    removed = 0
    for path in Path(temp_dir).glob(TEMP_FILE_GLOB):
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except FileNotFoundError:
            continue
    if removed:
        logger.info("Removed %d temporary files", removed)
    return removed
