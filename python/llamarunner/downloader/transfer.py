import logging
import sys
import time
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx
from tqdm import tqdm

from .entity import DownloadAttempt, DownloaderConfig
from .errors import ArtifactIOError, DownloadError, IntegrityError

logger = logging.getLogger(__name__)

# statuses the inner layer treats like a dropped connection
TRANSIENT_STATUS = {408, 429, 500, 502, 503, 504}


class _DeadlineExceeded(Exception):
    pass


class _LoggingProgressBar:
    """Progress tracker for non-TTY environments.

    Logs at regular intervals instead of redrawing a single line, and exposes
    the small part of the tqdm interface the transfer loop uses.
    """

    def __init__(self, *args, **kwargs):
        self.total = kwargs.get('total') or 0
        self.desc = kwargs.get('desc', 'Downloading')
        self.n = kwargs.get('initial', 0)
        self.last_log_time = time.time()
        self.log_interval = 10.0  # Log every 10 seconds
        self.last_percent = int((self.n / self.total) * 100) if self.total > 0 else 0

        if self.total > 0:
            logger.info("%s: Starting (total: %.1f MB, resuming at %.1f MB)",
                        self.desc, self.total / (1024 * 1024), self.n / (1024 * 1024))
        else:
            logger.info("%s: Starting (size unknown)", self.desc)

    def update(self, n=1):
        self.n += n
        current_time = time.time()
        current_mb = self.n / (1024 * 1024)

        if self.total > 0:
            percent = int((self.n / self.total) * 100)

            # Log if: 10 seconds passed OR percentage increased by 20% OR completed
            time_elapsed = current_time - self.last_log_time >= self.log_interval
            percent_changed = percent - self.last_percent >= 20
            completed = self.n >= self.total

            if time_elapsed or percent_changed or completed:
                logger.info("%s: %.1f / %.1f MB (%d%%)",
                            self.desc, current_mb, self.total / (1024 * 1024), percent)
                self.last_log_time = current_time
                self.last_percent = percent
        elif current_time - self.last_log_time >= self.log_interval:
            logger.info("%s: %.1f MB downloaded", self.desc, current_mb)
            self.last_log_time = current_time

    def close(self):
        if self.n > 0:
            logger.info("%s: Completed %.1f MB", self.desc, self.n / (1024 * 1024))

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def make_progress(total: Optional[int], initial: int, desc: str):
    if sys.stderr.isatty():
        return tqdm(total=total, initial=initial, desc=desc, unit="B",
                    unit_scale=True, unit_divisor=1024, file=sys.stderr)
    return _LoggingProgressBar(total=total, initial=initial, desc=desc)


class ResumableDownloader:
    """Fetches one URL to a local file with range resume and two retry layers.

    The outer layer runs up to ``max_attempts`` attempts separated by
    ``retry_delay_seconds``. Inside an attempt, transport failures and
    transient statuses are retried ``transport_retries`` times after
    ``transport_retry_delay_seconds``, resuming from the bytes already on disk.
    Each attempt is capped at ``request_timeout_seconds``.
    """

    def __init__(self, config: DownloaderConfig, client: Optional[httpx.Client] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        self._client = client
        self._sleep = sleep
        self._clock = clock

    def fetch(self, url: str, dest: Path, headers: Optional[Dict[str, str]] = None) -> Path:
        """Download url to dest and verify the result.

        Raises DownloadError when every attempt fails and IntegrityError when
        the finished file is too small. Local write failures surface as
        ArtifactIOError. dest is removed on any failure.
        """
        dest = Path(dest)
        logger.debug("Starting download with progress")
        logger.debug("URL: %s", url)
        logger.debug("Output: %s", dest)

        client = self._client or httpx.Client(follow_redirects=True)
        try:
            self._run_attempts(client, url, dest, headers or {})
            self.verify(dest)
        except OSError as e:
            dest.unlink(missing_ok=True)
            raise ArtifactIOError(f"failed to write {dest}: {e}") from e
        except Exception:
            dest.unlink(missing_ok=True)
            raise
        finally:
            if self._client is None:
                client.close()
        return dest

    def _run_attempts(self, client: httpx.Client, url: str, dest: Path, headers: Dict[str, str]) -> None:
        max_attempts = self.config.max_attempts
        last_error: Optional[Exception] = None
        for n in range(1, max_attempts + 1):
            logger.info("Download attempt %d/%d", n, max_attempts)
            try:
                self._attempt(client, DownloadAttempt(url=url, dest=dest, attempt=n), headers)
            except (httpx.HTTPError, _DeadlineExceeded) as e:
                last_error = e
                logger.debug("Download attempt %d failed: %r", n, e)
                if n < max_attempts:
                    logger.warning("Download failed, retrying in %g seconds...", self.config.retry_delay_seconds)
                    self._sleep(self.config.retry_delay_seconds)
                continue
            if dest.exists():
                logger.debug("Downloaded file size: %d bytes", dest.stat().st_size)
            return

        logger.error("Download failed after %d attempts", max_attempts)
        raise DownloadError(url, max_attempts, str(last_error)) from last_error

    def _attempt(self, client: httpx.Client, attempt: DownloadAttempt, headers: Dict[str, str]) -> None:
        deadline = self._clock() + self.config.request_timeout_seconds
        retries = self.config.transport_retries
        for i in range(retries + 1):
            try:
                self._stream(client, attempt, headers, deadline)
                return
            except httpx.HTTPStatusError as e:
                if e.response.status_code not in TRANSIENT_STATUS or i >= retries:
                    raise
                err = e
            except httpx.TransportError as e:
                if i >= retries:
                    raise
                err = e
            delay = self.config.transport_retry_delay_seconds
            if self._clock() + delay >= deadline:
                raise _DeadlineExceeded(f"attempt {attempt.attempt} exceeded "
                                        f"{self.config.request_timeout_seconds}s") from err
            logger.debug("Transient error (%r), retrying in %g seconds (%d left)", err, delay, retries - i)
            self._sleep(delay)

    def _stream(self, client: httpx.Client, attempt: DownloadAttempt,
                headers: Dict[str, str], deadline: float) -> None:
        dest = attempt.dest
        offset = dest.stat().st_size if dest.exists() else 0
        req_headers = dict(headers)
        if offset > 0:
            req_headers["Range"] = f"bytes={offset}-"
            logger.debug("Resuming %s at byte %d", dest.name, offset)

        remaining = max(deadline - self._clock(), 1.0)
        with client.stream("GET", attempt.url, headers=req_headers, timeout=remaining) as resp:
            if resp.status_code == 416 and offset > 0:
                # server has nothing past what we hold
                logger.debug("Range not satisfiable, %s already complete", dest.name)
                return
            resp.raise_for_status()

            if resp.status_code == 206:
                mode = "ab"
            else:
                mode = "wb"
                offset = 0
            length = resp.headers.get("Content-Length")
            total = offset + int(length) if length and length.isdigit() else None

            with open(dest, mode) as fh, make_progress(total, offset, dest.name) as progress:
                for chunk in resp.iter_bytes(self.config.chunk_size):
                    fh.write(chunk)
                    progress.update(len(chunk))
                    if self._clock() > deadline:
                        raise _DeadlineExceeded(f"attempt {attempt.attempt} exceeded "
                                                f"{self.config.request_timeout_seconds}s")

    def verify(self, path: Path) -> None:
        min_bytes = self.config.min_valid_bytes
        if not path.is_file():
            logger.error("Downloaded file is empty or missing")
            raise IntegrityError(path, 0, min_bytes)
        size = path.stat().st_size
        if size == 0 or size < min_bytes:
            logger.error("Downloaded file appears corrupted or incomplete: %d bytes", size)
            raise IntegrityError(path, size, min_bytes)
