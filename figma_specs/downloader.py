import time
import logging
import threading
import concurrent.futures
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import requests

logger = logging.getLogger(__name__)

MAX_PARALLEL_DOWNLOADS = 5
CHUNK_SIZE = 8192


class DownloadError(Exception):
    """A single file transfer failed (network error or non-2xx status)."""


class Downloader:
    """Streams remote files to disk and runs batches of downloads on a bounded pool.

    Without an explicit ``session`` every worker thread gets its own
    requests.Session.
    """

    def __init__(self, max_workers: int = MAX_PARALLEL_DOWNLOADS, timeout: float = 600,
                 max_retries: int = 3, retry_delay: float = 1.0,
                 session: Optional[requests.Session] = None):
        self.max_workers = max(1, max_workers)
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._session = session
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, 'session', None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def download(self, url: str, dest_path: Union[str, Path]) -> int:
        """Download ``url`` into ``dest_path`` and return the number of bytes written.

        Transport errors are retried with exponential backoff; a non-2xx
        response fails immediately. Raises DownloadError on failure and
        leaves no partial file behind.
        """
        dest_path = Path(dest_path)

        for attempt in range(self.max_retries):
            try:
                with self.session.get(url, stream=True, timeout=self.timeout) as response:
                    if not 200 <= response.status_code < 300:
                        raise DownloadError(f"unexpected status {response.status_code} downloading image")

                    written = 0
                    with open(dest_path, 'wb') as f:
                        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                            if chunk:
                                f.write(chunk)
                                written += len(chunk)
                    return written

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    logger.warning(f"Retry {attempt + 1}/{self.max_retries} for {dest_path.name}: {e}")
                    time.sleep(self.retry_delay * (2 ** attempt))
                else:
                    self._discard(dest_path)
                    raise DownloadError(f"HTTP GET failed after {self.max_retries} attempts: {e}") from e
            except OSError as e:
                self._discard(dest_path)
                raise DownloadError(f"failed to write file {str(dest_path)!r}: {e}") from e

        raise DownloadError(f"download of {dest_path.name} did not complete")

    @staticmethod
    def _discard(dest_path: Path):
        try:
            dest_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"⚠️ Could not remove partial file {dest_path.name}: {e}")

    def run(self, jobs: Iterable[Callable[[], None]]):
        """Run download jobs concurrently and wait for all of them.

        Jobs record their own per-file failures; anything a job raises is a
        programming error and is re-raised once the whole batch has finished.
        """
        jobs = list(jobs)
        if not jobs:
            return

        failures = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(job) for job in jobs]
            for future in concurrent.futures.as_completed(futures):
                exc = future.exception()
                if exc is not None:
                    failures.append(exc)

        if failures:
            raise failures[0]
