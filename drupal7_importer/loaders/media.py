"""Locating Drupal files on disk, downloading them from the old site when missing."""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions import SinkWriteError

logger = logging.getLogger(__name__)


class MediaFetcher:
    """
    Finds the file behind a Drupal file path.

    Files are expected under ``import_path`` (a copy of Drupal's public
    files directory). When ``origin_files_url`` is set, missing files are
    downloaded from the old site into ``import_path`` first.
    """

    def __init__(
        self,
        import_path: Path,
        origin_files_url: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        max_retries: int = 3,
        backoff_factor: float = 2.0
    ):
        """
        Initialize the fetcher.

        Args:
            import_path: Local directory holding Drupal's public files
            origin_files_url: Base URL of Drupal's public files, or None
            timeout: Download timeout in seconds
            session: Custom requests session
            max_retries: Retries per download
            backoff_factor: Backoff between retries
        """
        self.import_path = Path(import_path)
        self.origin_files_url = origin_files_url.rstrip("/") + "/" if origin_files_url else None
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic."""
        session = requests.Session()

        retries = Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
        )

        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    def locate(self, file_path: str) -> Path:
        """
        Path of the local copy of ``file_path``.

        Raises:
            SinkWriteError: If the file is neither on disk nor downloadable
        """
        local = self.import_path / file_path
        if local.is_file():
            return local

        if not self.origin_files_url:
            raise SinkWriteError("file_not_found", f"File not found: {local}")

        return self.download(file_path, local)

    def download(self, file_path: str, destination: Path) -> Path:
        url = self.origin_files_url + quote(file_path)
        logger.debug(f"Downloading {url}")
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                destination.parent.mkdir(parents=True, exist_ok=True)
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=65536):
                        f.write(chunk)
        except requests.exceptions.RequestException as e:
            # Drop the partial file.
            if destination.exists():
                destination.unlink()
            raise SinkWriteError("download_failed", f"Could not download {url}: {e}") from e

        logger.info(f"Downloaded {file_path}")
        return destination

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
