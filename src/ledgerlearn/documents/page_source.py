"""
Page image sources.

Pages are rasterized before they reach ledgerlearn. An upload "batch.pdf"
comes with one image per page, named "batch_p1.jpg", "batch_p2.jpg", ...
next to it. A page source lists those images and reads their bytes.

- FilesystemPageSource: images on local disk under a root directory
- HttpPageSource: images served by an HTTP file service
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

PAGE_IMAGE_SUFFIX = ".jpg"


class PageSourceError(Exception):
    """Base exception for page source errors."""

    pass


class PageImageError(PageSourceError):
    """A page image could not be read."""

    def __init__(self, image_ref: str, message: str):
        self.image_ref = image_ref
        super().__init__(f"Could not read page image {image_ref}: {message}")


class PageExtractionError(PageSourceError):
    """No pages could be found for an upload."""

    def __init__(self, file_ref: str):
        self.file_ref = file_ref
        super().__init__(f"Could not extract pages from {file_ref}")


def page_image_name(file_ref: str, page_number: int) -> str:
    """Image ref of one page: "dir/batch.pdf" -> "dir/batch_p2.jpg"."""
    path = PurePosixPath(file_ref)
    return str(path.with_name(f"{path.stem}_p{page_number}{PAGE_IMAGE_SUFFIX}"))


class PageSource(ABC):
    """
    Base class for page image sources.

    list_pages() returns image refs in page order; read_page() returns the
    bytes of one ref.
    """

    def __init__(self, max_pages: int = 100):
        self.max_pages = max_pages

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name for logging."""
        pass

    @abstractmethod
    def exists(self, ref: str) -> bool:
        """True if the file or page image exists."""
        pass

    @abstractmethod
    def read_page(self, image_ref: str) -> bytes:
        """
        Read one page image.

        Raises:
            PageImageError: If the image cannot be read
        """
        pass

    def list_pages(self, file_ref: str) -> list[str]:
        """
        Image refs of an upload, in page order.

        Probes "{stem}_p1.jpg", "{stem}_p2.jpg", ... up to max_pages and stops
        at the first missing page. An upload without page images is itself
        the only page. A missing upload has no pages.
        """
        pages = []
        for page_number in range(1, self.max_pages + 1):
            image_ref = page_image_name(file_ref, page_number)
            if not self.exists(image_ref):
                break
            pages.append(image_ref)

        if pages:
            logger.debug(f"{self.name}: {len(pages)} page images for {file_ref}")
            return pages

        if self.exists(file_ref):
            return [file_ref]

        logger.warning(f"{self.name}: upload {file_ref} not found")
        return []


class FilesystemPageSource(PageSource):
    """Page images on local disk. Relative refs resolve against root."""

    def __init__(self, root: Path | str = ".", max_pages: int = 100):
        super().__init__(max_pages=max_pages)
        self.root = Path(root)

    @property
    def name(self) -> str:
        return "filesystem"

    def _path(self, ref: str) -> Path:
        path = Path(ref)
        return path if path.is_absolute() else self.root / path

    def exists(self, ref: str) -> bool:
        return self._path(ref).is_file()

    def read_page(self, image_ref: str) -> bytes:
        try:
            return self._path(image_ref).read_bytes()
        except OSError as e:
            raise PageImageError(image_ref, str(e)) from e


class HttpPageSource(PageSource):
    """
    Page images served over HTTP.

    Features:
    - Optional token authentication
    - Automatic retry with backoff on transient failures
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        max_pages: int = 100,
    ):
        """
        Initialize HTTP page source.

        Args:
            base_url: File service URL; refs are appended to it
            token: Optional API token (sent as "Authorization: Token <token>")
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            backoff_factor: Backoff factor for retries
        """
        super().__init__(max_pages=max_pages)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        if token:
            self.session.headers.update({"Authorization": f"Token {token}"})

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @property
    def name(self) -> str:
        return "http"

    def _url(self, ref: str) -> str:
        if ref.startswith(("http://", "https://")):
            return ref
        return f"{self.base_url}/{ref.lstrip('/')}"

    def exists(self, ref: str) -> bool:
        try:
            response = self.session.head(self._url(ref), timeout=self.timeout, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            logger.warning(f"http: could not probe {ref}: {e}")
            return False
        return response.ok

    def read_page(self, image_ref: str) -> bytes:
        try:
            response = self.session.get(self._url(image_ref), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise PageImageError(image_ref, str(e)) from e

        if not response.ok:
            raise PageImageError(image_ref, f"HTTP {response.status_code} {response.reason}")
        return response.content

    def close(self) -> None:
        self.session.close()
