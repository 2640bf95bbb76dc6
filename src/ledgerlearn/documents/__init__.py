"""Multi-page uploads: page sources, boundary classification and job assembly."""

from ledgerlearn.documents.assembler import (
    DocumentJobAssembler,
    PageText,
    group_pages,
    merge_page_contents,
    split_file_name,
)
from ledgerlearn.documents.boundary import PageBoundaryClassifier
from ledgerlearn.documents.page_source import (
    FilesystemPageSource,
    HttpPageSource,
    PageExtractionError,
    PageImageError,
    PageSource,
    PageSourceError,
)

__all__ = [
    "DocumentJobAssembler",
    "PageText",
    "group_pages",
    "merge_page_contents",
    "split_file_name",
    "PageBoundaryClassifier",
    "FilesystemPageSource",
    "HttpPageSource",
    "PageExtractionError",
    "PageImageError",
    "PageSource",
    "PageSourceError",
]
