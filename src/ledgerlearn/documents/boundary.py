"""Page boundary classification for multi-page uploads.

A scanned PDF may hold several invoices and receipts back to back. Each page
is shown to a vision model together with the type of the document the
previous page belongs to; the model says whether the page starts a new
document. Pages of one upload are classified strictly in order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from ..inference.parsing import Fallback, coerce_bool, coerce_confidence
from ..schemas.documents import DocumentType, MultiPageAnalysisResult, Page, SplitStrategy
from .page_source import PageExtractionError, PageImageError

if TYPE_CHECKING:
    from ..inference.service import InferenceService
    from .page_source import PageSource

logger = logging.getLogger(__name__)

# Confidence of the heuristic used when the model cannot answer
DEFAULT_CONFIDENCE = 0.5
# Confidence assumed when the model answers without one
MISSING_CONFIDENCE = 0.7


class PageBoundaryClassifier:
    """Splits an upload's pages into documents.

    Args:
        page_source: Where page images are listed and read
        inference: Model client used for classify_page
        max_workers: Uploads analysed in parallel by analyze_batch
    """

    def __init__(
        self,
        page_source: PageSource,
        inference: InferenceService,
        max_workers: int = 2,
    ) -> None:
        self.page_source = page_source
        self.inference = inference
        self.max_workers = max(1, max_workers)

    def analyze(self, file_ref: str) -> MultiPageAnalysisResult:
        """Detect document boundaries in one upload.

        Raises:
            PageExtractionError: If the upload has no pages
        """
        image_refs = self.page_source.list_pages(file_ref)
        if not image_refs:
            raise PageExtractionError(file_ref)

        if len(image_refs) == 1:
            page = Page(
                page_number=1,
                image_ref=image_refs[0],
                is_new_document=True,
                confidence=1.0,
            )
            logger.info(f"{file_ref}: 1 page, 1 document, strategy single")
            return MultiPageAnalysisResult(
                total_pages=1,
                documents_detected=1,
                pages=(page,),
                split_strategy=SplitStrategy.SINGLE,
            )

        pages: list[Page] = []
        current_type: DocumentType | None = None
        for index, image_ref in enumerate(image_refs):
            page = self.classify_page(image_ref, index + 1, current_type)
            pages.append(page)
            if page.is_new_document:
                current_type = page.document_type

        documents = sum(1 for p in pages if p.is_new_document)
        strategy = SplitStrategy.MULTIPLE if documents > 1 else SplitStrategy.MERGED

        logger.info(
            f"{file_ref}: {len(pages)} pages, {documents} document(s), strategy {strategy.value}"
        )
        return MultiPageAnalysisResult(
            total_pages=len(pages),
            documents_detected=documents,
            pages=tuple(pages),
            split_strategy=strategy,
        )

    def classify_page(
        self,
        image_ref: str,
        page_number: int,
        previous_type: DocumentType | None = None,
    ) -> Page:
        """Classify one page; never raises for unreadable images or bad model output.

        Page 1 always starts a new document.
        """
        try:
            image = self.page_source.read_page(image_ref)
        except PageImageError as e:
            logger.warning(f"{e}; using default for page {page_number}")
            return self._default_page(image_ref, page_number, previous_type)

        result = self.inference.classify_page(image, page_number, previous_type)
        if isinstance(result, Fallback):
            logger.debug(f"Page {page_number} fallback: {result.reason}")
            return self._default_page(image_ref, page_number, previous_type)

        is_new = coerce_bool(result.get("is_new_document", result.get("isNewDocument")))
        raw_type = result.get("document_type", result.get("documentType"))
        reasoning = result.get("reasoning")
        text = result.get("text")

        return Page(
            page_number=page_number,
            image_ref=image_ref,
            is_new_document=True if page_number == 1 else bool(is_new),
            document_type=DocumentType.coerce(raw_type) if raw_type else DocumentType.OTHER,
            confidence=coerce_confidence(result.get("confidence"), MISSING_CONFIDENCE),
            reasoning=str(reasoning) if reasoning else None,
            text=text if isinstance(text, str) and text.strip() else None,
        )

    @staticmethod
    def _default_page(
        image_ref: str, page_number: int, previous_type: DocumentType | None
    ) -> Page:
        return Page(
            page_number=page_number,
            image_ref=image_ref,
            is_new_document=page_number == 1,
            document_type=previous_type or DocumentType.OTHER,
            confidence=DEFAULT_CONFIDENCE,
        )

    def analyze_batch(
        self, file_refs: list[str]
    ) -> dict[str, MultiPageAnalysisResult | Exception]:
        """Analyse several uploads in parallel.

        Returns:
            file_ref -> analysis result, or the exception raised for that upload
        """
        results: dict[str, MultiPageAnalysisResult | Exception] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {ref: executor.submit(self.analyze, ref) for ref in file_refs}
            for ref, future in futures.items():
                try:
                    results[ref] = future.result()
                except PageExtractionError as e:
                    logger.warning(str(e))
                    results[ref] = e
                except Exception as e:
                    logger.exception(f"Analysis of {ref} failed")
                    results[ref] = e
        return results
