"""Turns a boundary analysis into accounting jobs.

single/merged uploads become one job covering every page. multiple uploads
become one job per detected document; each split job is named after the
original file ("batch_doc2.pdf", "batch_doc3_2pages.pdf").
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from ..schemas.documents import Job, JobStatus, MultiPageAnalysisResult, Page, SplitStrategy
from ..state_store.sqlite_store import utc_now

if TYPE_CHECKING:
    from ..state_store import StateStore

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n--- Next page ---\n\n"


def new_job_id() -> str:
    return f"job-{uuid.uuid4().hex[:12]}"


def split_file_name(file_name: str, document_index: int, page_count: int) -> str:
    """Name of a split job: "{base}_doc{n}{ext}" or "{base}_doc{n}_{pages}pages{ext}"."""
    path = PurePosixPath(file_name)
    base, ext = path.stem, path.suffix
    if page_count == 1:
        return f"{base}_doc{document_index + 1}{ext}"
    return f"{base}_doc{document_index + 1}_{page_count}pages{ext}"


@dataclass
class PageText:
    """OCR text of one page and the confidence of that text."""

    text: str
    confidence: float


def merge_page_contents(pages: Sequence[PageText]) -> tuple[str, float]:
    """Join page texts with a page separator; confidence is the page average."""
    if not pages:
        return "", 0.0
    merged = PAGE_SEPARATOR.join(p.text for p in pages)
    return merged, sum(p.confidence for p in pages) / len(pages)


def group_pages(pages: Sequence[Page]) -> list[list[Page]]:
    """Group pages into documents; a new group starts at every is_new_document page."""
    groups: list[list[Page]] = []
    current: list[Page] = []
    for page in pages:
        if page.is_new_document and current:
            groups.append(current)
            current = []
        current.append(page)
    if current:
        groups.append(current)
    return groups


def job_text(pages: Sequence[Page]) -> tuple[str | None, float | None]:
    """Merged text of the pages that have any; (None, None) when none do."""
    texts = [PageText(p.text, p.confidence) for p in pages if p.text]
    if not texts:
        return None, None
    return merge_page_contents(texts)


class DocumentJobAssembler:
    """Creates (and optionally persists) one Job per detected document."""

    def __init__(self, store: StateStore | None = None) -> None:
        self.store = store

    def assemble(
        self,
        company_id: str,
        original_file_ref: str,
        file_name: str,
        analysis: MultiPageAnalysisResult,
    ) -> list[Job]:
        """Build jobs for an analysed upload. Job pages partition 1..total_pages in order."""
        now = utc_now()

        if analysis.split_strategy in (SplitStrategy.SINGLE, SplitStrategy.MERGED):
            first = analysis.pages[0] if analysis.pages else None
            text, text_confidence = job_text(analysis.pages)
            jobs = [
                Job(
                    id=new_job_id(),
                    company_id=company_id,
                    file_name=file_name,
                    primary_image_ref=original_file_ref,
                    original_file_ref=original_file_ref,
                    page_refs=[p.image_ref for p in analysis.pages],
                    page_numbers=[p.page_number for p in analysis.pages],
                    page_count=analysis.total_pages,
                    is_multi_page=analysis.total_pages > 1,
                    split_from_original=False,
                    document_index=0,
                    document_type=first.document_type if first else None,
                    status=JobStatus.PROCESSING,
                    created_at=now,
                    text=text,
                    text_confidence=text_confidence,
                )
            ]
        else:
            jobs = []
            for index, group in enumerate(group_pages(analysis.pages)):
                text, text_confidence = job_text(group)
                jobs.append(
                    Job(
                        id=new_job_id(),
                        company_id=company_id,
                        file_name=split_file_name(file_name, index, len(group)),
                        primary_image_ref=group[0].image_ref,
                        original_file_ref=original_file_ref,
                        page_refs=[p.image_ref for p in group],
                        page_numbers=[p.page_number for p in group],
                        page_count=len(group),
                        is_multi_page=len(group) > 1,
                        split_from_original=True,
                        document_index=index,
                        document_type=group[0].document_type,
                        status=JobStatus.PROCESSING,
                        created_at=now,
                        text=text,
                        text_confidence=text_confidence,
                    )
                )

        if self.store is not None:
            for job in jobs:
                self.store.save_job(job)

        logger.info(
            f"Created {len(jobs)} job(s) from {file_name} ({analysis.split_strategy.value})"
        )
        return jobs
