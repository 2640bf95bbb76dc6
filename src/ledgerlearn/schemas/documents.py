"""
Page boundary and job schemas.

A Page is the classifier's verdict for one page image. A MultiPageAnalysisResult
is the verdict for a whole upload and is consumed once by the job assembler.
A Job is one detected document, persisted by the assembler.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DocumentType(str, Enum):
    """Kind of financial document a page belongs to."""

    INVOICE = "invoice"
    RECEIPT = "receipt"
    CREDIT_NOTE = "credit_note"
    BANK_STATEMENT = "bank_statement"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> "DocumentType":
        """Map a model-supplied value to a DocumentType; unknown values become OTHER."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.OTHER
        key = value.strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            return cls.OTHER


class SplitStrategy(str, Enum):
    """How an upload maps onto jobs."""

    SINGLE = "single"  # one page, one job
    MULTIPLE = "multiple"  # several documents, one job each
    MERGED = "merged"  # several pages, one document


class JobStatus(str, Enum):
    """Lifecycle of a job after assembly."""

    PROCESSING = "processing"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    FAILED = "failed"


@dataclass(frozen=True)
class Page:
    """Classification of one page image."""

    page_number: int  # 1-based
    image_ref: str
    is_new_document: bool
    document_type: DocumentType | None = None
    confidence: float = 0.5
    reasoning: str | None = None
    text: str | None = None  # OCR text when available

    def to_dict(self) -> dict:
        return {
            "page_number": self.page_number,
            "image_ref": self.image_ref,
            "is_new_document": self.is_new_document,
            "document_type": self.document_type.value if self.document_type else None,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "text": self.text,
        }


@dataclass(frozen=True)
class MultiPageAnalysisResult:
    """Boundary analysis of one upload."""

    total_pages: int
    documents_detected: int
    pages: tuple[Page, ...]
    split_strategy: SplitStrategy

    def to_dict(self) -> dict:
        return {
            "total_pages": self.total_pages,
            "documents_detected": self.documents_detected,
            "split_strategy": self.split_strategy.value,
            "pages": [p.to_dict() for p in self.pages],
        }


@dataclass
class Job:
    """One accounting job, created per detected document group."""

    id: str
    company_id: str
    file_name: str
    primary_image_ref: str
    original_file_ref: str
    page_refs: list[str] = field(default_factory=list)
    page_numbers: list[int] = field(default_factory=list)
    page_count: int = 1
    is_multi_page: bool = False
    split_from_original: bool = False
    document_index: int = 0
    document_type: DocumentType | None = None
    status: JobStatus = JobStatus.PROCESSING
    created_at: str = ""
    # Page texts joined in page order, with their average confidence
    text: str | None = None
    text_confidence: float | None = None

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "company_id": self.company_id,
            "file_name": self.file_name,
            "primary_image_ref": self.primary_image_ref,
            "original_file_ref": self.original_file_ref,
            "page_refs": list(self.page_refs),
            "page_numbers": list(self.page_numbers),
            "page_count": self.page_count,
            "is_multi_page": self.is_multi_page,
            "split_from_original": self.split_from_original,
            "document_index": self.document_index,
            "document_type": self.document_type.value if self.document_type else None,
            "status": self.status.value,
            "created_at": self.created_at,
            "text": self.text,
            "text_confidence": self.text_confidence,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            company_id=data["company_id"],
            file_name=data["file_name"],
            primary_image_ref=data["primary_image_ref"],
            original_file_ref=data["original_file_ref"],
            page_refs=list(data.get("page_refs", [])),
            page_numbers=list(data.get("page_numbers", [])),
            page_count=data.get("page_count", 1),
            is_multi_page=bool(data.get("is_multi_page", False)),
            split_from_original=bool(data.get("split_from_original", False)),
            document_index=data.get("document_index", 0),
            document_type=(
                DocumentType.coerce(data["document_type"]) if data.get("document_type") else None
            ),
            status=JobStatus(data.get("status", JobStatus.PROCESSING.value)),
            created_at=data.get("created_at", ""),
            text=data.get("text"),
            text_confidence=data.get("text_confidence"),
        )
