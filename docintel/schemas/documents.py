"""
Document processing — Pydantic outcome / status schemas

ProcessingOutcome is what ProcessDocument returns to the job scheduler
(and what the Celery task serialises as its JSON result).
DocumentStatusResponse is what a status query returns: a status plus, on
failed, a short human-readable reason. Raw provider errors never reach
either model.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from docintel.pipeline.state import ProcessingStatus


# ---------------------------------------------------------------------------
# Pipeline run outcome
# ---------------------------------------------------------------------------

class ProcessingOutcome(BaseModel):
    document_id:          str
    status:               ProcessingStatus
    skipped:              bool        = Field(False, description="True when the run did not execute")
    reason:               str | None  = Field(None, description="Skip reason or stored failure message")
    chunk_count:          int         = 0
    categories:           list[str]   = Field(default_factory=list)
    confidence:           float | None = Field(None, ge=0.0, le=1.0)
    needs_review_reasons: list[str]   = Field(default_factory=list)

    @classmethod
    def skipped_run(cls, document_id: str, status: ProcessingStatus, reason: str) -> ProcessingOutcome:
        return cls(document_id=document_id, status=status, skipped=True, reason=reason)


# ---------------------------------------------------------------------------
# Status query response
# ---------------------------------------------------------------------------

class DocumentStatusResponse(BaseModel):
    document_id:   str
    status:        ProcessingStatus
    error_message: str | None = None

    @classmethod
    def from_document(cls, document) -> DocumentStatusResponse:
        status = ProcessingStatus(document.status)
        return cls(
            document_id=str(document.document_id),
            status=status,
            error_message=document.error_message if status is ProcessingStatus.FAILED else None,
        )
