"""
Pipeline error taxonomy.

Every error carries two messages:
  - the exception text: technical detail for logs (may include provider output)
  - user_message: short, human-readable reason that is safe to store on the
    document row and show on status queries

Raw provider errors are never surfaced verbatim; the orchestrator stores
user_message only.

  TransientProviderError   rate limit / 5xx / timeout, retried then escalated
  MalformedResponseError   completion text with no parsable JSON object
  InputQualityError        unreadable or scanned document (fatal)
  ValidationError          hard rule violation on extracted data (non-fatal)
  StorageReadError         document bytes could not be read (fatal)
  PipelineCancelled        cancellation observed between stages
  InvalidTransitionError   illegal document status change
"""

from __future__ import annotations


class PipelineError(Exception):
    code: str = "PIPELINE_ERROR"
    default_user_message: str = "Processing failed due to an internal error."

    def __init__(self, message: str = "", *, user_message: str | None = None) -> None:
        super().__init__(message or self.default_user_message)
        self.user_message = user_message or self.default_user_message


class TransientProviderError(PipelineError):
    code = "PROVIDER_UNAVAILABLE"
    default_user_message = "An external AI service was unavailable. Please retry processing later."

    def __init__(
        self,
        message: str = "",
        *,
        service: str = "",
        attempts: int = 0,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.service  = service
        self.attempts = attempts


class MalformedResponseError(PipelineError):
    code = "MALFORMED_RESPONSE"
    default_user_message = "The AI service returned a response that could not be understood."

    def __init__(self, message: str = "", *, raw: str = "", user_message: str | None = None) -> None:
        super().__init__(message, user_message=user_message)
        self.raw = raw


class InputQualityError(PipelineError):
    code = "INPUT_QUALITY"
    default_user_message = (
        "The document appears to be scanned or has no readable text layer. "
        "Please upload a text-based PDF."
    )


class ValidationError(PipelineError):
    code = "VALIDATION_FAILED"
    default_user_message = "Extracted data failed validation and needs review."

    def __init__(self, message: str = "", *, issues: list | None = None, user_message: str | None = None) -> None:
        super().__init__(message, user_message=user_message)
        self.issues = list(issues or [])


class StorageReadError(PipelineError):
    code = "STORAGE_READ_FAILED"
    default_user_message = "The document could not be read from storage."


class PipelineCancelled(PipelineError):
    code = "CANCELLED"
    default_user_message = "Processing was cancelled."


class InvalidTransitionError(PipelineError):
    code = "INVALID_TRANSITION"
    default_user_message = "The document is not in a state that allows this operation."
