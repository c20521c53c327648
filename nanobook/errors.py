"""Exception hierarchy for the research and drafting pipeline."""
from __future__ import annotations

from typing import Any


class NanobookError(RuntimeError):
    """Base class for every error raised by nanobook itself."""


class LLMTimeoutError(NanobookError, TimeoutError):
    """A single remote call exceeded its timeout budget."""

    def __init__(self, model: str, timeout_ms: int):
        super().__init__(f"Call to {model} timed out after {timeout_ms}ms")
        self.model = model
        self.timeout_ms = timeout_ms


class JSONExtractionError(NanobookError, ValueError):
    """No JSON object could be recovered from model output."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class StructureValidationError(NanobookError, ValueError):
    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.details = details or []


class InvalidResearchStructureError(StructureValidationError):
    pass


class InvalidDraftStructureError(StructureValidationError):
    pass


class AllAgentsFailedError(NanobookError):
    def __init__(self, failures: dict[str, str]):
        names = ", ".join(failures) or "none"
        super().__init__(f"All research agents failed. Cannot proceed. ({names})")
        self.failures = failures


class EmptyImagePayloadError(NanobookError, ValueError):
    pass


class AllImageModelsFailedError(NanobookError):
    def __init__(self, operation: str, attempted: list[str], last_error: BaseException | None):
        super().__init__(
            f"All image models failed to {operation} (tried: {', '.join(attempted)}). "
            f"Last error: {last_error}"
        )
        self.operation = operation
        self.attempted = attempted
        self.last_error = last_error


class BranchNotFoundError(NanobookError, KeyError):
    def __init__(self, branch_id: str):
        super().__init__(f"Branch not found: {branch_id}")
        self.branch_id = branch_id

    def __str__(self) -> str:
        return self.args[0]


class PromptNotFoundError(NanobookError, KeyError):
    """A prompt key, or a value its template needs, is missing from the catalog."""

    def __init__(self, key: str, missing: str | None = None):
        if missing is None:
            message = f"Prompt key not found: {key}"
        else:
            message = f"Missing template value '{missing}' for prompt '{key}'"
        super().__init__(message)
        self.key = key
        self.missing = missing

    def __str__(self) -> str:
        return self.args[0]
