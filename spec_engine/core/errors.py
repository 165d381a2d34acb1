"""Error taxonomy for the Spec Engine.

Propagation policy:
- EmptyContentError, ReasoningCallError: fatal, abort the enclosing operation.
- MalformedResponseError: recovered locally by each stage's default output.
- StructuralValidationError, NotFoundError, ApprovalBlockedError, SpecLockedError,
  VersionConflictError: returned to the caller as explicit failures (HTTP 4xx /
  tool error payloads).
"""

from typing import Any


class SpecEngineError(Exception):
    """Base class for engine errors."""

    code = "spec_engine_error"


class EmptyContentError(SpecEngineError):
    """Raised when the chunker cannot produce a single non-trivial chunk."""

    code = "empty_content"


class ReasoningCallError(SpecEngineError):
    """Raised when the reasoning collaborator is unreachable, errors, or returns nothing."""

    code = "reasoning_call_failed"


class MalformedResponseError(SpecEngineError):
    """Raised when a reasoning response cannot be parsed into the stage schema."""

    code = "malformed_response"

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class StructuralValidationError(SpecEngineError):
    """Raised when a compiled spec fails its structural invariants."""

    code = "structural_validation_failed"

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(SpecEngineError):
    """Raised for an unknown feature or spec id."""

    code = "not_found"


class ApprovalBlockedError(SpecEngineError):
    """Raised when approval is requested while blocker findings are outstanding."""

    code = "approval_blocked"

    def __init__(self, message: str, blockers: list[str] | None = None):
        super().__init__(message)
        self.blockers = blockers or []


class SpecLockedError(SpecEngineError):
    """Raised on an attempt to overwrite an approved spec version."""

    code = "spec_locked"


class VersionConflictError(SpecEngineError):
    """Raised when a spec id is already taken by another stored version."""

    code = "version_conflict"


class GenerationFailedError(SpecEngineError):
    """Raised when a generation run aborts; carries the partial audit trace."""

    code = "generation_failed"

    def __init__(self, message: str, stage: str, steps: list[Any], cause: Exception | None = None):
        super().__init__(message)
        self.stage = stage
        self.steps = steps
        self.cause = cause
