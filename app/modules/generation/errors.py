from __future__ import annotations


class GenerationError(RuntimeError):
    code = "GENERATION_ERROR"


class BackendNotReadyError(GenerationError):
    """Raised when generation is requested before the backend reports ready."""

    code = "BACKEND_NOT_READY"


class GenerationBusyError(GenerationError):
    """Raised when a document already has a live generation session."""

    code = "GENERATION_BUSY"


class InvalidTransitionError(GenerationError):
    code = "INVALID_TRANSITION"


class EmptyBeatError(GenerationError, ValueError):
    code = "EMPTY_BEAT"


class StreamFailure(GenerationError):
    """Terminal transport failure of one streaming call."""

    code = "STREAM_FAILURE"
