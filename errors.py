"""Failure taxonomy for a note.com posting run."""

from __future__ import annotations


class NotePosterError(Exception):
    """Base class for every error a run can surface."""


class SessionStateMissing(NotePosterError):
    def __init__(self, path):
        super().__init__(f"storageState not found: {path}")
        self.path = path


class FieldNotFound(NotePosterError):
    def __init__(self, purpose: str, detail: str | None = None):
        message = f"{purpose.upper()}_INPUT_NOT_FOUND"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.purpose = purpose


class InjectionFailed(NotePosterError):
    pass


class NavigationTimeout(NotePosterError):
    pass


class UnexpectedFault(NotePosterError):
    pass


def as_run_error(exc: BaseException) -> NotePosterError:
    """Keep taxonomy errors as-is; wrap anything else, chaining the original."""
    if isinstance(exc, NotePosterError):
        return exc
    wrapped = UnexpectedFault(f"{exc.__class__.__name__}: {exc}")
    wrapped.__cause__ = exc
    return wrapped
