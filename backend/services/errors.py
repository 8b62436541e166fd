from __future__ import annotations

from dataclasses import dataclass


# not frozen: raise machinery assigns __traceback__ and friends
@dataclass(eq=False)
class AnalyticsError(Exception):
    message: str
    view: str | None = None

    def __str__(self) -> str:
        if self.view:
            return f"{self.view}: {self.message}"
        return self.message


@dataclass(eq=False)
class UpstreamError(AnalyticsError):
    """The record store failed; the whole view fails with it (no partial aggregates)."""

    status_code: int = 503


@dataclass(eq=False)
class UpstreamTimeout(UpstreamError):
    status_code: int = 504


@dataclass(eq=False)
class UpstreamFailure(UpstreamError):
    status_code: int = 503
