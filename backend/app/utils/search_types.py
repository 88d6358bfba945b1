"""
Shared result types and the resolution error taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

NOT_FOUND_MESSAGE = "Nessun risultato trovato"
MISSING_INPUT_MESSAGE = "Dominio e query sono richiesti"


@dataclass(frozen=True)
class SearchRequest:
    domain: str
    query: str


@dataclass(frozen=True)
class Candidate:
    """A single upstream result item before filtering and ranking."""

    link: str
    title: str
    snippet: str = ""


@dataclass
class SearchResult:
    """Outcome of resolving one (domain, query) pair."""

    url: str = ""
    title: str = ""
    description: str = ""
    similarity: float = 0.0
    error: Optional[str] = None
    # "input", "configuration", "transport", "provider", "internal" or None
    error_type: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.url) and self.error is None

    @classmethod
    def not_found(cls) -> "SearchResult":
        return cls(error=NOT_FOUND_MESSAGE)

    @classmethod
    def from_error(cls, error: "ResolutionError") -> "SearchResult":
        return cls(error=error.message, error_type=error.error_type)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "error": self.error,
        }


class ResolutionError(Exception):
    """Base error for the resolution core; ``message`` is user-facing."""

    error_type = "internal"

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.message = message
        self.detail = detail


class InputError(ResolutionError):
    error_type = "input"

    def __init__(self, message: str = MISSING_INPUT_MESSAGE, detail: str = ""):
        super().__init__(message, detail)


class ConfigurationError(ResolutionError):
    error_type = "configuration"


class UpstreamTransportError(ResolutionError):
    error_type = "transport"


class UpstreamLogicalError(ResolutionError):
    error_type = "provider"
