"""
Diagnostics - unified error reporting for the generation pipeline.

Warnings are collected (and echoed) instead of raised so that bulk operations
keep going. Only precondition failures and write conflicts raise.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class FlowUIError(Exception):
    """Base class for all toolkit errors."""


class PreconditionError(FlowUIError):
    """A required artifact is missing, the operation cannot run."""


class WriteConflictError(FlowUIError):
    """A target file exists and no overwrite decision was supplied."""

    def __init__(self, path):
        super().__init__(f"File already exists and no overwrite decision was given: {path}")
        self.path = path


class ConfigError(FlowUIError):
    """Configuration file could not be loaded or validated."""


class IssueKind(str, Enum):
    PRECONDITION = "precondition"
    DUPLICATE = "duplicate"
    LOOKUP_MISS = "lookup_miss"
    WRITE_CONFLICT = "write_conflict"
    MALFORMED = "malformed"
    MISSING_REFERENCE = "missing_reference"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_ICONS = {
    Severity.INFO: "✅",
    Severity.WARNING: "⚠️ ",
    Severity.ERROR: "❌",
}


class Diagnostic(BaseModel):
    kind: IssueKind
    severity: Severity = Severity.WARNING
    message: str = Field(..., min_length=1)
    subject: str = ""  # canonical path or element name the issue is about

    def format(self) -> str:
        if self.subject:
            return f"{_ICONS[self.severity]} {self.message} [{self.subject}]"
        return f"{_ICONS[self.severity]} {self.message}"


class Reporter:
    """Collects diagnostics raised by registry, naming and generation steps"""

    def __init__(self, echo: bool = True):
        self.echo = echo
        self.diagnostics: List[Diagnostic] = []

    def warn(self, kind: IssueKind, message: str, subject: str = "") -> Diagnostic:
        return self._record(Diagnostic(kind=kind, severity=Severity.WARNING, message=message, subject=subject))

    def error(self, kind: IssueKind, message: str, subject: str = "") -> Diagnostic:
        return self._record(Diagnostic(kind=kind, severity=Severity.ERROR, message=message, subject=subject))

    def info(self, message: str):
        if self.echo:
            print(f"  {message}")

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    def of_kind(self, kind: IssueKind) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]

    def summary(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for diagnostic in self.diagnostics:
            counts[diagnostic.kind.value] = counts.get(diagnostic.kind.value, 0) + 1
        return counts

    def clear(self):
        self.diagnostics.clear()

    def _record(self, diagnostic: Diagnostic) -> Diagnostic:
        self.diagnostics.append(diagnostic)
        if self.echo:
            print(diagnostic.format())
        return diagnostic


def ensure_reporter(reporter: Optional[Reporter]) -> Reporter:
    return reporter if reporter is not None else Reporter()
