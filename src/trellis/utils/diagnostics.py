"""
Discovery Diagnostics
=====================
Structured warnings produced while resolving test elements and unique IDs.

A single unresolvable leaf never aborts a discovery pass. Instead it is
reported here (and through logging) and the pass carries on with its siblings.

Kinds:
- not_a_container: class does not qualify as a test container
- not_a_test: member does not qualify as a test method
- unresolvable_segment: a unique ID segment could not be resolved
- unresolvable_element: no element resolver claims an element
- contested_claim: more than one element resolver claims an element
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Severity(Enum):
    """Severity level for diagnostics."""

    WARNING = "warning"
    INFO = "info"


class DiagnosticKind(Enum):
    """Types of discovery diagnostics."""

    NOT_A_CONTAINER = "not_a_container"
    NOT_A_TEST = "not_a_test"
    UNRESOLVABLE_SEGMENT = "unresolvable_segment"
    UNRESOLVABLE_ELEMENT = "unresolvable_element"
    CONTESTED_CLAIM = "contested_claim"


@dataclass(frozen=True)
class Diagnostic:
    """
    A problem found while resolving a single element or segment.

    Attributes:
        kind: Type of problem detected
        subject: The element or unique ID involved
        message: Human-readable description
        severity: Warning or info
        context: Additional context (e.g., the failing segment)
    """

    kind: DiagnosticKind
    subject: str
    message: str
    severity: Severity = Severity.WARNING
    context: Optional[str] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "subject": self.subject,
            "message": self.message,
            "context": self.context,
        }

    def __str__(self) -> str:
        prefix = "WARN" if self.severity == Severity.WARNING else "INFO"
        context_str = f" ({self.context})" if self.context else ""
        return f"[{prefix}] {self.kind.value}: {self.message}{context_str}"


@dataclass
class DiagnosticLog:
    """Collects diagnostics for one discovery session."""

    diagnostics: List[Diagnostic] = field(default_factory=list)

    def report(self, diagnostic: Diagnostic) -> Diagnostic:
        self.diagnostics.append(diagnostic)
        return diagnostic

    @property
    def has_warnings(self) -> bool:
        return any(d.severity == Severity.WARNING for d in self.diagnostics)

    def filter_by_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        """Get diagnostics of a specific kind."""
        return [d for d in self.diagnostics if d.kind == kind]

    def __len__(self) -> int:
        return len(self.diagnostics)

    def __iter__(self):
        return iter(self.diagnostics)

    def to_dict(self) -> Dict:
        return {
            "count": len(self.diagnostics),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
