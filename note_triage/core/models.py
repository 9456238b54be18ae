from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional


@dataclass
class ClassificationRequest:
    """
    One incoming classification call. Built per request and discarded afterwards.

    The taxonomy is supplied by the caller every time; nothing is persisted.
    """

    text: str
    categories: List[str]
    subcategories_by_category: Dict[str, List[str]] = field(default_factory=dict)
    hints_by_category: Dict[str, List[str]] = field(default_factory=dict)
    preferred_languages: List[str] = field(default_factory=list)

    def effective_subcategories(self) -> Dict[str, List[str]]:
        """
        Subcategory lists restricted to categories that are part of the taxonomy.
        """
        known = {c.lower() for c in self.categories}
        return {
            category: list(subs)
            for category, subs in self.subcategories_by_category.items()
            if category.lower() in known
        }

    def capped_hints(self, limit: int) -> Dict[str, List[str]]:
        return {category: list(phrases)[:limit] for category, phrases in self.hints_by_category.items()}


@dataclass(frozen=True)
class ClassificationResult:
    """
    Sanitized classification. Every instance satisfies the taxonomy invariants:
    category is a taxonomy member, confidence is within [0, 1], and
    subcategory is only set when valid and confident enough.
    """

    category: str
    subcategory: Optional[str] = None
    confidence: float = 0.0
    reason: str = ""
    suggested_new_category: Optional[str] = None
    suggested_new_subcategory: Optional[str] = None
    alternative_category: Optional[str] = None
    provider: str = "model"
    # Echo of the original input line (multi-line calls only)
    text: Optional[str] = None


class NoteLine(NamedTuple):
    original: str
    cleaned: str


@dataclass(frozen=True)
class RoutedResponse:
    """
    Raw router output. `payload` is untrusted JSON straight from the model.
    `degraded` marks the low-confidence fallback used when no provider answered
    with parseable JSON; such payloads are never cached.
    """

    provider: str
    raw_text: str
    payload: Any
    degraded: bool = False
