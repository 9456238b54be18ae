import logging
import math
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from note_triage.core.models import ClassificationResult, NoteLine
from note_triage.core.taxonomy import is_member, is_valid_subcategory, resolve_fallback_category
from note_triage.core.utils import UNPARSEABLE_CONFIDENCE, UNPARSEABLE_REASON, clamp

logger = logging.getLogger(__name__)

MISSING_LINE_REASON = "missing from model output"


def _first_token(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.split()[0]


class ResultSanitizer:
    """
    Turns untrusted model JSON into a ClassificationResult.

    Nothing here raises: every missing, invalid or wrongly typed field is
    replaced by its default so callers always get a structurally valid result.
    """

    def __init__(
        self,
        fallback_category: str = "Other",
        default_confidence: float = 0.6,
        subcategory_threshold: float = 0.8,
        reason_max_length: int = 280,
    ) -> None:
        self.fallback_category = fallback_category
        self.default_confidence = clamp(default_confidence, 0.0, 1.0)
        self.subcategory_threshold = subcategory_threshold
        self.reason_max_length = reason_max_length

    def fallback_result(
        self,
        categories: Sequence[str],
        reason: str = UNPARSEABLE_REASON,
        confidence: float = UNPARSEABLE_CONFIDENCE,
    ) -> ClassificationResult:
        return ClassificationResult(
            category=resolve_fallback_category(categories, self.fallback_category),
            confidence=confidence,
            reason=reason,
        )

    def _confidence(self, value: Any) -> float:
        # bool is an int subclass but never a meaningful score
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return self.default_confidence
        if math.isnan(value) or math.isinf(value):
            return self.default_confidence
        return clamp(float(value), 0.0, 1.0)

    def _reason(self, value: Any) -> str:
        if not isinstance(value, str):
            return ""
        return value.strip()[: self.reason_max_length]

    def sanitize(
        self,
        raw: Any,
        categories: Sequence[str],
        subcategories_by_category: Optional[Dict[str, List[str]]] = None,
        include_alternative: bool = True,
    ) -> ClassificationResult:
        if not isinstance(raw, dict):
            logger.debug(f"Model output is not an object ({type(raw).__name__}); using fallback.")
            return self.fallback_result(categories)

        category = is_member(raw.get("category"), categories)
        if category is None:
            category = resolve_fallback_category(categories, self.fallback_category)

        confidence = self._confidence(raw.get("confidence"))

        subcategory = None
        if confidence >= self.subcategory_threshold:
            subcategory = is_valid_subcategory(category, raw.get("subcategory"), subcategories_by_category)

        alternative = None
        if include_alternative:
            alternative = is_member(raw.get("alternativeCategory"), categories)
            if alternative == category:
                alternative = None

        return ClassificationResult(
            category=category,
            subcategory=subcategory,
            confidence=confidence,
            reason=self._reason(raw.get("reason")),
            suggested_new_category=_first_token(raw.get("suggestedNewCategory")),
            suggested_new_subcategory=_first_token(raw.get("suggestedNewSubcategory")),
            alternative_category=alternative,
        )

    def sanitize_batch(
        self,
        raw: Any,
        lines: Sequence[NoteLine],
        categories: Sequence[str],
        subcategories_by_category: Optional[Dict[str, List[str]]] = None,
    ) -> List[ClassificationResult]:
        """
        Sanitizes a multi-line answer positionally: result i always belongs to line i.

        Items beyond the number of lines are dropped; missing positions are
        backfilled with a low-confidence fallback.
        """
        if isinstance(raw, dict) and isinstance(raw.get("items"), list):
            items = raw["items"]
        elif isinstance(raw, list):
            items = raw
        else:
            logger.warning("Model output has no 'items' list; every line falls back.")
            reason = self._reason(raw.get("reason")) if isinstance(raw, dict) else None
            return [
                self._with_text(self.fallback_result(categories, reason or UNPARSEABLE_REASON), line)
                for line in lines
            ]

        if len(items) != len(lines):
            logger.warning(f"Model returned {len(items)} items for {len(lines)} lines.")

        results = []
        for index, line in enumerate(lines):
            if index < len(items):
                result = self.sanitize(items[index], categories, subcategories_by_category, include_alternative=False)
            else:
                result = self.fallback_result(categories, MISSING_LINE_REASON)
            results.append(self._with_text(result, line))
        return results

    @staticmethod
    def recase(
        result: ClassificationResult,
        categories: Sequence[str],
        subcategories_by_category: Optional[Dict[str, List[str]]] = None,
    ) -> ClassificationResult:
        """
        Re-applies the current caller's casing to a cached result.

        Cache keys ignore taxonomy casing, so a hit may carry another caller's spelling.
        """
        category = is_member(result.category, categories) or result.category
        return replace(
            result,
            category=category,
            subcategory=is_valid_subcategory(category, result.subcategory, subcategories_by_category)
            or result.subcategory,
            alternative_category=is_member(result.alternative_category, categories) or result.alternative_category,
        )

    @staticmethod
    def _with_text(result: ClassificationResult, line: NoteLine) -> ClassificationResult:
        return replace(result, text=line.original)
