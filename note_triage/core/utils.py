import hashlib
import json
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from note_triage.core.errors import UnparseableResponseError
from note_triage.core.models import NoteLine

UNPARSEABLE_CONFIDENCE = 0.1
UNPARSEABLE_REASON = "unparseable model output"

# Bullets, checkboxes and "1." / "1)" numbering typed in front of list items
_LIST_MARKER = re.compile(
    r"^(?:[-*•·–—]\s*)?(?:\[[ xX✓✔]?\]\s*|[☐☑☒✓✔]\s*)?(?:\d{1,3}[.)]\s+)?"
)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def strip_list_marker(line: str) -> str:
    return _LIST_MARKER.sub("", line, count=1).strip()


def split_note_lines(source: Union[str, Iterable[str], None]) -> List[NoteLine]:
    """
    Splits multi-line input into classifiable lines.

    Lines are trimmed and blank lines dropped. Leading list markers are
    removed from the text sent to the model but kept in `original`, which is
    what gets echoed back to the caller.

    Args:
        source: Newline-separated text or an already split list of lines.

    Returns:
        List[NoteLine]: One entry per non-empty line, in input order.
    """
    if source is None:
        return []
    raw_lines = source.splitlines() if isinstance(source, str) else list(source)

    lines = []
    for raw in raw_lines:
        original = str(raw).strip()
        if not original:
            continue
        # A line made only of a marker is classified as typed
        cleaned = strip_list_marker(original) or original
        lines.append(NoteLine(original=original, cleaned=cleaned))
    return lines


def extract_json(text: Optional[str]) -> Any:
    """
    Parses JSON from raw model output, trimming surrounding commentary if needed.

    Raises:
        UnparseableResponseError: If neither the whole text nor the span between
            the first '{' and the last '}' is valid JSON.
    """
    if not text or not text.strip():
        raise UnparseableResponseError(text or "")

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            pass

    raise UnparseableResponseError(text)


def unparseable_fallback(fallback_category: str) -> Dict[str, Any]:
    """
    Low-confidence stand-in used when the model answered with something that is not JSON.
    """
    return {
        "category": fallback_category,
        "confidence": UNPARSEABLE_CONFIDENCE,
        "reason": UNPARSEABLE_REASON,
    }


def build_cache_key(
    text: str,
    categories: Sequence[str],
    subcategories_by_category: Optional[Dict[str, List[str]]] = None,
    mode: str = "classify",
) -> str:
    """
    Computes the SHA256 digest identifying a classification call.

    Text is lowercased and stripped; the taxonomy is lowercased and sorted so
    that the same categories in a different order or casing share a key.
    Subcategory lists of categories outside the taxonomy do not count.

    Args:
        text (str): The input text (single note or joined lines).
        categories (Sequence[str]): The caller's categories.
        subcategories_by_category (Optional[Dict[str, List[str]]]): Allowed subcategories.
        mode (str): Operation name, keeps single and multi-line calls apart.

    Returns:
        str: The hexadecimal hash string.
    """
    lowered_categories = sorted(str(c).lower() for c in categories or [])
    known = set(lowered_categories)

    subcategories: Dict[str, set] = {}
    for category, subs in (subcategories_by_category or {}).items():
        key = str(category).lower()
        if key not in known:
            continue
        subcategories.setdefault(key, set()).update(str(s).lower() for s in subs or [])

    normalized = json.dumps(
        {
            "m": mode,
            "t": str(text or "").strip().lower(),
            "c": lowered_categories,
            "s": {k: sorted(v) for k, v in subcategories.items()},
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
