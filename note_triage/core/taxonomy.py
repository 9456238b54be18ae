from typing import Any, Dict, List, Optional, Sequence


def is_member(candidate: Any, categories: Sequence[str]) -> Optional[str]:
    """
    Case-insensitive taxonomy lookup.

    Returns:
        Optional[str]: The caller's original casing, or None if there is no match.
    """
    if not isinstance(candidate, str) or not candidate.strip() or not categories:
        return None

    wanted = candidate.strip().lower()
    for category in categories:
        if str(category).lower() == wanted:
            return category
    return None


def _subcategories_for(category: str, subcategories_by_category: Dict[str, List[str]]) -> List[str]:
    if category in subcategories_by_category:
        return subcategories_by_category[category] or []

    lowered = category.lower()
    for key, subs in subcategories_by_category.items():
        if str(key).lower() == lowered:
            return subs or []
    return []


def is_valid_subcategory(
    category: Optional[str],
    candidate: Any,
    subcategories_by_category: Optional[Dict[str, List[str]]],
) -> Optional[str]:
    """
    Same lookup as `is_member`, scoped to the subcategories listed under `category`.
    """
    if not category or not subcategories_by_category:
        return None
    return is_member(candidate, _subcategories_for(category, subcategories_by_category))


def resolve_fallback_category(categories: Sequence[str], fallback: str) -> str:
    """
    Picks the catch-all category for a given taxonomy.

    The caller's casing wins when the fallback is part of the taxonomy. A
    taxonomy without it falls back on its last entry so results still name a
    member; an empty taxonomy gets the literal fallback.
    """
    canonical = is_member(fallback, categories)
    if canonical:
        return canonical
    if not categories:
        return fallback
    return categories[-1]
