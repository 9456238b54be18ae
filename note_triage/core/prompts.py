import json
import logging
from pathlib import Path
from string import Template
from typing import Any, Optional, Sequence

from note_triage.core.models import ClassificationRequest, NoteLine

logger = logging.getLogger(__name__)

# Placeholders: $languages $categories $subcategories $hints $threshold
# $fallback_category $text
CLASSIFY_TEMPLATE = """
/classify

You are a deterministic short-text classifier.
Return ONLY a single JSON object with this schema:
{
  "category": string,                     // must be one of CATEGORIES (case-insensitive match, but output must use provided casing)
  "subcategory": string|null,             // only from SUBCATEGORIES_BY_CATEGORY[category] AND only if confidence >= $threshold; else null
  "confidence": number,                   // 0.0..1.0
  "reason": string,                       // one sentence, why you chose it
  "suggestedNewCategory": string|null,    // single word if a clearly better category is missing from CATEGORIES; else null
  "suggestedNewSubcategory": string|null, // single word if a clearly better subcategory is missing; else null
  "alternativeCategory": string|null      // if the text plausibly fits TWO categories, the second best choice; else null
}

CONTEXT:
- USER_PREFERRED_LANGUAGES: $languages
- CATEGORIES: $categories
- SUBCATEGORIES_BY_CATEGORY: $subcategories
- HINTS_BY_CATEGORY: $hints

INTERPRETATION RULES (apply in order):
1) Normalize spelling, transliteration, and synonyms across USER_PREFERRED_LANGUAGES before matching.
2) QUANTITY markers ("x2", "2kg", "3 packs") mean a PHYSICAL ITEM:
   - Do NOT classify as "Movies" or "Shows" unless explicit media cues exist ("season", "episode", "trailer", "movie", "series", "watch").
   - An ingredient or consumable (cilantro, potato, onions) -> "Groceries".
3) Reminders:
   - Choose "Reminders" if there is an explicit time/date expression (times, weekdays, relative dates),
     OR explicit reminder phrasing such as "remind me", "set a reminder", "reminder to".
   - Reminder phrasing without a concrete time/date still means "Reminders", with moderate confidence (0.6-0.75).
4) Action verbs ("buy", "get", "renew", "call", "watch", "pickup", "order") bias towards "To-do",
   unless rule 3 applies.
5) Media:
   - A movie/film title -> "Movies".
   - An episodic/series title -> "Shows".
6) If both a task verb AND a media title are present (e.g. "watch Moana"):
   - category = "To-do"
   - alternativeCategory = "Movies" (or "Shows" if series)
   - reason notes both interpretations.
7) App, feature, bug or UX feedback and development tasks without an explicit time -> "App".
8) If nothing in CATEGORIES fits confidently, use "$fallback_category" and set suggestedNewCategory to the best single word
   (e.g. "Food", "Shopping", "Cosmetics", "Sports", "Finance").
9) Only output a subcategory if it exists under the chosen category AND confidence >= $threshold.

CONSTRAINTS:
- "category" MUST be from CATEGORIES (use provided casing). If no fit, choose "$fallback_category".
- "alternativeCategory" MUST also be from CATEGORIES if present; else null.
- Output JSON only. No markdown, no prose.

TEXT TO CLASSIFY:
$text
"""

ANALYZE_TEMPLATE = """
/analyze

You are a deterministic multi-line text classifier.
Return ONLY a single JSON object with this schema:
{
  "items": [
    {
      "text": string,                        // the input line, exactly as given
      "category": string,                    // must be one of CATEGORIES (case-insensitive match, but output must use provided casing)
      "subcategory": string|null,            // only from SUBCATEGORIES_BY_CATEGORY[category] AND only if confidence >= $threshold; else null
      "confidence": number,                  // 0.0..1.0
      "reason": string,                      // one sentence, why you chose it
      "suggestedNewCategory": string|null,   // single word if a clearly better category is missing from CATEGORIES; else null
      "suggestedNewSubcategory": string|null // single word if a clearly better subcategory is missing; else null
    }
  ]
}
Emit exactly one item per non-empty input line, in the same order as the input.
Ignore blank lines. Ignore leading bullets or checkboxes ("-", "*", "•", "[ ]", "[x]", "1.") when classifying,
but echo the line text back unchanged.

CONTEXT:
- USER_PREFERRED_LANGUAGES: $languages
- CATEGORIES: $categories
- SUBCATEGORIES_BY_CATEGORY: $subcategories
- HINTS_BY_CATEGORY: $hints

INTERPRETATION RULES (apply in order, per line):
1) Normalize spelling, transliteration, and synonyms across USER_PREFERRED_LANGUAGES before matching.
2) QUANTITY markers ("x2", "2", "2kg", "3 packs") mean a PHYSICAL ITEM:
   - Do NOT classify as "Movies" or "Shows" unless explicit media cues exist ("season", "episode", "trailer", "movie", "series", "watch").
   - An ingredient or consumable (produce, staples) -> "Groceries".
3) Reminders:
   - Choose "Reminders" if there is an explicit time/date expression ("tomorrow", "next week", "at 6pm", "on Monday"),
     OR explicit reminder phrasing such as "remind me", "set a reminder", "reminder to".
   - Reminder phrasing without a concrete time/date still means "Reminders", with moderate confidence (0.6-0.75).
4) Action verbs ("buy", "get", "renew", "call", "watch", "pickup", "order") bias towards "To-do",
   unless rule 3 applies.
5) Media:
   - Movie/film titles -> "Movies".
   - Episodic/series titles -> "Shows".
6) If both a task verb AND a media title are present (e.g. "watch Moana trailer"), the category is "To-do".
7) App, feature, bug or UX feedback and development tasks without an explicit time -> "App".
8) If nothing in CATEGORIES fits confidently, use "$fallback_category" and set a single-word suggestedNewCategory
   (e.g. "Food", "Shopping", "Cosmetics", "Sports", "Finance").
9) Only output a subcategory if it exists under the chosen category AND confidence >= $threshold.

CONSTRAINTS:
- "category" MUST be from CATEGORIES (use provided casing). If no fit, choose "$fallback_category".
- Output JSON only. No markdown, no prose.

TEXT TO CLASSIFY:
$text
"""


def _pretty(value: Any) -> str:
    return json.dumps(value if value is not None else {}, indent=2, ensure_ascii=False)


def load_template(path: Optional[str], default: str) -> str:
    """
    Reads a prompt template from disk, falling back to the built-in text.
    """
    if not path:
        return default
    template_path = Path(path)
    if not template_path.exists():
        raise FileNotFoundError(f"Prompt template '{path}' is missing.")
    logger.info(f"Using prompt template from {template_path}")
    return template_path.read_text(encoding="utf-8")


class PromptBuilder:
    """
    Renders the instruction text sent to the model.

    The taxonomy, hints and languages are embedded as JSON rather than
    paraphrased so the model can match exact strings. Templates are plain
    `string.Template` text and can be swapped without touching the pipeline.

    The default rules name the stock categories (Groceries, To-do, Reminders,
    Movies, Shows and App). A taxonomy with other names should supply its own
    templates, or the rules will point at categories that do not exist.
    """

    def __init__(
        self,
        classify_template: str = CLASSIFY_TEMPLATE,
        analyze_template: str = ANALYZE_TEMPLATE,
        subcategory_threshold: float = 0.8,
        fallback_category: str = "Other",
        max_hints_per_category: int = 100,
    ) -> None:
        self.classify_template = Template(classify_template.strip())
        self.analyze_template = Template(analyze_template.strip())
        self.subcategory_threshold = subcategory_threshold
        self.fallback_category = fallback_category
        self.max_hints_per_category = max_hints_per_category

    def _render(self, template: Template, request: ClassificationRequest, text: str) -> str:
        return template.safe_substitute(
            languages=_pretty(request.preferred_languages or []),
            categories=_pretty(request.categories or []),
            subcategories=_pretty(request.effective_subcategories()),
            hints=_pretty(request.capped_hints(self.max_hints_per_category)),
            threshold=f"{self.subcategory_threshold:g}",
            fallback_category=self.fallback_category,
            text=text,
        )

    def build_classify_prompt(self, request: ClassificationRequest) -> str:
        return self._render(self.classify_template, request, request.text.strip())

    def build_analyze_prompt(self, request: ClassificationRequest, lines: Sequence[NoteLine]) -> str:
        joined = "\n".join(line.cleaned for line in lines)
        return self._render(self.analyze_template, request, joined)
