from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from note_triage.core.models import ClassificationRequest, ClassificationResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaxonomyPayload(CamelModel):
    """
    Taxonomy fields shared by every classification endpoint.
    """

    categories: List[str] = Field(..., description="Allowed categories, in the caller's casing")
    subcategories_by_category: Dict[str, List[str]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("subcategoriesByCategory", "subcategoriesByCat", "subcategories_by_category"),
    )
    hints_by_category: Dict[str, List[str]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("hintsByCategory", "hints", "hints_by_category"),
    )
    languages: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("languages", "preferredLanguages"),
    )

    def to_domain(self, text: str) -> ClassificationRequest:
        return ClassificationRequest(
            text=text,
            categories=self.categories,
            subcategories_by_category=self.subcategories_by_category,
            hints_by_category=self.hints_by_category,
            preferred_languages=self.languages,
        )


class ClassifyRequest(TaxonomyPayload):
    """
    DTO for single-note classification.
    """

    text: str = Field(..., description="The note to classify")

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be blank")
        return value


class BatchClassifyRequest(TaxonomyPayload):
    """
    DTO for multi-line classification: newline-separated `text` or a pre-split `lines` array.
    """

    text: Optional[str] = None
    lines: Optional[List[str]] = Field(None, validation_alias=AliasChoices("lines", "items"))

    @model_validator(mode="after")
    def text_or_lines(self) -> "BatchClassifyRequest":
        if self.text is None and self.lines is None:
            raise ValueError("either text or lines is required")
        return self


class ClassificationResponse(CamelModel):
    """
    DTO for a single classification result.
    """

    category: str
    subcategory: Optional[str] = None
    confidence: float
    reason: str = ""
    suggested_new_category: Optional[str] = None
    suggested_new_subcategory: Optional[str] = None
    alternative_category: Optional[str] = None
    provider: str
    cached: bool = False
    ms: int = 0

    @classmethod
    def from_result(cls, result: ClassificationResult, cached: bool, ms: int) -> "ClassificationResponse":
        return cls(
            category=result.category,
            subcategory=result.subcategory,
            confidence=result.confidence,
            reason=result.reason,
            suggested_new_category=result.suggested_new_category,
            suggested_new_subcategory=result.suggested_new_subcategory,
            alternative_category=result.alternative_category,
            provider=result.provider,
            cached=cached,
            ms=ms,
        )


class BatchItemResponse(CamelModel):
    text: str
    category: str
    subcategory: Optional[str] = None
    confidence: float
    reason: str = ""
    suggested_new_category: Optional[str] = None
    suggested_new_subcategory: Optional[str] = None
    provider: str
    cached: Optional[bool] = None

    @classmethod
    def from_result(cls, result: ClassificationResult, cached: Optional[bool] = None) -> "BatchItemResponse":
        return cls(
            text=result.text or "",
            category=result.category,
            subcategory=result.subcategory,
            confidence=result.confidence,
            reason=result.reason,
            suggested_new_category=result.suggested_new_category,
            suggested_new_subcategory=result.suggested_new_subcategory,
            provider=result.provider,
            cached=cached,
        )


class BatchClassificationResponse(CamelModel):
    items: List[BatchItemResponse]
    provider: Optional[str] = None
    cached: Optional[bool] = None
    ms: int = 0


class HealthResponse(CamelModel):
    ok: bool
    primary: str
    fallback: str
    cache_size: int
