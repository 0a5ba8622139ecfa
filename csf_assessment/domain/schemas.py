"""
Pydantic schemas for the documents the engine reads and writes.

- ``QuestionInput`` validates one catalogue record.
- ``SessionDocument`` is the versioned, re-importable progress snapshot.
- ``ResultDocument`` is the one-way result export.

Documents are serialised with their camelCase aliases
(``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .models import Example, Question

UNKNOWN_CATEGORY = "UNKNOWN_CATEGORY"
UNCATEGORIZED_LABEL = "Uncategorized"


class ExampleInput(BaseModel):
    """An implementation example attached to a catalogue question."""

    model_config = ConfigDict(str_strip_whitespace=True)

    code: str = Field("", validation_alias=AliasChoices("implementationExample", "code"))
    text: str = Field("", validation_alias=AliasChoices("text", "text_ja", "text_en"))


class QuestionInput(BaseModel):
    """Validation schema for one catalogue record."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: str = Field(..., min_length=1)
    category: str | None = None
    category_label: str | None = Field(
        None, validation_alias=AliasChoices("category_label", "category_ja")
    )
    question: str = Field(..., min_length=1)
    examples: list[ExampleInput] = Field(default_factory=list)
    risk_text: str | None = Field(None, validation_alias=AliasChoices("riskText", "risk_text"))
    improvement_hint: str | None = Field(
        None, validation_alias=AliasChoices("improvementHint", "improvement_hint")
    )

    @field_validator("examples", mode="before")
    def coerce_examples(cls, v):
        """Accept plain strings as examples without a code."""
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("examples must be a list")
        return [{"text": item} if isinstance(item, str) else item for item in v]

    def to_question(self) -> Question:
        key = (self.category or self.category_label or UNKNOWN_CATEGORY).strip()
        label = (self.category_label or self.category or UNCATEGORIZED_LABEL).strip()
        return Question(
            id=self.id,
            category=key or UNKNOWN_CATEGORY,
            category_label=label or UNCATEGORIZED_LABEL,
            question_text=self.question,
            examples=tuple(Example(code=e.code, text=e.text) for e in self.examples),
            risk_text=self.risk_text or None,
            improvement_hint=self.improvement_hint or None,
        )


class SessionDocument(BaseModel):
    """Versioned snapshot of answers and cursor, produced by explicit export."""

    model_config = ConfigDict(populate_by_name=True)

    kind: str
    version: int
    generated_at: datetime = Field(..., alias="generatedAt")
    data_file: str = Field(..., alias="dataFile")
    question_count: int = Field(..., ge=0, alias="questionCount")
    current_index: int = Field(..., ge=0, alias="currentIndex")
    answers: dict[str, str] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and an ISO-8601 timestamp."""
        return self.model_dump(mode="json", by_alias=True)


class LowestItemOut(BaseModel):
    id: str
    answer: str


class PriorityCategoryOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: str
    category_label: str = Field(..., alias="categoryLabel")
    function_tag: str = Field(..., alias="functionTag")
    function_name: str = Field(..., alias="functionName")
    avg_maturity: int | None = Field(None, alias="avgMaturity")
    coverage_pct: int = Field(..., alias="coveragePct")
    lowest_score: int | None = Field(None, alias="lowestScore")
    lowest_items: list[LowestItemOut] = Field(default_factory=list, alias="lowestItems")


class UnassessedCategoryOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: str
    category_label: str = Field(..., alias="categoryLabel")
    function_tag: str = Field(..., alias="functionTag")
    function_name: str = Field(..., alias="functionName")


class RadarPoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    function_tag: str = Field(..., alias="functionTag")
    function_name: str = Field(..., alias="functionName")
    value: int = Field(..., ge=0, le=100)


class ResultDocument(BaseModel):
    """Terminal result export; never re-imported."""

    model_config = ConfigDict(populate_by_name=True)

    generated_at: datetime = Field(..., alias="generatedAt")
    basis: str
    maturity_overall: int = Field(..., alias="maturityOverall")
    coverage_pct: int = Field(..., alias="coveragePct")
    radar: list[RadarPoint]
    top3: list[PriorityCategoryOut]
    unassessed_categories: list[UnassessedCategoryOut] = Field(..., alias="unassessedCategories")
    answers: dict[str, str]

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
