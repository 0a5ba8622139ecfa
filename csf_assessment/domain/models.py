from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Answer(str, Enum):
    """Answer symbols recorded per question. ``NA`` means not scored."""

    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    NA = "na"

    @classmethod
    def parse(cls, value: Any) -> Answer | None:
        """Return the matching member, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_scored(self) -> bool:
        return self is not Answer.NA

    @property
    def label(self) -> str:
        return ANSWER_LABELS[self]


ANSWER_LABELS: dict[Answer, str] = {
    Answer.FIVE: "5: Established",
    Answer.FOUR: "4: Mostly implemented",
    Answer.THREE: "3: Partially implemented",
    Answer.TWO: "2: In preparation",
    Answer.ONE: "1: Not implemented",
    Answer.NA: "Unanswered / unknown",
}


@dataclass(frozen=True, slots=True)
class FunctionInfo:
    tag: str
    name: str


FUNCTION_ORDER: tuple[FunctionInfo, ...] = (
    FunctionInfo("GV", "Govern"),
    FunctionInfo("ID", "Identify"),
    FunctionInfo("PR", "Protect"),
    FunctionInfo("DE", "Detect"),
    FunctionInfo("RS", "Respond"),
    FunctionInfo("RC", "Recover"),
)

FUNCTION_NAMES: dict[str, str] = {f.tag: f.name for f in FUNCTION_ORDER}


@dataclass(frozen=True, slots=True)
class Example:
    code: str
    text: str


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    category: str  # canonical key
    category_label: str
    question_text: str
    examples: tuple[Example, ...] = ()
    risk_text: str | None = None
    improvement_hint: str | None = None

    @property
    def function_tag(self) -> str:
        if not self.id:
            return "??"
        return self.id.split(".")[0]


@dataclass(slots=True)
class LowestItem:
    question: Question
    answer: Answer
    score: int
    index: int  # position in the catalogue


@dataclass(slots=True)
class CategoryStat:
    key: str
    label: str
    code: str
    name: str
    function_tag: str
    function_name: str
    first_index: int
    total: int = 0
    answered: int = 0
    coverage_pct: int = 0
    average: int | None = None  # None when nothing scored
    min_score: int | None = None
    min_items: list[LowestItem] = field(default_factory=list)


@dataclass(slots=True)
class FunctionStat:
    tag: str
    name: str
    total: int
    answered: int
    coverage_pct: int
    average: int  # 0 when nothing scored
