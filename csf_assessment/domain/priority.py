"""
Priority selection over category statistics.

Weak categories are ranked by rounded average maturity, then by coverage
(a category that is both low and under-sampled surfaces first), then by
category code. Categories with no scored answers are never ranked as weak;
they are reported as unassessed instead.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from .models import Answer, CategoryStat, LowestItem, Question
from .scoring import AnswerMap, compute_category_stats, is_scored

SortMode = Literal["weak", "strong", "code", "name"]

# Unscored categories sort after every real average (0..100)
_UNSCORED_RANK = 101


def _weakness_key(stat: CategoryStat) -> tuple[int, int, str]:
    return (stat.average, stat.coverage_pct, str(stat.code))


def select_top_weak_categories(
    questions: Sequence[Question], answers: AnswerMap, n: int = 3
) -> list[CategoryStat]:
    """The ``n`` weakest categories among those with at least one scored answer."""
    evaluated = [
        stat
        for stat in compute_category_stats(questions, answers)
        if stat.answered > 0 and stat.average is not None
    ]
    evaluated.sort(key=_weakness_key)
    return evaluated[: max(n, 0)]


def select_unassessed_categories(
    questions: Sequence[Question], answers: AnswerMap
) -> list[CategoryStat]:
    """Categories with no scored answer, in first-appearance order."""
    return [stat for stat in compute_category_stats(questions, answers) if stat.answered == 0]


def lowest_items(stat: CategoryStat) -> list[LowestItem]:
    """Every question tied at the category's lowest scored value."""
    return list(stat.min_items)


@dataclass(slots=True)
class ItemGroup:
    category_key: str
    label: str
    function_tag: str
    items: list[tuple[Question, Answer | None]] = field(default_factory=list)


def group_items_by_category(
    questions: Sequence[Question],
    answers: AnswerMap,
    predicate: Callable[[Question, Answer | None], bool],
) -> list[ItemGroup]:
    """
    Group questions matching ``predicate`` by category.

    Groups are ordered by item count (largest first), then by category key.
    Items keep catalogue order inside each group.
    """
    groups: dict[str, ItemGroup] = {}
    for question in questions:
        answer = Answer.parse(answers.get(question.id))
        if not predicate(question, answer):
            continue
        group = groups.get(question.category)
        if group is None:
            group = ItemGroup(
                category_key=question.category,
                label=question.category_label,
                function_tag=question.function_tag,
            )
            groups[question.category] = group
        group.items.append((question, answer))

    return sorted(groups.values(), key=lambda g: (-len(g.items), g.category_key))


def select_low_maturity_items(
    questions: Sequence[Question], answers: AnswerMap, max_level: int = 2
) -> list[ItemGroup]:
    """Scored questions answered at or below ``max_level`` (2 or 3), grouped by category."""
    if max_level not in (2, 3):
        raise ValueError(f"max_level must be 2 or 3, got {max_level!r}")

    def at_or_below(_question: Question, answer: Answer | None) -> bool:
        return answer is not None and answer.is_scored and int(answer.value) <= max_level

    return group_items_by_category(questions, answers, at_or_below)


def select_unanswered_items(
    questions: Sequence[Question], answers: AnswerMap
) -> list[ItemGroup]:
    """Questions left blank or marked "na", grouped by category."""

    def unscored(_question: Question, answer: Answer | None) -> bool:
        return not is_scored(answer)

    return group_items_by_category(questions, answers, unscored)


def category_bars(
    questions: Sequence[Question],
    answers: AnswerMap,
    function_tag: str,
    sort: SortMode = "weak",
) -> list[CategoryStat]:
    """
    Categories of one function, ordered for a bar listing.

    ``weak`` puts the lowest average first and ``strong`` the highest; both
    place unscored categories last and break ties by code. ``code`` and
    ``name`` sort alphabetically.
    """
    tag = str(function_tag or "").upper()
    cats = [s for s in compute_category_stats(questions, answers) if s.function_tag == tag]

    def rank(stat: CategoryStat) -> int:
        return _UNSCORED_RANK if stat.average is None else stat.average

    sorters: dict[str, Callable[[CategoryStat], Any]] = {
        "weak": lambda s: (rank(s), s.code),
        "strong": lambda s: (-(s.average if s.average is not None else -1), s.code),
        "code": lambda s: s.code,
        "name": lambda s: s.name.casefold(),
    }
    if sort not in sorters:
        raise ValueError(f"Unknown sort mode: {sort!r}")
    return sorted(cats, key=sorters[sort])
