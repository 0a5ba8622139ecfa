"""
Scoring engine: turns a sparse answer map into maturity statistics.

Every function here is pure. Statistics are rebuilt from the catalogue and
the answer store on each call; callers recompute after any answer change.

- Answers "1".."5" map to maturity 0, 25, 50, 75, 100.
- "na", missing and unrecognised values carry no score and are excluded from
  every average (never coerced to 0).
- Means are rounded half-up before they are used for display or ranking.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from typing import Any

from .models import (
    FUNCTION_NAMES,
    FUNCTION_ORDER,
    Answer,
    CategoryStat,
    FunctionStat,
    LowestItem,
    Question,
)

AnswerMap = Mapping[str, Any]

SCORE_BY_ANSWER: dict[Answer, int | None] = {
    Answer.ONE: 0,
    Answer.TWO: 25,
    Answer.THREE: 50,
    Answer.FOUR: 75,
    Answer.FIVE: 100,
    Answer.NA: None,
}

_LABEL_WITH_PARENS = re.compile(r"^([A-Z]{2}\.[A-Z]{2})[\s　]*[（(](.+)[）)]$")
_LABEL_WITH_TEXT = re.compile(r"^([A-Z]{2}\.[A-Z]{2})\b\s*(.+)$")
_CODE_PREFIX = re.compile(r"^[A-Z]{2}\.[A-Z]{2}")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def percentage(part: int, total: int) -> int:
    if not total:
        return 0
    return round_half_up(part / total * 100)


def maturity_score(answer: Any) -> int | None:
    """Maturity (0-100) for an answer, or None when it carries no score."""
    parsed = Answer.parse(answer)
    if parsed is None:
        return None
    return SCORE_BY_ANSWER[parsed]


def is_scored(answer: Any) -> bool:
    return maturity_score(answer) is not None


def function_tag(question_id: str) -> str:
    """Function tag of a question id, e.g. "PR.AA-01" -> "PR"."""
    if not question_id:
        return "??"
    return question_id.split(".")[0]


def function_name(tag: str) -> str:
    return FUNCTION_NAMES.get(tag, tag)


def split_category_label(label: str) -> tuple[str, str]:
    """
    Split a category label into (code, name).

    Accepts "PR.AT (Awareness and Training)", full-width parentheses, or
    "PR.AT Awareness and Training". Labels without a code return ("", label).
    """
    text = str(label or "").strip()
    match = _LABEL_WITH_PARENS.match(text)
    if match:
        return match.group(1), match.group(2)
    match = _LABEL_WITH_TEXT.match(text)
    if match:
        return match.group(1), match.group(2).strip()
    return "", text


def category_code(key: str, label: str) -> str:
    code, _name = split_category_label(label)
    if code:
        return code
    match = _CODE_PREFIX.match(key)
    return match.group(0) if match else key


def compute_category_stats(
    questions: Sequence[Question], answers: AnswerMap
) -> list[CategoryStat]:
    """
    Per-category statistics in first-appearance order.

    Questions are bucketed by category key in a single pass; each bucket keeps
    every question tied at its lowest scored value.
    """
    buckets: dict[str, CategoryStat] = {}
    sums: dict[str, int] = {}

    for idx, question in enumerate(questions):
        key = question.category
        stat = buckets.get(key)
        if stat is None:
            label = question.category_label
            code = category_code(key, label)
            _code, name = split_category_label(label)
            tag = question.function_tag
            stat = CategoryStat(
                key=key,
                label=label,
                code=code,
                name=name or label,
                function_tag=tag,
                function_name=function_name(tag),
                first_index=idx,
            )
            buckets[key] = stat
            sums[key] = 0

        stat.total += 1
        raw = answers.get(question.id)
        score = maturity_score(raw)
        if score is None:
            continue

        stat.answered += 1
        sums[key] += score
        item = LowestItem(question=question, answer=Answer.parse(raw), score=score, index=idx)
        if stat.min_score is None or score < stat.min_score:
            stat.min_score = score
            stat.min_items = [item]
        elif score == stat.min_score:
            stat.min_items.append(item)

    for key, stat in buckets.items():
        stat.coverage_pct = percentage(stat.answered, stat.total)
        stat.average = round_half_up(sums[key] / stat.answered) if stat.answered else None

    return list(buckets.values())


def compute_function_stats(
    questions: Sequence[Question], answers: AnswerMap
) -> list[FunctionStat]:
    """Exactly six function statistics in the fixed function order."""
    totals: dict[str, int] = {}
    answered: dict[str, int] = {}
    sums: dict[str, int] = {}

    for question in questions:
        tag = question.function_tag
        totals[tag] = totals.get(tag, 0) + 1
        score = maturity_score(answers.get(question.id))
        if score is not None:
            answered[tag] = answered.get(tag, 0) + 1
            sums[tag] = sums.get(tag, 0) + score

    results: list[FunctionStat] = []
    for info in FUNCTION_ORDER:
        total = totals.get(info.tag, 0)
        count = answered.get(info.tag, 0)
        results.append(
            FunctionStat(
                tag=info.tag,
                name=info.name,
                total=total,
                answered=count,
                coverage_pct=percentage(count, total),
                average=round_half_up(sums[info.tag] / count) if count else 0,
            )
        )
    return results


def compute_radar_values(questions: Sequence[Question], answers: AnswerMap) -> list[int]:
    """Six values in [0, 100], one per function; 0 where nothing is scored."""
    return [stat.average for stat in compute_function_stats(questions, answers)]
