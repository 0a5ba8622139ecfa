"""
Summary builder: assembles engine output into a single report.

The qualitative level and the recommended action come from fixed bands. The
action bands are checked in order (coverage first, then overall maturity) and
exactly one applies.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .models import Answer, CategoryStat, FunctionStat, Question
from .priority import select_top_weak_categories, select_unassessed_categories
from .scoring import (
    AnswerMap,
    compute_function_stats,
    maturity_score,
    percentage,
    round_half_up,
)

LEVEL_HIGH = "high"
LEVEL_ADEQUATE = "adequate"
LEVEL_NEEDS_IMPROVEMENT = "needs improvement"
LEVEL_URGENT = "urgent"

ACTION_CLOSE_GAPS = (
    "Many items are still unassessed (unanswered or unknown). Work with the relevant "
    "departments to take stock of the current state and make coverage visible first."
)
ACTION_BASELINE = (
    "Start with the highest-priority areas that are not in place and establish baseline "
    "rules, responsibilities and operating procedures first."
)
ACTION_WIDEN = (
    "Raise partially implemented measures to a state where they reliably cover the main "
    "scope (clarify scope, standardise and reduce exceptions, embed operations)."
)
ACTION_CONTINUOUS = (
    "Resolve the remaining low-maturity gaps first while strengthening continuous "
    "improvement (measure, review, improve)."
)

COVERAGE_GAP_THRESHOLD = 70
COUNT_KEYS: tuple[str, ...] = ("5", "4", "3", "2", "1", "na")


def maturity_level(overall: int) -> str:
    if overall >= 80:
        return LEVEL_HIGH
    if overall >= 60:
        return LEVEL_ADEQUATE
    if overall >= 40:
        return LEVEL_NEEDS_IMPROVEMENT
    return LEVEL_URGENT


def recommended_action(coverage_pct: int, overall: int) -> str:
    if coverage_pct < COVERAGE_GAP_THRESHOLD:
        return ACTION_CLOSE_GAPS
    if overall < 40:
        return ACTION_BASELINE
    if overall < 60:
        return ACTION_WIDEN
    return ACTION_CONTINUOUS


def weakest_function(function_stats: Sequence[FunctionStat]) -> FunctionStat | None:
    """
    Lowest average among functions with answers.

    Falls back to every function when none has answers; all averages are then
    0 and the first function in the fixed order is returned.
    """
    evaluated = [f for f in function_stats if f.answered > 0]
    base = evaluated or list(function_stats)
    if not base:
        return None
    weakest = base[0]
    for stat in base:
        if stat.average < weakest.average:
            weakest = stat
    return weakest


@dataclass(slots=True)
class AssessmentSummary:
    total: int
    counts: dict[str, int]
    scored_count: int
    unscored_count: int
    coverage_pct: int
    overall: int
    level: str
    weakest: FunctionStat | None
    top_priorities: list[str] = field(default_factory=list)
    unassessed: list[str] = field(default_factory=list)
    unassessed_count: int = 0
    action: str = ""

    def percent(self, count: int) -> int:
        return percentage(count, self.total)

    @property
    def percentages(self) -> dict[str, int]:
        return {key: self.percent(value) for key, value in self.counts.items()}


def build_summary(
    function_stats: Sequence[FunctionStat],
    top_categories: Sequence[CategoryStat],
    unassessed_categories: Sequence[CategoryStat],
    answers: AnswerMap,
    questions: Sequence[Question],
    unassessed_limit: int = 12,
) -> AssessmentSummary:
    total = len(questions)
    counts = {key: 0 for key in COUNT_KEYS}
    scored_count = 0
    score_sum = 0

    for question in questions:
        answer = Answer.parse(answers.get(question.id))
        score = maturity_score(answer)
        if score is None:
            counts["na"] += 1
            continue
        counts[answer.value] += 1
        scored_count += 1
        score_sum += score

    overall = round_half_up(score_sum / scored_count) if scored_count else 0
    coverage_pct = percentage(scored_count, total)

    return AssessmentSummary(
        total=total,
        counts=counts,
        scored_count=scored_count,
        unscored_count=counts["na"],
        coverage_pct=coverage_pct,
        overall=overall,
        level=maturity_level(overall),
        weakest=weakest_function(function_stats),
        top_priorities=[c.label for c in list(top_categories)[:3] if c.label],
        unassessed=[c.label for c in list(unassessed_categories)[:unassessed_limit] if c.label],
        unassessed_count=len(unassessed_categories),
        action=recommended_action(coverage_pct, overall),
    )


@dataclass(slots=True)
class AssessmentReport:
    function_stats: list[FunctionStat]
    radar_values: list[int]
    top_categories: list[CategoryStat]
    unassessed_categories: list[CategoryStat]
    summary: AssessmentSummary


def build_report(
    questions: Sequence[Question],
    answers: AnswerMap,
    top_n: int = 3,
    unassessed_limit: int = 12,
) -> AssessmentReport:
    """Compute every derived statistic afresh and bundle them."""
    function_stats = compute_function_stats(questions, answers)
    top_categories = select_top_weak_categories(questions, answers, n=top_n)
    unassessed = select_unassessed_categories(questions, answers)
    summary = build_summary(
        function_stats,
        top_categories,
        unassessed,
        answers,
        questions,
        unassessed_limit=unassessed_limit,
    )
    return AssessmentReport(
        function_stats=function_stats,
        radar_values=[f.average for f in function_stats],
        top_categories=top_categories,
        unassessed_categories=unassessed,
        summary=summary,
    )


def format_summary_text(summary: AssessmentSummary) -> str:
    c = summary.counts
    pct = summary.percent
    lines = [
        f"Overall maturity is {summary.overall} points; the current level is "
        f'"{summary.level}" (coverage: {summary.coverage_pct}%).',
        "Breakdown: "
        + " / ".join(f"{key} {c[key]} ({pct(c[key])}%)" for key in COUNT_KEYS[:-1])
        + f" / unassessed {c['na']} ({pct(c['na'])}%).",
    ]
    if summary.weakest is not None:
        lines.append(
            f"The weakest function is {summary.weakest.name} ({summary.weakest.tag}) "
            f"with an average of {summary.weakest.average}."
        )
    if summary.top_priorities:
        lines.append(f"Priority categories: {' / '.join(summary.top_priorities)}.")
    if summary.unassessed_count:
        lines.append(f"{summary.unassessed_count} categories are not yet assessed.")
    lines.append(f"Recommended action: {summary.action}")
    return "\n".join(lines)
