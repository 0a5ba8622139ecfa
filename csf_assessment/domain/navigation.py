"""Function -> category index used to jump into the question flow."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from .models import FUNCTION_ORDER, Question
from .scoring import AnswerMap, category_code, function_name, is_scored


@dataclass(slots=True)
class NavCategory:
    key: str
    label: str
    code: str
    function_tag: str
    start_index: int
    total: int = 0
    answered: int = 0


@dataclass(slots=True)
class NavFunction:
    tag: str
    name: str
    categories: list[NavCategory] = field(default_factory=list)


def build_navigation(questions: Sequence[Question], answers: AnswerMap) -> list[NavFunction]:
    """
    Categories grouped under their function with answered/total counts.

    Functions follow the fixed order, then any unmapped tags in order of
    appearance. Functions without questions are left out.
    """
    categories: dict[str, NavCategory] = {}
    for idx, question in enumerate(questions):
        cat = categories.get(question.category)
        if cat is None:
            cat = NavCategory(
                key=question.category,
                label=question.category_label,
                code=category_code(question.category, question.category_label),
                function_tag=question.function_tag,
                start_index=idx,
            )
            categories[question.category] = cat
        cat.total += 1
        if is_scored(answers.get(question.id)):
            cat.answered += 1

    by_tag: dict[str, list[NavCategory]] = {}
    for cat in categories.values():
        by_tag.setdefault(cat.function_tag, []).append(cat)

    ordered_tags = [f.tag for f in FUNCTION_ORDER]
    ordered_tags += [tag for tag in by_tag if tag not in ordered_tags]

    nav: list[NavFunction] = []
    for tag in ordered_tags:
        cats = by_tag.get(tag)
        if not cats:
            continue
        cats.sort(key=lambda c: c.start_index)
        nav.append(NavFunction(tag=tag, name=function_name(tag), categories=cats))
    return nav


def filter_navigation(nav: Sequence[NavFunction], keyword: str) -> list[NavFunction]:
    """Keep categories whose key, code or label contains ``keyword`` (case-insensitive)."""
    kw = str(keyword or "").strip().lower()
    if not kw:
        return list(nav)

    filtered: list[NavFunction] = []
    for fn in nav:
        hits = [
            c
            for c in fn.categories
            if kw in c.key.lower() or kw in c.code.lower() or kw in c.label.lower()
        ]
        if hits:
            filtered.append(replace(fn, categories=hits))
    return filtered
