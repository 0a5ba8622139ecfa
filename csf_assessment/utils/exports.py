from __future__ import annotations

import io
import json
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

import pandas as pd

from ..domain.models import FUNCTION_NAMES, Answer, Question
from ..domain.schemas import (
    LowestItemOut,
    PriorityCategoryOut,
    RadarPoint,
    ResultDocument,
    UnassessedCategoryOut,
)
from ..domain.scoring import AnswerMap, maturity_score
from ..domain.summary import build_report
from ..infrastructure.config import get_settings
from ..infrastructure.exceptions import ExportError
from ..infrastructure.logging import get_logger, log_operation

logger = get_logger(__name__)

ExportFormat = Literal["json", "xlsx"]

XLSX_COLUMNS = ["Function", "Category", "ID", "Question", "Answer", "Maturity"]


def build_result_document(
    questions: Sequence[Question],
    answers: AnswerMap,
    generated_at: datetime | None = None,
    basis: str | None = None,
) -> ResultDocument:
    """
    Assemble the one-way result export for the current answers.

    ``answers`` in the document is the snapshot of every recognised stored
    answer, including "na".
    """
    report = build_report(questions, answers)
    summary = report.summary

    radar = [
        RadarPoint(function_tag=f.tag, function_name=f.name, value=f.average)
        for f in report.function_stats
    ]
    top3 = [
        PriorityCategoryOut(
            category=c.key,
            category_label=c.label,
            function_tag=c.function_tag,
            function_name=c.function_name,
            avg_maturity=c.average,
            coverage_pct=c.coverage_pct,
            lowest_score=c.min_score,
            lowest_items=[
                LowestItemOut(id=item.question.id, answer=item.answer.value)
                for item in c.min_items
            ],
        )
        for c in report.top_categories
    ]
    unassessed = [
        UnassessedCategoryOut(
            category=c.key,
            category_label=c.label,
            function_tag=c.function_tag,
            function_name=c.function_name,
        )
        for c in report.unassessed_categories
    ]

    snapshot: dict[str, str] = {}
    for question in questions:
        answer = Answer.parse(answers.get(question.id))
        if answer is not None:
            snapshot[question.id] = answer.value

    return ResultDocument(
        generated_at=generated_at or datetime.now(timezone.utc),
        basis=basis or get_settings().app.basis,
        maturity_overall=summary.overall,
        coverage_pct=summary.coverage_pct,
        radar=radar,
        top3=top3,
        unassessed_categories=unassessed,
        answers=snapshot,
    )


def make_json_export_payload(document: ResultDocument, indent: int = 2) -> str:
    return json.dumps(document.to_payload(), indent=indent, ensure_ascii=False)


def make_xlsx_export_bytes(questions: Sequence[Question], answers: AnswerMap) -> bytes:
    """Create a single-sheet Excel export with one row per question."""
    rows = []
    for question in questions:
        answer = Answer.parse(answers.get(question.id))
        tag = question.function_tag
        rows.append(
            {
                "Function": f"{tag} {FUNCTION_NAMES.get(tag, '')}".strip(),
                "Category": question.category_label,
                "ID": question.id,
                "Question": question.question_text,
                "Answer": answer.label if answer is not None else "",
                "Maturity": maturity_score(answer),
            }
        )

    df = pd.DataFrame(rows, columns=XLSX_COLUMNS)
    # Unscored rows stay blank in Excel rather than showing NaN
    df["Maturity"] = df["Maturity"].astype("Int64")

    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        df.to_excel(writer, index=False, sheet_name="Assessment")
    return bio.getvalue()


@log_operation("write_result_file")
def write_result_file(
    path: str | Path,
    questions: Sequence[Question],
    answers: AnswerMap,
    fmt: ExportFormat = "json",
) -> Path:
    """
    Write the result export as JSON or XLSX.

    Raises:
        ExportError: If the format is unknown or the file cannot be written
    """
    path = Path(path)
    if fmt == "json":
        indent = get_settings().export.indent
        data: bytes = make_json_export_payload(
            build_result_document(questions, answers), indent=indent
        ).encode("utf-8")
    elif fmt == "xlsx":
        data = make_xlsx_export_bytes(questions, answers)
    else:
        raise ExportError(f"Unsupported export format: {fmt}", export_format=str(fmt))

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise ExportError(f"Failed to write result file: {e}", export_format=fmt) from e

    logger.info(f"Result exported to {path} ({fmt}, {len(data)} bytes)")
    return path
