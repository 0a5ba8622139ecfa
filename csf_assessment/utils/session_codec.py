"""
Session export and import.

A session document stores the answer map and the question cursor so an
assessment can be resumed later. Only one document version is supported;
documents of any other version are rejected rather than migrated.

Import validation has two tiers:

- Structural problems (not an object, wrong kind, unsupported version,
  missing answers map) raise ``FormatError`` and abort the import.
- Per-entry problems (unknown question id, unrecognised answer value) are
  filtered out and reported as ``ValidationSkip`` records.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..domain.models import Answer, Question
from ..domain.schemas import SessionDocument
from ..infrastructure.exceptions import ExportError, FormatError
from ..infrastructure.logging import LogContext, get_logger, log_operation

logger = get_logger(__name__)

SESSION_KIND = "nist-csf2-light-session"
SESSION_VERSION = 2
DEFAULT_DATA_FILE = "./data.json"

SKIP_UNKNOWN_ID = "unknown_id"
SKIP_INVALID_VALUE = "invalid_value"


@dataclass(frozen=True, slots=True)
class ValidationSkip:
    """One answer entry dropped during import."""

    question_id: str
    value: Any
    reason: str


@dataclass(slots=True)
class ImportResult:
    answers: dict[str, Answer]
    index: int
    skipped: list[ValidationSkip] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.skipped)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _short_id(question_id: str) -> str:
    """Older exports keyed answers as "GV.OC-01 - <text>"; keep the id part."""
    return question_id.split(" - ")[0]


def serialize(
    answers: Mapping[str, Any],
    current_index: int,
    catalogue: Sequence[Question],
    data_file: str = DEFAULT_DATA_FILE,
    generated_at: datetime | None = None,
) -> SessionDocument:
    """
    Build a session document for the current answers and cursor.

    Only answers for questions in ``catalogue`` with a recognised value are
    exported; anything else held in memory is left out.
    """
    exported: dict[str, str] = {}
    for question in catalogue:
        answer = Answer.parse(answers.get(question.id))
        if answer is not None:
            exported[question.id] = answer.value

    return SessionDocument(
        kind=SESSION_KIND,
        version=SESSION_VERSION,
        generated_at=generated_at or datetime.now(timezone.utc),
        data_file=data_file,
        question_count=len(catalogue),
        current_index=max(int(current_index), 0),
        answers=exported,
    )


def _read_index(raw: Any) -> int:
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    return 0


def deserialize(document: Any, catalogue: Sequence[Question]) -> ImportResult:
    """
    Validate a parsed session document and restore answers and cursor.

    Args:
        document: Parsed JSON (or a ``SessionDocument``)
        catalogue: The currently loaded questions

    Returns:
        ImportResult with the accepted answers, the resume index and the
        entries that were dropped

    Raises:
        FormatError: If the document is structurally invalid or its kind or
            version is not supported
    """
    if isinstance(document, SessionDocument):
        document = document.to_payload()
    if not isinstance(document, Mapping):
        raise FormatError("the session document is not a JSON object")

    kind = document.get("kind")
    if kind != SESSION_KIND:
        raise FormatError("not a session file for this tool", field="kind", value=kind)

    version = document.get("version")
    if isinstance(version, bool) or version != SESSION_VERSION:
        raise FormatError(f"unsupported version ({version})", field="version", value=version)

    raw_answers = document.get("answers")
    if not isinstance(raw_answers, Mapping):
        raise FormatError("answers not found", field="answers")

    known_ids = {q.id for q in catalogue}
    answers: dict[str, Answer] = {}
    skipped: list[ValidationSkip] = []
    for raw_id, raw_value in raw_answers.items():
        question_id = _short_id(str(raw_id))
        if question_id not in known_ids:
            skipped.append(ValidationSkip(str(raw_id), raw_value, SKIP_UNKNOWN_ID))
            continue
        answer = Answer.parse(raw_value)
        if answer is None:
            skipped.append(ValidationSkip(str(raw_id), raw_value, SKIP_INVALID_VALUE))
            continue
        answers[question_id] = answer

    last = max(len(catalogue) - 1, 0)
    index = _clamp(_read_index(document.get("currentIndex")), 0, last)
    first_unanswered = next(
        (idx for idx, q in enumerate(catalogue) if q.id not in answers), None
    )
    if first_unanswered is not None:
        index = first_unanswered

    if skipped:
        logger.warning(
            f"Dropped {len(skipped)} session entr{'y' if len(skipped) == 1 else 'ies'} "
            f"during import",
            extra={"dropped": [(s.question_id, s.reason) for s in skipped]},
        )
    logger.debug(f"Imported {len(answers)} answers, resuming at index {index}")
    return ImportResult(answers=answers, index=index, skipped=skipped)


@log_operation("write_session_file")
def write_session_file(path: str | Path, document: SessionDocument, indent: int = 2) -> Path:
    """
    Write a session document as JSON.

    Raises:
        ExportError: If the file cannot be written
    """
    path = Path(path)
    with LogContext(session_file=str(path)):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(document.to_payload(), f, indent=indent, ensure_ascii=False)
        except OSError as e:
            raise ExportError(f"Failed to write session file: {e}", export_format="json") from e
        logger.info(f"Session saved ({len(document.answers)} answers)")
    return path


def read_session_file(path: str | Path) -> Any:
    """
    Read and parse a session file without validating it.

    Raises:
        FormatError: If the file is missing, unreadable, not UTF-8 or not
            valid JSON
    """
    path = Path(path)
    if not path.exists():
        raise FormatError(f"session file not found: {path}", field="path", value=str(path))
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise FormatError(
            f"failed to parse JSON (the file may be corrupted): {e}",
            field="path",
            value=str(path),
        ) from e
    except UnicodeDecodeError as e:
        raise FormatError(
            f"the file is not UTF-8 encoded JSON: {e}", field="path", value=str(path)
        ) from e
    except OSError as e:
        raise FormatError(f"cannot read session file: {e}", field="path", value=str(path)) from e


@log_operation("load_session")
def load_session(path: str | Path, catalogue: Sequence[Question]) -> ImportResult:
    """Read a session file and validate it against ``catalogue``."""
    with LogContext(session_file=str(path)):
        return deserialize(read_session_file(path), catalogue)
