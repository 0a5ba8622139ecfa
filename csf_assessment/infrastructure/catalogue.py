"""
Question catalogue loading.

The catalogue is read once at startup and is immutable for the session. Any
failure (missing file, bad JSON, empty or invalid records) raises
``LoadError``; there is no retry.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any, overload

from pydantic import ValidationError as PydanticValidationError

from ..domain.models import Question
from ..domain.schemas import QuestionInput
from .exceptions import LoadError
from .logging import get_logger, log_operation

logger = get_logger(__name__)


class Catalogue(Sequence[Question]):
    """Ordered, immutable sequence of questions with an id index."""

    def __init__(self, questions: Iterable[Question], source: str | None = None):
        self._questions: tuple[Question, ...] = tuple(questions)
        self.source = source
        self._index: dict[str, int] = {}
        for idx, question in enumerate(self._questions):
            if question.id in self._index:
                raise LoadError(f"Duplicate question id {question.id!r}", source=source)
            self._index[question.id] = idx

    @overload
    def __getitem__(self, idx: int) -> Question: ...

    @overload
    def __getitem__(self, idx: slice) -> Sequence[Question]: ...

    def __getitem__(self, idx):
        return self._questions[idx]

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return item in self._index
        return item in self._questions

    def __repr__(self) -> str:
        return f"Catalogue({len(self)} questions, source={self.source!r})"

    @property
    def ids(self) -> list[str]:
        return [q.id for q in self._questions]

    def index_of(self, question_id: str) -> int:
        """Catalogue position of ``question_id``; KeyError when unknown."""
        return self._index[question_id]

    def get(self, question_id: str) -> Question | None:
        idx = self._index.get(question_id)
        return None if idx is None else self._questions[idx]


def catalogue_from_records(records: Any, source: str | None = None) -> Catalogue:
    """
    Build a catalogue from parsed JSON records.

    Raises:
        LoadError: If ``records`` is not a non-empty list of valid questions
    """
    if not isinstance(records, list) or not records:
        raise LoadError("JSON is empty or not a list of questions", source=source)

    questions: list[Question] = []
    errors: list[dict[str, Any]] = []
    for position, record in enumerate(records):
        try:
            questions.append(QuestionInput.model_validate(record).to_question())
        except PydanticValidationError as e:
            errors.append(
                {
                    "position": position,
                    "errors": [
                        {"field": ".".join(str(x) for x in err["loc"]), "message": err["msg"]}
                        for err in e.errors()
                    ],
                }
            )

    if errors:
        raise LoadError(
            f"{len(errors)} invalid question record(s)",
            source=source,
            details={"source": source, "invalid_records": errors},
        )

    return Catalogue(questions, source=source)


@log_operation("load_catalogue")
def load_catalogue(path: str | Path) -> Catalogue:
    """
    Load and validate the question catalogue from a JSON file.

    Args:
        path: Path to the catalogue JSON (an array of question objects)

    Returns:
        Loaded catalogue

    Raises:
        LoadError: If the file is missing, unreadable or invalid

    Example:
        >>> catalogue = load_catalogue("./data.json")
        >>> len(catalogue)
        106
    """
    path = Path(path)
    source = str(path)
    if not path.exists():
        raise LoadError(f"Catalogue file not found: {path}", source=source)

    try:
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
    except json.JSONDecodeError as e:
        raise LoadError(f"Invalid JSON in catalogue: {e}", source=source) from e
    except UnicodeDecodeError as e:
        raise LoadError(f"Catalogue is not UTF-8 encoded: {e}", source=source) from e
    except OSError as e:
        raise LoadError(f"Failed to read catalogue: {e}", source=source) from e

    catalogue = catalogue_from_records(records, source=source)
    logger.info(f"Loaded {len(catalogue)} questions from {source}")
    return catalogue
