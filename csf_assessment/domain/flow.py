"""
Assessment flow state machine.

States: ``loading -> intro -> assessing <-> reviewing``. All mutable domain
state lives in an explicit ``AssessmentSession`` owned by the controller;
``restart`` replaces it with a fresh one. Reports are recomputed every time
the controller enters ``reviewing``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..infrastructure.exceptions import (
    InvalidAnswerError,
    LoadError,
    QuestionNotFoundError,
    TransitionError,
)
from ..infrastructure.catalogue import Catalogue
from ..infrastructure.logging import LogContext, get_logger
from ..utils.session_codec import DEFAULT_DATA_FILE, ImportResult, deserialize, serialize
from .models import Answer, Question
from .schemas import SessionDocument
from .summary import AssessmentReport, build_report

logger = get_logger(__name__)


class FlowState(str, Enum):
    LOADING = "loading"
    INTRO = "intro"
    ASSESSING = "assessing"
    REVIEWING = "reviewing"


@dataclass(slots=True)
class AssessmentSession:
    """Answer store plus cursor for one assessment."""

    answers: dict[str, Answer] = field(default_factory=dict)
    current_index: int = 0

    def has_answer(self, question_id: str) -> bool:
        return question_id in self.answers


class FlowController:
    """
    Drives one user through the catalogue.

    Example:
        >>> flow = FlowController(catalogue)
        >>> flow.start()
        >>> flow.answer_current("3")
        >>> flow.next()
    """

    def __init__(
        self,
        catalogue: Sequence[Question] | None = None,
        require_consent: bool = False,
        top_n: int = 3,
        unassessed_limit: int = 12,
    ):
        self.questions: Sequence[Question] = ()
        self._ids: Catalogue | frozenset[str] = frozenset()
        self.state = FlowState.LOADING
        self.session = AssessmentSession()
        self.require_consent = require_consent
        self.consent_given = False
        self.return_to_review = False
        self.top_n = top_n
        self.unassessed_limit = unassessed_limit
        self.report: AssessmentReport | None = None
        self.load_error: LoadError | None = None
        if catalogue is not None:
            self.load(catalogue)

    # -- loading ---------------------------------------------------------

    def load(self, catalogue: Sequence[Question]) -> None:
        if self.state is not FlowState.LOADING:
            raise TransitionError("load", self.state.value)
        if not catalogue:
            self.load_error = LoadError("JSON is empty or invalid array")
            logger.error(self.load_error.message)
            raise self.load_error
        self.questions = catalogue
        # Catalogue carries its own id index
        self._ids = (
            catalogue if isinstance(catalogue, Catalogue) else frozenset(q.id for q in catalogue)
        )
        self.load_error = None
        self.state = FlowState.INTRO
        logger.debug(f"Flow ready with {len(catalogue)} questions")

    def fail(self, error: LoadError) -> None:
        """Record a catalogue failure; the flow stays in ``loading``."""
        self.load_error = error
        logger.error(f"Catalogue load failed: {error.message}")

    # -- derived flags ---------------------------------------------------

    @property
    def current_index(self) -> int:
        return self.session.current_index

    @property
    def current_question(self) -> Question | None:
        if not self.questions:
            return None
        return self.questions[self.session.current_index]

    @property
    def progress(self) -> tuple[int, int]:
        return self.session.current_index + 1, len(self.questions)

    @property
    def can_start(self) -> bool:
        return self.state is FlowState.INTRO and (self.consent_given or not self.require_consent)

    @property
    def can_go_next(self) -> bool:
        question = self.current_question
        return question is not None and self.session.has_answer(question.id)

    @property
    def can_go_previous(self) -> bool:
        return self.session.current_index > 0

    @property
    def can_open_review(self) -> bool:
        return bool(self.questions) and any(self.session.has_answer(q.id) for q in self.questions)

    @property
    def all_answered(self) -> bool:
        return bool(self.questions) and all(self.session.has_answer(q.id) for q in self.questions)

    # -- transitions -----------------------------------------------------

    def _require(self, transition: str, *states: FlowState) -> None:
        if self.state not in states:
            raise TransitionError(transition, self.state.value)

    def _clamp(self, index: int) -> int:
        return max(0, min(int(index), max(len(self.questions) - 1, 0)))

    def _enter_review(self) -> AssessmentReport:
        self.report = build_report(
            self.questions,
            self.session.answers,
            top_n=self.top_n,
            unassessed_limit=self.unassessed_limit,
        )
        self.state = FlowState.REVIEWING
        return self.report

    def set_consent(self, agreed: bool) -> None:
        self.consent_given = bool(agreed)

    def start(self) -> None:
        self._require("start", FlowState.INTRO)
        if not self.can_start:
            raise TransitionError("start", self.state.value, "consent has not been given")
        self.state = FlowState.ASSESSING

    def answer(self, question_id: str, value: Any) -> Answer:
        self._require("answer", FlowState.ASSESSING)
        if not isinstance(question_id, str) or question_id not in self._ids:
            raise QuestionNotFoundError(question_id)
        answer = Answer.parse(value)
        if answer is None:
            raise InvalidAnswerError(value, question_id=question_id)
        with LogContext(question_id=question_id):
            self.session.answers[question_id] = answer
            logger.debug(f"Answer recorded: {answer.value}")
        return answer

    def answer_current(self, value: Any) -> Answer:
        question = self.current_question
        if question is None:
            raise TransitionError("answer", self.state.value, "no question loaded")
        return self.answer(question.id, value)

    def next(self) -> AssessmentReport | None:
        """Advance one question; past the last one, build the report and review."""
        self._require("next", FlowState.ASSESSING)
        if not self.can_go_next:
            raise TransitionError("next", self.state.value, "the current question is unanswered")
        if self.session.current_index < len(self.questions) - 1:
            self.session.current_index += 1
            return None
        return self._enter_review()

    def previous(self) -> None:
        self._require("previous", FlowState.ASSESSING)
        if self.session.current_index > 0:
            self.session.current_index -= 1

    def open_review(self) -> AssessmentReport:
        self._require("open_review", FlowState.INTRO, FlowState.ASSESSING, FlowState.REVIEWING)
        if not self.can_open_review:
            raise TransitionError("open_review", self.state.value, "nothing has been answered")
        self.return_to_review = True
        return self._enter_review()

    def back_to_assess(self) -> None:
        self._require("back_to_assess", FlowState.REVIEWING)
        self.return_to_review = True
        self.state = FlowState.ASSESSING

    def back_to_review(self) -> AssessmentReport:
        self._require("back_to_review", FlowState.ASSESSING)
        if not self.return_to_review:
            raise TransitionError("back_to_review", self.state.value, "review was not visited")
        return self._enter_review()

    def restart(self) -> None:
        self._require("restart", FlowState.INTRO, FlowState.ASSESSING, FlowState.REVIEWING)
        self.session = AssessmentSession()
        self.return_to_review = False
        self.report = None
        self.state = FlowState.INTRO

    def jump_to(self, index: int, from_review: bool = False) -> None:
        """Move to an arbitrary question, e.g. from navigation or the priority list."""
        self._require("jump_to", FlowState.INTRO, FlowState.ASSESSING, FlowState.REVIEWING)
        if from_review:
            self.return_to_review = True
        self.session.current_index = self._clamp(index)
        self.state = FlowState.ASSESSING

    # -- persistence -----------------------------------------------------

    def export_session(self, data_file: str = DEFAULT_DATA_FILE) -> SessionDocument:
        self._require("export_session", FlowState.INTRO, FlowState.ASSESSING, FlowState.REVIEWING)
        return serialize(
            self.session.answers,
            self.session.current_index,
            self.questions,
            data_file=data_file,
        )

    def import_session(self, document: Any) -> ImportResult:
        """
        Replace the current session with an imported one.

        The document is fully validated before anything changes; on
        ``FormatError`` the current session is untouched.
        """
        self._require("import_session", FlowState.INTRO, FlowState.ASSESSING, FlowState.REVIEWING)
        result = deserialize(document, self.questions)

        self.session = AssessmentSession(answers=dict(result.answers), current_index=result.index)
        self.report = None
        if self.all_answered:
            self._enter_review()
        else:
            self.state = FlowState.ASSESSING
        logger.info(
            f"Session imported: {len(result.answers)} answers, "
            f"{result.dropped_count} dropped, state={self.state.value}"
        )
        return result
