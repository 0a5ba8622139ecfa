import logging

import pytest

from csf_assessment.domain.flow import FlowController, FlowState
from csf_assessment.domain.models import Answer
from csf_assessment.infrastructure.exceptions import (
    FormatError,
    InvalidAnswerError,
    LoadError,
    QuestionNotFoundError,
    TransitionError,
)
from csf_assessment.utils.session_codec import SESSION_KIND


@pytest.fixture
def flow(catalogue):
    controller = FlowController(catalogue)
    controller.start()
    return controller


def _answer_all(flow, value="3"):
    for question in flow.questions:
        flow.answer(question.id, value)


class TestLoadingAndIntro:
    def test_starts_in_loading(self):
        assert FlowController().state is FlowState.LOADING

    def test_load_moves_to_intro(self, catalogue):
        flow = FlowController()
        flow.load(catalogue)
        assert flow.state is FlowState.INTRO
        assert flow.progress == (1, 6)

    def test_empty_catalogue_stays_loading(self):
        flow = FlowController()
        with pytest.raises(LoadError):
            flow.load([])
        assert flow.state is FlowState.LOADING
        assert flow.load_error is not None

    def test_fail_records_error(self):
        flow = FlowController()
        flow.fail(LoadError("Catalogue file not found: ./data.json"))
        assert flow.state is FlowState.LOADING
        assert "not found" in flow.load_error.message

    def test_cannot_load_twice(self, catalogue):
        flow = FlowController(catalogue)
        with pytest.raises(TransitionError):
            flow.load(catalogue)

    def test_consent_gates_start(self, catalogue):
        flow = FlowController(catalogue, require_consent=True)
        assert flow.can_start is False
        with pytest.raises(TransitionError):
            flow.start()

        flow.set_consent(True)
        assert flow.can_start is True
        flow.start()
        assert flow.state is FlowState.ASSESSING

    def test_start_requires_intro(self):
        with pytest.raises(TransitionError):
            FlowController().start()


class TestAnswering:
    def test_answer_does_not_advance(self, flow):
        assert flow.answer_current("4") is Answer.FOUR
        assert flow.current_index == 0
        assert flow.session.answers == {"GV.OC-01": Answer.FOUR}

    def test_answer_can_be_changed(self, flow):
        flow.answer_current("4")
        flow.answer_current("na")
        assert flow.session.answers["GV.OC-01"] is Answer.NA

    def test_unknown_question(self, flow):
        with pytest.raises(QuestionNotFoundError):
            flow.answer("XX.YY-99", "3")

    @pytest.mark.parametrize("value", ["0", "6", "", None, 3, "N/A"])
    def test_invalid_values(self, flow, value):
        with pytest.raises(InvalidAnswerError):
            flow.answer_current(value)
        assert flow.session.answers == {}

    def test_answer_requires_assessing(self, catalogue):
        flow = FlowController(catalogue)
        with pytest.raises(TransitionError):
            flow.answer("GV.OC-01", "3")

    def test_plain_question_list(self, questions):
        flow = FlowController(questions)
        flow.start()

        flow.answer("DE.CM-01", "5")

        assert flow.session.answers == {"DE.CM-01": Answer.FIVE}
        with pytest.raises(QuestionNotFoundError):
            flow.answer("GV.OC-99", "5")

    def test_non_string_id(self, flow):
        with pytest.raises(QuestionNotFoundError):
            flow.answer(flow.current_question, "3")

    def test_answer_logs_question_id(self, flow, context_caplog):
        with context_caplog.at_level(logging.DEBUG, logger="csf_assessment"):
            flow.answer("ID.AM-01", "2")

        recorded = [r for r in context_caplog.records if r.getMessage() == "Answer recorded: 2"]
        assert recorded[0].question_id == "ID.AM-01"


class TestNavigation:
    def test_next_requires_answer(self, flow):
        assert flow.can_go_next is False
        with pytest.raises(TransitionError):
            flow.next()

    def test_na_unlocks_next(self, flow):
        flow.answer_current("na")
        assert flow.can_go_next is True
        assert flow.next() is None
        assert flow.current_index == 1

    def test_previous_is_noop_at_start(self, flow):
        assert flow.can_go_previous is False
        flow.previous()
        assert flow.current_index == 0

    def test_previous(self, flow):
        flow.answer_current("2")
        flow.next()
        flow.previous()
        assert flow.current_index == 0

    def test_next_past_last_enters_review(self, flow):
        for _ in range(len(flow.questions)):
            flow.answer_current("5")
            report = flow.next()

        assert flow.state is FlowState.REVIEWING
        assert report is flow.report
        assert report.summary.overall == 100

    def test_jump_is_clamped(self, flow):
        flow.jump_to(42)
        assert flow.current_index == 5
        flow.jump_to(-3)
        assert flow.current_index == 0

    def test_jump_from_intro(self, catalogue):
        flow = FlowController(catalogue)
        flow.jump_to(3)
        assert flow.state is FlowState.ASSESSING
        assert flow.current_question.id == "PR.AA-01"
        assert flow.return_to_review is False


class TestReview:
    def test_open_review_needs_an_answer(self, flow):
        assert flow.can_open_review is False
        with pytest.raises(TransitionError):
            flow.open_review()

    def test_open_review_and_return(self, flow):
        flow.answer_current("1")
        report = flow.open_review()

        assert flow.state is FlowState.REVIEWING
        assert report.summary.scored_count == 1

        flow.back_to_assess()
        assert flow.state is FlowState.ASSESSING
        flow.answer("ID.AM-01", "5")
        report = flow.back_to_review()
        assert report.summary.scored_count == 2

    def test_back_to_review_requires_prior_visit(self, flow):
        flow.answer_current("1")
        with pytest.raises(TransitionError):
            flow.back_to_review()

    def test_jump_from_review_enables_return(self, flow):
        flow.answer_current("3")
        flow.open_review()
        flow.restart()
        flow.start()
        flow.answer_current("3")
        for _ in range(len(flow.questions) - 1):
            flow.next()
            flow.answer_current("3")
        flow.next()
        assert flow.state is FlowState.REVIEWING
        assert flow.return_to_review is False

        flow.jump_to(2, from_review=True)
        assert flow.return_to_review is True
        flow.back_to_review()
        assert flow.state is FlowState.REVIEWING

    def test_restart_clears_session(self, flow):
        flow.answer_current("3")
        flow.next()
        flow.open_review()
        flow.restart()

        assert flow.state is FlowState.INTRO
        assert flow.session.answers == {}
        assert flow.current_index == 0
        assert flow.return_to_review is False
        assert flow.report is None


class TestImportExport:
    def test_export_session(self, flow):
        flow.answer_current("4")
        doc = flow.export_session("./catalogue.json")

        assert doc.kind == SESSION_KIND
        assert doc.data_file == "./catalogue.json"
        assert doc.answers == {"GV.OC-01": "4"}

    def test_partial_import_resumes_assessing(self, catalogue):
        source = FlowController(catalogue)
        source.start()
        source.answer("GV.OC-01", "2")
        source.answer("GV.OC-02", "na")
        document = source.export_session().to_payload()

        flow = FlowController(catalogue)
        result = flow.import_session(document)

        assert result.dropped_count == 0
        assert flow.state is FlowState.ASSESSING
        assert flow.current_index == 2

    def test_complete_import_enters_review(self, catalogue):
        source = FlowController(catalogue)
        source.start()
        _answer_all(source, "4")

        flow = FlowController(catalogue)
        flow.import_session(source.export_session())

        assert flow.state is FlowState.REVIEWING
        assert flow.report.summary.overall == 75

    def test_failed_import_keeps_session(self, flow):
        flow.answer_current("4")
        bad = flow.export_session().to_payload()
        bad["version"] = 1

        with pytest.raises(FormatError):
            flow.import_session(bad)

        assert flow.state is FlowState.ASSESSING
        assert flow.session.answers == {"GV.OC-01": Answer.FOUR}

    def test_import_not_allowed_while_loading(self):
        with pytest.raises(TransitionError):
            FlowController().import_session({})
