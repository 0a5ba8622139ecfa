from __future__ import annotations

import logging

import pytest

from csf_assessment.domain.models import Question
from csf_assessment.infrastructure.catalogue import Catalogue
from csf_assessment.infrastructure.config import reset_settings
from csf_assessment.infrastructure.logging import context_filter


def make_question(
    qid: str,
    category: str | None = None,
    label: str | None = None,
    text: str | None = None,
) -> Question:
    key = category or qid.split("-")[0]
    return Question(
        id=qid,
        category=key,
        category_label=label or key,
        question_text=text or f"Is {qid} in place?",
    )


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("APP_ENVIRONMENT", "testing")
    reset_settings()
    root_level = logging.root.level
    yield
    reset_settings()
    package_logger = logging.getLogger("csf_assessment")
    # Drop handlers installed by setup_logging; pytest's own capture handlers stay
    for owner in (package_logger, logging.root):
        for handler in list(owner.handlers):
            if context_filter in handler.filters:
                owner.removeHandler(handler)
                handler.close()
    logging.root.setLevel(root_level)
    context_filter.clear_context()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def context_caplog(caplog: pytest.LogCaptureFixture):
    """``caplog`` whose records carry the active LogContext keys."""
    caplog.handler.addFilter(context_filter)
    yield caplog
    caplog.handler.removeFilter(context_filter)


@pytest.fixture
def questions() -> list[Question]:
    return [
        make_question("GV.OC-01", label="GV.OC (Organizational Context)"),
        make_question("GV.OC-02", label="GV.OC (Organizational Context)"),
        make_question("ID.AM-01", label="ID.AM (Asset Management)"),
        make_question("PR.AA-01", label="PR.AA (Identity Management and Access Control)"),
        make_question("PR.AA-02", label="PR.AA (Identity Management and Access Control)"),
        make_question("DE.CM-01", label="DE.CM (Continuous Monitoring)"),
    ]


@pytest.fixture
def catalogue(questions: list[Question]) -> Catalogue:
    return Catalogue(questions, source="test")


@pytest.fixture
def catalogue_records() -> list[dict]:
    return [
        {
            "id": "GV.OC-01",
            "category": "GV.OC",
            "category_ja": "GV.OC (Organizational Context)",
            "question": "Is the organizational mission understood?",
            "examples": [{"implementationExample": "Ex1", "text": "Share the mission"}],
            "riskText": "Priorities drift",
        },
        {
            "id": "ID.AM-01",
            "category": "ID.AM",
            "category_label": "ID.AM (Asset Management)",
            "question": "Are hardware inventories maintained?",
            "examples": ["Keep a CMDB"],
        },
        {
            "id": "PR.AA-01",
            "category_ja": "PR.AA (Identity Management and Access Control)",
            "question": "Are identities managed?",
            "improvementHint": "Start with privileged accounts",
        },
    ]


@pytest.fixture
def question_factory():
    return make_question
