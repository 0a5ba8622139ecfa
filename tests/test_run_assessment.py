from __future__ import annotations

import io
import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from csf_assessment.domain.flow import FlowController, FlowState
from csf_assessment.domain.models import Answer
from csf_assessment.infrastructure.catalogue import load_catalogue
from csf_assessment.infrastructure.config import reset_settings
from csf_assessment.utils.session_codec import serialize, write_session_file
from scripts import run_assessment


@pytest.fixture
def data_file(tmp_path: Path, catalogue_records: list[dict]) -> Path:
    path = tmp_path / "data.json"
    path.write_text(json.dumps(catalogue_records), encoding="utf-8")
    return path


@pytest.fixture
def session_file(tmp_path: Path, data_file: Path) -> Path:
    catalogue = load_catalogue(data_file)
    path = tmp_path / "session.json"
    write_session_file(path, serialize({"GV.OC-01": "2", "ID.AM-01": "na"}, 0, catalogue))
    return path


def _scripted(commands: list[str]):
    pending = list(commands)

    def read(_prompt: str) -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read


def test_summary_command(data_file: Path, session_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = run_assessment.main(["--data-file", str(data_file), "summary", "--session", str(session_file)])

    out = capsys.readouterr().out
    assert code == 0
    assert "Overall maturity is 25 points" in out
    assert "Recommended action:" in out
    assert "GV.OC-01 [2]" in out


def test_export_command_xlsx(data_file: Path, session_file: Path, tmp_path: Path) -> None:
    output = tmp_path / "result.xlsx"
    code = run_assessment.main(
        ["--data-file", str(data_file), "export", "--session", str(session_file), "--output", str(output), "--format", "xlsx"]
    )

    assert code == 0
    assert output.read_bytes()[:2] == b"PK"


def test_export_command_json(data_file: Path, session_file: Path, tmp_path: Path) -> None:
    output = tmp_path / "result.json"
    run_assessment.main(["--data-file", str(data_file), "export", "--session", str(session_file), "--output", str(output)])

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["answers"] == {"GV.OC-01": "2", "ID.AM-01": "na"}
    assert payload["coveragePct"] == 33


def test_missing_catalogue(tmp_path: Path, session_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = run_assessment.main(["--data-file", str(tmp_path / "nope.json"), "summary", "--session", str(session_file)])

    assert code == 1
    assert "ERROR: Failed to load the question catalogue" in capsys.readouterr().err


def test_incompatible_session(data_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    session = tmp_path / "old.json"
    session.write_text(json.dumps({"kind": "nist-csf2-light-session", "version": 1, "answers": {}}), encoding="utf-8")

    code = run_assessment.main(["--data-file", str(data_file), "summary", "--session", str(session)])

    assert code == 1
    assert "unsupported version (1)" in capsys.readouterr().err


def test_run_command_resumes_session(
    data_file: Path, session_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: list[FlowController] = []
    monkeypatch.setattr(run_assessment, "run_interactive", lambda flow, save_path: seen.append(flow))

    code = run_assessment.main(["--data-file", str(data_file), "run", "--session", str(session_file)])

    assert code == 0
    assert seen[0].state is FlowState.ASSESSING
    assert seen[0].current_index == 2


class TestInteractiveLoop:
    def test_answer_review_and_save(self, catalogue, tmp_path: Path) -> None:
        save_path = tmp_path / "saved.json"
        out = io.StringIO()
        flow = FlowController(catalogue)

        run_assessment.run_interactive(
            flow,
            save_path,
            read=_scripted(["3", "next", "n", "next", "review", "back", "jump 6", "5", "save", "quit"]),
            out=out,
        )

        saved = json.loads(save_path.read_text(encoding="utf-8"))
        assert saved["answers"] == {"GV.OC-01": "3", "GV.OC-02": "na", "DE.CM-01": "5"}
        assert saved["currentIndex"] == 5
        assert "Overall maturity is 50 points" in out.getvalue()

    def test_blocked_next_reports_message(self, catalogue, tmp_path: Path) -> None:
        out = io.StringIO()
        run_assessment.run_interactive(
            FlowController(catalogue), tmp_path / "s.json", read=_scripted(["next", "jump x"]), out=out
        )

        text = out.getvalue()
        assert "This action is not available right now." in text
        assert "jump expects a question number" in text

    def test_restart_clears_answers(self, catalogue, tmp_path: Path) -> None:
        flow = FlowController(catalogue)
        run_assessment.run_interactive(
            flow, tmp_path / "s.json", read=_scripted(["4", "restart"]), out=io.StringIO()
        )

        assert flow.state is FlowState.ASSESSING
        assert flow.session.answers == {}

    def test_consent_accepted(self, catalogue, tmp_path: Path) -> None:
        out = io.StringIO()
        flow = FlowController(catalogue, require_consent=True)

        run_assessment.run_interactive(flow, tmp_path / "s.json", read=_scripted(["y", "2"]), out=out)

        assert run_assessment.CONSENT_TEXT in out.getvalue()
        assert flow.consent_given is True
        assert flow.session.answers == {"GV.OC-01": Answer.TWO}

    def test_consent_declined(self, catalogue, tmp_path: Path) -> None:
        out = io.StringIO()
        flow = FlowController(catalogue, require_consent=True)

        run_assessment.run_interactive(flow, tmp_path / "s.json", read=_scripted(["no", "2"]), out=out)

        assert flow.state is FlowState.INTRO
        assert flow.session.answers == {}
        assert "Consent is required" in out.getvalue()


class TestFailurePaths:
    def test_session_path_is_directory(
        self, data_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = run_assessment.main(["--data-file", str(data_file), "summary", "--session", str(tmp_path)])

        assert code == 1
        assert "ERROR: Could not load the session file" in capsys.readouterr().err

    def test_session_not_utf8(
        self, data_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        session = tmp_path / "latin1.json"
        session.write_bytes(b'{"kind": "\xe9"}')

        code = run_assessment.main(["--data-file", str(data_file), "export", "--session", str(session)])

        assert code == 1
        assert "ERROR: Could not load the session file" in capsys.readouterr().err

    def test_catalogue_not_utf8(
        self, tmp_path: Path, session_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        data = tmp_path / "latin1.json"
        data.write_bytes(b'[{"id": "GV.OC-01", "question": "\xff\xfe"}]')

        code = run_assessment.main(["--data-file", str(data), "summary", "--session", str(session_file)])

        assert code == 1
        assert "ERROR: Failed to load the question catalogue" in capsys.readouterr().err

    def test_failure_is_logged_with_details(
        self, tmp_path: Path, session_file: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR, logger="csf_assessment"):
            with patch.object(run_assessment, "auto_configure_logging"):
                run_assessment.main(["--data-file", str(tmp_path / "nope.json"), "summary", "--session", str(session_file)])

        record = next(r for r in caplog.records if r.getMessage() == "summary failed")
        assert record.error_type == "LoadError"
        assert record.context == {"command": "summary"}


class TestSettingsDefaults:
    def test_export_defaults_to_result_path(
        self, data_file: Path, session_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        out_dir = tmp_path / "exports"
        monkeypatch.setenv("EXPORT_OUTPUT_DIR", str(out_dir))
        reset_settings()

        code = run_assessment.main(
            ["--data-file", str(data_file), "export", "--session", str(session_file), "--format", "xlsx"]
        )

        assert code == 0
        assert (out_dir / "assessment_result.xlsx").read_bytes()[:2] == b"PK"

    def test_run_uses_require_consent_setting(
        self, data_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        seen: list[FlowController] = []
        monkeypatch.setattr(run_assessment, "run_interactive", lambda flow, save_path: seen.append(flow))

        run_assessment.main(["--data-file", str(data_file), "run"])
        monkeypatch.setenv("ASSESS_REQUIRE_CONSENT", "false")
        reset_settings()
        run_assessment.main(["--data-file", str(data_file), "run"])

        assert [flow.require_consent for flow in seen] == [True, False]
