from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TextIO

from csf_assessment.domain.flow import FlowController, FlowState
from csf_assessment.domain.priority import select_low_maturity_items
from csf_assessment.domain.summary import build_report, format_summary_text
from csf_assessment.infrastructure.catalogue import Catalogue, load_catalogue
from csf_assessment.infrastructure.config import get_settings
from csf_assessment.infrastructure.exceptions import (
    CsfAssessmentError,
    create_user_friendly_error_message,
    log_error_details,
)
from csf_assessment.infrastructure.logging import (
    LogContext,
    auto_configure_logging,
    get_logger,
)
from csf_assessment.utils.exports import write_result_file
from csf_assessment.utils.session_codec import (
    load_session,
    read_session_file,
    write_session_file,
)

logger = get_logger("scripts.run_assessment")

HELP_TEXT = (
    "Commands: 1-5 or n (answer), next, prev, review, back, jump N, "
    "save [FILE], restart, help, quit"
)

CONSENT_TEXT = (
    "This is a light self-assessment based on NIST CSF 2.0. Results are indicative only "
    "and are not an audit or certification."
)


def _print_question(flow: FlowController, out: TextIO) -> None:
    question = flow.current_question
    if question is None:
        return
    position, total = flow.progress
    answer = flow.session.answers.get(question.id)
    print(f"\n[{position}/{total}] {question.id}  {question.category_label}", file=out)
    print(question.question_text, file=out)
    for example in question.examples:
        prefix = f"{example.code}: " if example.code else ""
        print(f"  - {prefix}{example.text}", file=out)
    if answer is not None:
        print(f"Current answer: {answer.label}", file=out)


def _print_review(flow: FlowController, out: TextIO) -> None:
    report = flow.report
    if report is None:
        return
    print("", file=out)
    for stat in report.function_stats:
        print(
            f"  {stat.tag} {stat.name:<9} {stat.average:>3}  ({stat.coverage_pct}% covered)",
            file=out,
        )
    print("", file=out)
    print(format_summary_text(report.summary), file=out)
    for rank, cat in enumerate(report.top_categories, start=1):
        print(f"  {rank}. {cat.label}  avg {cat.average}, coverage {cat.coverage_pct}%", file=out)


def _ask_consent(flow: FlowController, read: Callable[[str], str], out: TextIO) -> bool:
    """Start the flow, asking for agreement first when consent is required."""
    if not flow.can_start:
        print(CONSENT_TEXT, file=out)
        try:
            reply = read("Do you agree? [y/N] ").strip().lower()
        except EOFError:
            reply = ""
        flow.set_consent(reply in ("y", "yes"))
        if not flow.can_start:
            print("Consent is required to start the assessment.", file=out)
            return False
    flow.start()
    return True


def run_interactive(
    flow: FlowController,
    save_path: Path,
    read: Callable[[str], str] = input,
    out: TextIO = sys.stdout,
) -> FlowController:
    """Drive the flow controller from terminal commands until ``quit`` or EOF."""
    print(HELP_TEXT, file=out)
    if flow.state is FlowState.INTRO and not _ask_consent(flow, read, out):
        return flow
    if flow.state is FlowState.ASSESSING:
        _print_question(flow, out)
    else:
        _print_review(flow, out)

    while True:
        try:
            line = read("> ").strip()
        except EOFError:
            break
        if not line:
            continue
        command, _, arg = line.partition(" ")
        command = command.lower()

        try:
            if command in ("quit", "exit", "q"):
                break
            elif command == "help":
                print(HELP_TEXT, file=out)
            elif command in ("1", "2", "3", "4", "5", "n", "na"):
                flow.answer_current("na" if command == "n" else command)
                _print_question(flow, out)
            elif command == "next":
                if flow.next() is not None:
                    _print_review(flow, out)
                else:
                    _print_question(flow, out)
            elif command in ("prev", "previous"):
                flow.previous()
                _print_question(flow, out)
            elif command == "review":
                if flow.state is FlowState.ASSESSING and flow.return_to_review:
                    flow.back_to_review()
                else:
                    flow.open_review()
                _print_review(flow, out)
            elif command == "back":
                flow.back_to_assess()
                _print_question(flow, out)
            elif command == "jump":
                flow.jump_to(int(arg) - 1, from_review=flow.state is FlowState.REVIEWING)
                _print_question(flow, out)
            elif command == "save":
                target = Path(arg) if arg else save_path
                settings = get_settings()
                write_session_file(
                    target,
                    flow.export_session(settings.assessment.data_file),
                    indent=settings.export.indent,
                )
                print(f"Saved to {target}", file=out)
            elif command == "restart":
                flow.restart()
                if not _ask_consent(flow, read, out):
                    break
                _print_question(flow, out)
            else:
                print(f"Unknown command: {command}. {HELP_TEXT}", file=out)
        except CsfAssessmentError as e:
            print(create_user_friendly_error_message(e), file=out)
            logger.warning(
                f"Command {command} failed", extra=log_error_details(e, {"command": command})
            )
        except ValueError:
            print("jump expects a question number", file=out)

    return flow


def _summary(args: argparse.Namespace, catalogue: Catalogue) -> int:
    settings = get_settings().assessment
    result = load_session(args.session, catalogue)
    report = build_report(
        catalogue,
        result.answers,
        top_n=settings.top_priority_count,
        unassessed_limit=settings.unassessed_display_limit,
    )
    print(format_summary_text(report.summary))

    groups = select_low_maturity_items(
        catalogue, result.answers, max_level=settings.low_maturity_threshold
    )
    if groups:
        print(f"\nItems answered {settings.low_maturity_threshold} or lower:")
        for group in groups:
            print(f"  {group.label}")
            for question, answer in group.items:
                print(f"    {question.id} [{answer.value}] {question.question_text}")
    if result.dropped_count:
        print(f"({result.dropped_count} entries in the session file were ignored)")
    return 0


def _export(args: argparse.Namespace, catalogue: Catalogue) -> int:
    result = load_session(args.session, catalogue)
    if args.output:
        output = Path(args.output)
    else:
        output = get_settings().export.result_path().with_suffix(f".{args.format}")
    path = write_result_file(output, catalogue, result.answers, fmt=args.format)
    print(f"Result written to {path}")
    return 0


def _run(args: argparse.Namespace, catalogue: Catalogue) -> int:
    settings = get_settings()
    flow = FlowController(
        catalogue,
        require_consent=settings.assessment.require_consent,
        top_n=settings.assessment.top_priority_count,
        unassessed_limit=settings.assessment.unassessed_display_limit,
    )
    if args.session:
        flow.import_session(read_session_file(args.session))
    save_path = Path(args.save) if args.save else settings.export.session_path()
    run_interactive(flow, save_path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="NIST CSF 2.0 light self-assessment")
    parser.add_argument(
        "--data-file",
        default=settings.assessment.data_file,
        help="Question catalogue JSON (default: %(default)s)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    summary = sub.add_parser("summary", help="Print the summary for a saved session")
    summary.add_argument("--session", required=True)
    summary.set_defaults(handler=_summary)

    export = sub.add_parser("export", help="Write the result export for a saved session")
    export.add_argument("--session", required=True)
    export.add_argument("--output", help="Target file (default: result file in EXPORT_OUTPUT_DIR)")
    export.add_argument("--format", choices=["json", "xlsx"], default="json")
    export.set_defaults(handler=_export)

    run = sub.add_parser("run", help="Answer questions interactively in the terminal")
    run.add_argument("--session", help="Resume from a saved session file")
    run.add_argument("--save", help="Default target for the save command")
    run.set_defaults(handler=_run)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    auto_configure_logging()
    args = build_parser().parse_args(argv)
    logger.debug(f"Environment: {get_settings().get_environment_info()}")

    try:
        with LogContext(data_file=args.data_file):
            catalogue = load_catalogue(args.data_file)
            return args.handler(args, catalogue)
    except CsfAssessmentError as e:
        print(f"ERROR: {create_user_friendly_error_message(e)}", file=sys.stderr)
        logger.error(
            f"{args.command} failed", extra=log_error_details(e, {"command": args.command})
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
