"""Rendering of scan results as text, JSON or JUnit."""

from __future__ import annotations

import json
import os
import sys
from contextlib import suppress
from typing import Any, Iterable, Mapping, TextIO

from tabulate import tabulate
from termcolor import colored

from .display import is_silent
from .junit import convert_posture_report_to_junit
from .reporter import _framework_report_to_dict
from .scaninfo import ControlReport, OPASessionObj, PostureReport
from .summary import (
    ControlSummary,
    WorkloadSummary,
    group_by_namespace,
    list_result_summary,
    workload_summary_excluded,
    workload_summary_failed,
)

INDENT = "   "
EMPTY_PERCENTAGE = "NaN"

PRETTY_PRINTER = "pretty-printer"
JSON_PRINTER = "json"
JUNIT_PRINTER = "junit"

_CONFUSED_FACE = "\U0001F615"
_SAD_BUT_RELIEVED_FACE = "\U0001F625"
_NEUTRAL_FACE = "\U0001F610"
_THUMBS_UP = "\U0001F44D"

_SUCCESS = ("green", ("bold",))
_WARNING = ("cyan", ("bold",))
_FAILURE = ("red", ("bold",))
_INFO = ("yellow", ("bold",))
_DESCRIPTION = ("white", ("dark",))
_PLAIN: tuple[str | None, tuple[str, ...]] = (None, ())


def _emit(stream: TextIO, text: str, style: tuple[str | None, Iterable[str]] = _PLAIN) -> None:
    color, attrs = style
    attrs = list(attrs)
    isatty = getattr(stream, "isatty", None)
    if (color or attrs) and isatty is not None and isatty():
        text = colored(text, color, attrs=attrs)
    stream.write(text)


def calculate_posture_score(posture_report: PostureReport) -> float:
    """Return the share of resources that did not fail, 0 when there are none."""
    total = sum(f.number_of_resources() for f in posture_report.framework_reports)
    failed = sum(f.number_of_failed_resources() for f in posture_report.framework_reports)
    if total == 0:
        return 0.0
    return (total - failed) / total


def percentage(big: int, small: int) -> int:
    """Return the truncated percentage of ``big`` that is not ``small``."""
    if big == 0:
        return 100 if small == 0 else 0
    return int((big - small) / big * 100)


def generate_header() -> list[str]:
    return ["Control Name", "Failed Resources", "Excluded Resources", "All Resources", "% success"]


def generate_row(control: str, summary: ControlSummary) -> list[str]:
    row = [control, *summary.to_row()]
    if summary.total_resources != 0:
        row.append(f"{percentage(summary.total_resources, summary.total_failed)}%")
    else:
        row.append(EMPTY_PERCENTAGE)
    return row


def generate_footer(num_controls: int, sum_failed: int, sum_warning: int, sum_total: int) -> list[str]:
    row = ["Resource Summary", str(sum_failed), str(sum_warning), str(sum_total)]
    if sum_total != 0:
        row.append(f"{percentage(sum_total, sum_failed)}%")
    else:
        row.append(EMPTY_PERCENTAGE)
    return row


def _input_kinds(control: ControlReport) -> list[str]:
    kinds: list[str] = []
    for rule_report in control.rule_reports:
        for obj in rule_report.list_input_resources:
            if not isinstance(obj, Mapping):
                continue
            kind = obj.get("kind")
            if kind and kind not in kinds:
                kinds.append(str(kind))
    return kinds


def _open_writer(output_file: str) -> tuple[TextIO, bool]:
    if not output_file:
        return sys.stdout, False
    with suppress(OSError):
        os.remove(output_file)
    try:
        return open(output_file, "a", encoding="utf-8"), True
    except OSError:
        print("Error opening file")
        return sys.stdout, False


class Printer:
    """Writes scan results in the chosen format to a file or to stdout."""

    def __init__(self, printer_type: str, output_file: str = "", stream: TextIO | None = None) -> None:
        self.printer_type = printer_type
        self.summary: dict[str, ControlSummary] = {}
        self.sorted_control_names: list[str] = []
        self.framework_summary = ControlSummary()
        if stream is not None:
            self.writer, self._owns_writer = stream, False
        else:
            self.writer, self._owns_writer = _open_writer(output_file)

    def close(self) -> None:
        """Close the output file if this printer opened it."""
        if self._owns_writer:
            self.writer.close()
            self._owns_writer = False

    def __enter__(self) -> "Printer":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _flush(self) -> None:
        flush = getattr(self.writer, "flush", None)
        if flush is not None:
            flush()

    def action_print(self, session: OPASessionObj) -> float:
        """Print the results and return the posture score."""
        report = session.posture_report
        score = calculate_posture_score(report)
        if self.printer_type == PRETTY_PRINTER:
            self.summary_setup(report)
            self.print_results()
            self.print_summary_table()
        elif self.printer_type == JSON_PRINTER:
            if not report.framework_reports:
                raise ValueError("Failed to convert posture report object!")
            self.writer.write(
                json.dumps(
                    _framework_report_to_dict(report.framework_reports[0]),
                    separators=(",", ":"),
                    ensure_ascii=False,
                    default=str,
                )
            )
            self._flush()
            print(f"\nFinal score: {int(score * 100)}")
        elif self.printer_type == JUNIT_PRINTER:
            self.writer.write(convert_posture_report_to_junit(report).to_xml())
            self._flush()
            print(f"\nFinal score: {int(score * 100)}")
        elif not is_silent():
            raise ValueError("unknown output printer")
        return score

    def summary_setup(self, posture_report: PostureReport) -> None:
        """Collect per-control summaries from the report."""
        for framework in posture_report.framework_reports:
            self.framework_summary = ControlSummary(
                total_resources=framework.number_of_resources(),
                total_failed=framework.number_of_failed_resources(),
                total_warning=framework.number_of_warning_resources(),
            )
            for control in framework.control_reports:
                if not control.rule_reports:
                    continue
                workloads = list_result_summary(control.rule_reports)
                self.summary[control.name] = ControlSummary(
                    total_resources=control.number_of_resources(),
                    total_failed=control.number_of_failed_resources(),
                    total_warning=control.number_of_warning_resources(),
                    description=control.description,
                    remediation=control.remediation,
                    list_input_kinds=_input_kinds(control),
                    failed_workloads=group_by_namespace(workloads, workload_summary_failed),
                    excluded_workloads=group_by_namespace(workloads, workload_summary_excluded),
                )
        self.sorted_control_names = sorted(self.summary)

    def print_results(self) -> None:
        """Print each control's verdict and affected resources."""
        for name in self.sorted_control_names:
            summary = self.summary[name]
            self._print_title(name, summary)
            self._print_resources(summary)
            if summary.total_resources > 0:
                self._print_summary(summary)

    def _print_summary(self, summary: ControlSummary) -> None:
        passed = summary.total_resources - summary.total_failed - summary.total_warning
        _emit(self.writer, "Summary - ")
        _emit(self.writer, f"Passed:{passed}   ", _SUCCESS)
        _emit(self.writer, f"Excluded:{summary.total_warning}   ", _WARNING)
        _emit(self.writer, f"Failed:{summary.total_failed}   ", _FAILURE)
        _emit(self.writer, f"Total:{summary.total_resources}\n", _INFO)
        if summary.total_failed > 0:
            _emit(self.writer, f"Remediation: {summary.remediation}\n", _DESCRIPTION)
        _emit(self.writer, "\n", _DESCRIPTION)

    def _print_title(self, name: str, summary: ControlSummary) -> None:
        _emit(self.writer, f"[control: {name}] ", _INFO)
        if summary.total_resources == 0:
            _emit(self.writer, f"resources not found {_CONFUSED_FACE}\n", _INFO)
        elif summary.total_failed != 0:
            _emit(self.writer, f"failed {_SAD_BUT_RELIEVED_FACE}\n", _FAILURE)
        elif summary.total_warning != 0:
            _emit(self.writer, f"excluded {_NEUTRAL_FACE}\n", _WARNING)
        else:
            _emit(self.writer, f"passed {_THUMBS_UP}\n", _SUCCESS)
        _emit(self.writer, f"Description: {summary.description}\n", _DESCRIPTION)

    def _print_resources(self, summary: ControlSummary) -> None:
        if summary.failed_workloads:
            _emit(self.writer, "Failed:\n", _FAILURE)
            self._print_grouped_resources(summary.failed_workloads)
        if summary.excluded_workloads:
            _emit(self.writer, "Excluded:\n", _WARNING)
            self._print_grouped_resources(summary.excluded_workloads)

    def _print_grouped_resources(self, workloads: Mapping[str, list[WorkloadSummary]]) -> None:
        for namespace, resources in workloads.items():
            if namespace:
                _emit(self.writer, f"{INDENT}Namespace {namespace}\n")
            for resource in resources:
                _emit(self.writer, f"{INDENT * 2}{resource.kind} - {resource.name}\n")

    def print_url(self, url: str) -> None:
        _emit(self.writer, url, _INFO)

    def print_summary_table(self) -> None:
        """Print the per-control table with a totals footer."""
        rows = [generate_row(name, self.summary[name]) for name in self.sorted_control_names]
        fs = self.framework_summary
        rows.append(generate_footer(len(self.summary), fs.total_failed, fs.total_warning, fs.total_resources))
        table = tabulate(
            rows,
            headers=generate_header(),
            tablefmt="psql",
            colalign=("left", "center", "center", "center", "center"),
            disable_numparse=True,
        )
        self.writer.write(table + "\n")
        self._flush()