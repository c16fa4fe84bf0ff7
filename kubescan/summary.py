"""Per-control summaries of scan results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence

from .scaninfo import ALERT_ONLY, RuleReport


@dataclass
class WorkloadSummary:
    """One resource named in a rule's alert."""

    kind: str = ""
    name: str = ""
    namespace: str = ""
    group: str = ""
    exception: dict[str, Any] | None = None

    def key(self) -> str:
        """Return ``/<group>/<namespace>/<kind>/<name>``."""
        return f"/{self.group}/{self.namespace}/{self.kind}/{self.name}"


@dataclass
class ControlSummary:
    """Counters and affected workloads of one control."""

    total_resources: int = 0
    total_failed: int = 0
    total_warning: int = 0
    description: str = ""
    remediation: str = ""
    list_input_kinds: list[str] = field(default_factory=list)
    failed_workloads: dict[str, list[WorkloadSummary]] = field(default_factory=dict)
    excluded_workloads: dict[str, list[WorkloadSummary]] = field(default_factory=dict)

    def to_row(self) -> list[str]:
        """Return failed, excluded and total counts as table cells."""
        return [str(self.total_failed), str(self.total_warning), str(self.total_resources)]


def workload_summary_failed(workload: WorkloadSummary) -> bool:
    """A workload failed when no exception covers it."""
    return workload.exception is None


def workload_summary_excluded(workload: WorkloadSummary) -> bool:
    """A workload is excluded when an alert-only exception covers it."""
    exception = workload.exception
    if exception is None or not isinstance(exception, Mapping):
        return False
    return ALERT_ONLY in (exception.get("actions") or [])


def group_by_namespace(
    resources: Iterable[WorkloadSummary],
    status: Callable[[WorkloadSummary], bool],
) -> dict[str, list[WorkloadSummary]]:
    """Group the workloads accepted by ``status`` by their namespace."""
    grouped: dict[str, list[WorkloadSummary]] = {}
    for workload in resources:
        if status(workload):
            grouped.setdefault(workload.namespace, []).append(workload)
    return grouped


def _new_workload_summary(obj: Any) -> WorkloadSummary:
    if not isinstance(obj, Mapping):
        raise ValueError("expecting k8s API object")
    metadata = obj.get("metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}
    return WorkloadSummary(
        kind=str(obj.get("kind", "") or ""),
        name=str(metadata.get("name", "") or ""),
        namespace=str(metadata.get("namespace", "") or ""),
    )


def list_result_summary(rule_reports: Sequence[RuleReport]) -> list[WorkloadSummary]:
    """List every alerted workload once, carrying the exception of its first alert."""
    workloads: list[WorkloadSummary] = []
    seen: set[str] = set()
    for rule_report in rule_reports:
        for response in rule_report.rule_responses:
            try:
                summaries = [_new_workload_summary(obj) for obj in response.k8s_api_objects]
            except ValueError as err:
                print(err)
                continue
            for summary in summaries:
                summary.exception = response.exception
                key = summary.key()
                if key not in seen:
                    seen.add(key)
                    workloads.append(summary)
    return workloads