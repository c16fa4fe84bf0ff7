"""Scan options, report structures and the state shared by one scan."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from .display import environment
from .getter import ExceptionsGetter, LoadPolicy, PolicyGetter, get_api_connector, get_default_path

KIND_FRAMEWORK = "Framework"
KIND_CONTROL = "Control"
ALERT_ONLY = "alertOnly"

ResourceKey = tuple[str, str, str, str]


def _resource_key(obj: Mapping[str, Any]) -> ResourceKey:
    metadata = obj.get("metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}
    return (
        str(obj.get("apiVersion", "")),
        str(obj.get("kind", "")),
        str(metadata.get("namespace", "")),
        str(metadata.get("name", "")),
    )


def _is_alert_only(exception: Any) -> bool:
    if not isinstance(exception, Mapping):
        return False
    return ALERT_ONLY in (exception.get("actions") or [])


@dataclass
class PolicyIdentifier:
    kind: str = ""
    name: str = ""


@dataclass
class RuleResponse:
    alert_message: str = ""
    k8s_api_objects: list[dict[str, Any]] = field(default_factory=list)
    exception: dict[str, Any] | None = None
    rule_status: str = ""


@dataclass
class RuleReport:
    name: str = ""
    status: str = ""
    message: str = ""
    rule_responses: list[RuleResponse] = field(default_factory=list)
    list_input_resources: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ControlReport:
    name: str = ""
    control_id: str = ""
    description: str = ""
    remediation: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)
    rule_reports: list[RuleReport] = field(default_factory=list)
    score: float = 0.0

    def _alerted(self, excluded: bool) -> set[ResourceKey]:
        keys: set[ResourceKey] = set()
        for rule_report in self.rule_reports:
            for response in rule_report.rule_responses:
                if excluded:
                    matches = response.exception is not None and _is_alert_only(response.exception)
                else:
                    matches = response.exception is None
                if matches:
                    keys.update(_resource_key(obj) for obj in response.k8s_api_objects)
        return keys

    def _resources(self) -> set[ResourceKey]:
        keys = {_resource_key(obj) for report in self.rule_reports for obj in report.list_input_resources}
        return keys | self._alerted(False) | self._alerted(True)

    def number_of_resources(self) -> int:
        """Count the distinct resources the control looked at."""
        return len(self._resources())

    def number_of_failed_resources(self) -> int:
        """Count the distinct resources that failed with no exception."""
        return len(self._alerted(False))

    def number_of_warning_resources(self) -> int:
        """Count the distinct failing resources excluded by an alert-only exception."""
        return len(self._alerted(True))


@dataclass
class FrameworkReport:
    name: str = ""
    control_reports: list[ControlReport] = field(default_factory=list)
    score: float = 0.0

    def _union(self, keys_of) -> set[ResourceKey]:
        keys: set[ResourceKey] = set()
        for control in self.control_reports:
            keys |= keys_of(control)
        return keys

    def number_of_resources(self) -> int:
        """Count the distinct resources across all controls."""
        return len(self._union(ControlReport._resources))

    def number_of_failed_resources(self) -> int:
        """Count the distinct failed resources across all controls."""
        return len(self._union(lambda control: control._alerted(False)))

    def number_of_warning_resources(self) -> int:
        """Count the distinct excluded resources across all controls."""
        return len(self._union(lambda control: control._alerted(True)))


@dataclass
class PostureReport:
    cluster_name: str = ""
    customer_guid: str = ""
    report_id: str = ""
    job_id: str = ""
    report_generation_time: datetime | None = None
    cluster_api_server_info: dict[str, Any] | None = None
    framework_reports: list[FrameworkReport] = field(default_factory=list)


def _current_posture_report() -> PostureReport:
    return PostureReport(cluster_name=environment.cluster_name, customer_guid=environment.customer_guid)


@dataclass
class OPASessionObj:
    """Everything one scan carries from policy loading to reporting."""

    frameworks: list[dict[str, Any]] = field(default_factory=list)
    k8s_resources: dict[str, Any] | None = None
    exceptions: list[Any] = field(default_factory=list)
    posture_report: PostureReport = field(default_factory=_current_posture_report)


@dataclass
class DownloadInfo:
    path: str = ""
    framework_name: str = ""
    control_name: str = ""


def _extension(path: str) -> str:
    name = os.path.basename(path)
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


@dataclass
class ScanInfo:
    """Options of one scan."""

    policy_identifier: PolicyIdentifier = field(default_factory=PolicyIdentifier)
    use_exceptions: str = ""
    use_from: str = ""
    use_default: bool = False
    format: str = ""
    output: str = ""
    excluded_namespaces: str = ""
    input_patterns: list[str] = field(default_factory=list)
    silent: bool = False
    fail_threshold: int = 0
    submit: bool = False
    local: bool = False
    account: str = ""
    framework_scan: bool = False
    exceptions_getter: ExceptionsGetter | None = None
    policy_getter: PolicyGetter | None = None

    def init(self) -> None:
        """Resolve file locations and choose where policies and exceptions come from."""
        self._set_use_from()
        self._set_use_exceptions()
        self._set_output_file()
        self._set_policy_getter()

    def _set_use_exceptions(self) -> None:
        if self.use_exceptions:
            self.exceptions_getter = LoadPolicy(self.use_exceptions)
        else:
            self.exceptions_getter = get_api_connector()

    def _set_use_from(self) -> None:
        if self.use_from:
            return
        if self.use_default:
            self.use_from = get_default_path(self.policy_identifier.name + ".json")

    def _set_policy_getter(self) -> None:
        if self.use_from:
            self.policy_getter = LoadPolicy(self.use_from)
        else:
            # Released policies are fetched through the backend client.
            self.policy_getter = get_api_connector()

    def _set_output_file(self) -> None:
        if not self.output:
            return
        if self.format == "json" and _extension(self.output) != ".json":
            self.output += ".json"
        if self.format == "junit" and _extension(self.output) != ".xml":
            self.output += ".xml"

    def scan_running_cluster(self) -> bool:
        """Return whether the scan targets the live cluster rather than files."""
        return not self.input_patterns