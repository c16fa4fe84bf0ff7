"""Submission of posture reports to the report receiver."""

from __future__ import annotations

import json
import uuid
from typing import Any, Iterable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from .display import environment
from .getter import ArmoAPI, get_api_connector
from .scaninfo import ControlReport, FrameworkReport, OPASessionObj, PostureReport, RuleReport, RuleResponse

KEEP_FIELDS = ("kind", "apiVersion", "metadata")
KEEP_METADATA_FIELDS = ("name", "namespace", "labels")

_REPORT_PATH = "/k8s/postureReport"


class ReportSendError(Exception):
    """The report could not be delivered."""


def _encode_query(pairs: Iterable[tuple[str, str]]) -> str:
    return urlencode(sorted(pairs, key=lambda pair: pair[0]))


def _uuid_or_nil(value: str) -> str:
    try:
        return str(uuid.UUID(value))
    except (ValueError, TypeError, AttributeError):
        return str(uuid.UUID(int=0))


def host_to_string(host: str, report_id: str) -> str:
    """Return ``host`` with ``reportID`` added to its query, keys sorted."""
    parts = urlsplit(host)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(("reportID", report_id))
    return urlunsplit(parts._replace(query=_encode_query(query)))


def event_receiver_url(api: ArmoAPI, customer_guid: str, cluster_name: str) -> str:
    """Return the report receiver endpoint for this account and cluster."""
    query = _encode_query([("customerGUID", _uuid_or_nil(customer_guid)), ("clusterName", cluster_name)])
    return f"https://{api.report_receiver_url}{_REPORT_PATH}?{query}"


def _strip_object(obj: Mapping[str, Any]) -> dict[str, Any]:
    stripped = {key: obj[key] for key in KEEP_FIELDS if key in obj}
    metadata = stripped.get("metadata")
    if isinstance(metadata, Mapping):
        stripped["metadata"] = {key: metadata[key] for key in KEEP_METADATA_FIELDS if key in metadata}
    return stripped


def _remove_data(report: PostureReport) -> None:
    for framework in report.framework_reports:
        for control in framework.control_reports:
            for rule_report in control.rule_reports:
                rule_report.list_input_resources = [_strip_object(o) for o in rule_report.list_input_resources]
                for response in rule_report.rule_responses:
                    response.k8s_api_objects = [_strip_object(o) for o in response.k8s_api_objects]


def _rule_response_to_dict(response: RuleResponse) -> dict[str, Any]:
    return {
        "alertMessage": response.alert_message,
        "alertObject": {"k8sApiObjects": response.k8s_api_objects},
        "exception": response.exception,
        "ruleStatus": response.rule_status,
    }


def _rule_report_to_dict(report: RuleReport) -> dict[str, Any]:
    return {
        "name": report.name,
        "ruleStatus": {"status": report.status, "message": report.message},
        "ruleResponses": [_rule_response_to_dict(r) for r in report.rule_responses],
        "listInputResources": report.list_input_resources,
    }


def _control_report_to_dict(report: ControlReport) -> dict[str, Any]:
    return {
        "name": report.name,
        "controlID": report.control_id,
        "description": report.description,
        "remediation": report.remediation,
        "attributes": report.attributes,
        "score": report.score,
        "ruleReports": [_rule_report_to_dict(r) for r in report.rule_reports],
    }


def _framework_report_to_dict(report: FrameworkReport) -> dict[str, Any]:
    return {
        "name": report.name,
        "score": report.score,
        "controlReports": [_control_report_to_dict(c) for c in report.control_reports],
    }


def _posture_report_to_dict(report: PostureReport) -> dict[str, Any]:
    generated = report.report_generation_time
    return {
        "customerGUID": report.customer_guid,
        "clusterName": report.cluster_name,
        "reportID": report.report_id,
        "jobID": report.job_id,
        "generationTime": generated.isoformat() if generated is not None else None,
        "clusterAPIServerInfo": report.cluster_api_server_info,
        "frameworks": [_framework_report_to_dict(f) for f in report.framework_reports],
    }


class ReportEventReceiver:
    """Posts posture reports to the report receiver."""

    def __init__(self, api: ArmoAPI | None = None, session: requests.Session | None = None) -> None:
        api = api if api is not None else get_api_connector()
        if api is None:
            raise RuntimeError("backend connector is not configured")
        self.host = event_receiver_url(api, environment.customer_guid, environment.cluster_name)
        self.session = session if session is not None else requests.Session()

    def send(self, posture_report: PostureReport) -> None:
        """POST the report, raising ReportSendError on failure."""
        body = json.dumps(_posture_report_to_dict(posture_report), ensure_ascii=False, default=str)
        url = host_to_string(self.host, posture_report.report_id)
        try:
            response = self.session.post(url, data=body.encode("utf-8"))
        except requests.RequestException as err:
            raise ReportSendError(f"httpClient.Do failed: {err}") from err
        if not 200 <= response.status_code < 300:
            content = response.text
            raise ReportSendError(f"{url}, response status: {response.status_code}. Content: {content}:{content}")

    def action_send_report(self, session: OPASessionObj) -> None:
        """Strip object data from the report and submit it when an account is set."""
        if not environment.customer_guid:
            return
        _remove_data(session.posture_report)
        try:
            self.send(session.posture_report)
        except ReportSendError as err:
            print(err)