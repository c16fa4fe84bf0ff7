import copy
import json
import re

import pytest
import responses

from kubescan.display import environment
from kubescan.getter import ArmoAPI, set_api_connector
from kubescan.reporter import (
    ReportEventReceiver,
    ReportSendError,
    event_receiver_url,
    host_to_string,
)
from kubescan.scaninfo import (
    ControlReport,
    FrameworkReport,
    OPASessionObj,
    PostureReport,
    RuleReport,
    RuleResponse,
)

API = ArmoAPI("report.example.com", "api.example.com", "portal.example.com")
REPORT_URL = re.compile(r"https://report\.example\.com/k8s/postureReport.*")

SECRET_OBJ = {
    "apiVersion": "v1",
    "kind": "Secret",
    "metadata": {"name": "s", "namespace": "default", "labels": {"a": "b"}, "uid": "1"},
    "data": {"token": "secret"},
}


def _session() -> OPASessionObj:
    response = RuleResponse(alert_message="m", k8s_api_objects=[copy.deepcopy(SECRET_OBJ)])
    rule = RuleReport(name="r", rule_responses=[response], list_input_resources=[copy.deepcopy(SECRET_OBJ)])
    control = ControlReport(name="c", rule_reports=[rule])
    report = PostureReport(report_id="abc", framework_reports=[FrameworkReport(name="f", control_reports=[control])])
    return OPASessionObj(posture_report=report)


@pytest.fixture
def no_connector():
    set_api_connector(None)
    yield
    set_api_connector(None)


def test_host_to_string():
    host = (
        "https://report.eudev3.cyberarmorsoft.com/k8srestapi/v1/postureReport"
        "?cluster=openrasty_seal-7fvz&customerGUID=5d817063-096f-4d91-b39b-8665240080af"
    )
    expected = (
        "https://report.eudev3.cyberarmorsoft.com/k8srestapi/v1/postureReport"
        "?cluster=openrasty_seal-7fvz&customerGUID=5d817063-096f-4d91-b39b-8665240080af"
        "&reportID=ffdd2a00-4dc8-4bf3-b97a-a6d4fd198a41"
    )
    assert host_to_string(host, "ffdd2a00-4dc8-4bf3-b97a-a6d4fd198a41") == expected


def test_host_to_string_without_query():
    assert host_to_string("https://example.com/p", "r1") == "https://example.com/p?reportID=r1"


def test_event_receiver_url_invalid_guid_is_nil():
    url = event_receiver_url(API, "not-a-guid", "c")
    assert url == "https://report.example.com/k8s/postureReport?clusterName=c&customerGUID=00000000-0000-0000-0000-000000000000"


def test_event_receiver_url_normalises_guid():
    url = event_receiver_url(API, "5D817063-096F-4D91-B39B-8665240080AF", "c")
    assert "customerGUID=5d817063-096f-4d91-b39b-8665240080af" in url


def test_receiver_requires_connector(no_connector):
    with pytest.raises(RuntimeError):
        ReportEventReceiver()


def test_send_posts_report():
    report = _session().posture_report
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, REPORT_URL, status=200)
        ReportEventReceiver(API).send(report)
        calls = list(rsps.calls)
    assert len(calls) == 1
    assert f"reportID={report.report_id}" in calls[0].request.url
    body = json.loads(calls[0].request.body)
    assert body["reportID"] == report.report_id
    assert body["frameworks"][0]["name"] == report.framework_reports[0].name


def test_send_raises_on_bad_status():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, REPORT_URL, status=500, body="boom")
        with pytest.raises(ReportSendError, match="response status: 500"):
            ReportEventReceiver(API).send(_session().posture_report)


def test_action_send_skipped_without_customer(monkeypatch):
    monkeypatch.setattr(environment, "customer_guid", "")
    session = _session()
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add(responses.POST, REPORT_URL, status=200)
        ReportEventReceiver(API).action_send_report(session)
        calls = len(rsps.calls)
    assert calls == 0
    assert session.posture_report.framework_reports[0].control_reports[0].rule_reports[0].rule_responses[0].k8s_api_objects == [SECRET_OBJ]


def test_action_send_strips_data(monkeypatch):
    monkeypatch.setattr(environment, "customer_guid", "5d817063-096f-4d91-b39b-8665240080af")
    session = _session()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, REPORT_URL, status=200)
        ReportEventReceiver(API).action_send_report(session)
        calls = list(rsps.calls)
    assert len(calls) == 1
    body = json.loads(calls[0].request.body)
    assert body["reportID"] == session.posture_report.report_id
    rule = body["frameworks"][0]["controlReports"][0]["ruleReports"][0]
    stripped = {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "s", "namespace": "default", "labels": {"a": "b"}}}
    assert rule["ruleResponses"][0]["alertObject"]["k8sApiObjects"] == [stripped]
    assert rule["listInputResources"] == [stripped]


def test_action_send_prints_failure(monkeypatch, capsys):
    monkeypatch.setattr(environment, "customer_guid", "5d817063-096f-4d91-b39b-8665240080af")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, REPORT_URL, status=403, body="denied")
        ReportEventReceiver(API).action_send_report(_session())
    assert "response status: 403" in capsys.readouterr().out