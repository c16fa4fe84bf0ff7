"""JUnit XML rendering of posture reports."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from .scaninfo import PostureReport

_ROOT_NAME = "Kubescape scan results"
_CLASSNAME = "Kubescape"


@dataclass
class JUnitFailure:
    message: str = ""
    type: str = ""
    contents: str = ""


@dataclass
class JUnitTestCase:
    name: str = ""
    classname: str = ""
    time: str = ""
    resources: int = 0
    excluded: int = 0
    failed: int = 0
    skip_message: str | None = None
    failure: JUnitFailure | None = None

    def _element(self) -> ET.Element:
        element = ET.Element(
            "testcase",
            {
                "classname": self.classname,
                "name": self.name,
                "time": self.time,
                "resources": str(self.resources),
                "excluded": str(self.excluded),
                "filed": str(self.failed),
            },
        )
        if self.skip_message is not None:
            ET.SubElement(element, "skipped", {"message": self.skip_message})
        if self.failure is not None:
            failure = ET.SubElement(element, "failure", {"message": self.failure.message, "type": self.failure.type})
            failure.text = self.failure.contents
        return element


@dataclass
class JUnitTestSuite:
    name: str = ""
    tests: int = 0
    time: str = ""
    resources: int = 0
    excluded: int = 0
    failed: int = 0
    properties: dict[str, str] = field(default_factory=dict)
    test_cases: list[JUnitTestCase] = field(default_factory=list)

    def _element(self) -> ET.Element:
        element = ET.Element(
            "testsuite",
            {
                "tests": str(self.tests),
                "time": self.time,
                "name": self.name,
                "resources": str(self.resources),
                "excluded": str(self.excluded),
                "filed": str(self.failed),
            },
        )
        if self.properties:
            properties = ET.SubElement(element, "properties")
            for name, value in self.properties.items():
                ET.SubElement(properties, "property", {"name": name, "value": value})
        element.extend(case._element() for case in self.test_cases)
        return element


@dataclass
class JUnitTestSuites:
    name: str = _ROOT_NAME
    suites: list[JUnitTestSuite] = field(default_factory=list)

    def to_xml(self) -> str:
        """Serialise as a compact XML document without declaration."""
        root = ET.Element("testsuites", {"name": self.name})
        root.extend(suite._element() for suite in self.suites)
        return ET.tostring(root, encoding="unicode")


def convert_posture_report_to_junit(posture_report: PostureReport) -> JUnitTestSuites:
    """Turn each framework into a suite and each control into a test case."""
    result = JUnitTestSuites()
    for framework in posture_report.framework_reports:
        suite = JUnitTestSuite(
            name=framework.name,
            resources=framework.number_of_resources(),
            excluded=framework.number_of_warning_resources(),
            failed=framework.number_of_failed_resources(),
        )
        for control in framework.control_reports:
            suite.tests += 1
            case = JUnitTestCase(name=control.name, classname=_CLASSNAME, time="0")
            if control.rule_reports and control.rule_reports[0].rule_responses:
                case.resources = control.number_of_resources()
                case.excluded = control.number_of_warning_resources()
                case.failed = control.number_of_failed_resources()
                contents = "".join(
                    f"\n{response.alert_message}" for response in control.rule_reports[0].rule_responses
                )
                case.failure = JUnitFailure(message=f"{case.failed} resources failed", contents=contents)
            suite.test_cases.append(case)
        result.suites.append(suite)
    return result