# kubescan

`kubescan` is a library of building blocks for checking the security
posture of Kubernetes resources against policy frameworks such as
`nsa` and `mitre`. It fetches or loads frameworks, controls and posture
exceptions, holds the report structures of a scan, summarises results
per control, renders them as a readable table, JSON or JUnit XML, and
submits reports to a report receiver.

## Installation

```
pip install .
```

## Modules

| Module | What it holds |
| --- | --- |
| `kubescan.strutils` | `convert_labels_to_string`, `convert_string_to_labels`, `pretty_json` |
| `kubescan.display` | progress and status lines, quiet mode (`set_silent_mode`, `is_silent`), a terminal spinner, and the shared `environment` (customer GUID, cluster name) |
| `kubescan.getter` | `ArmoAPI` backend client, `LoadPolicy` for local JSON files, `http_get`, `get_default_path`, `save_policy_in_file`, `set_api_connector` / `get_api_connector` |
| `kubescan.config` | account configuration in a config map (`ConfigMapStore`) and in `~/.kubescape/config.json`; `ClusterConfig`, `EmptyConfig`, `cluster_config_setup` |
| `kubescan.scaninfo` | `ScanInfo` options and the report structures `PostureReport`, `FrameworkReport`, `ControlReport`, `RuleReport`, `RuleResponse`, `OPASessionObj` |
| `kubescan.repository` | `scan_repository` lists raw URLs of every `.yaml` file in a GitHub repository |
| `kubescan.reporter` | `ReportEventReceiver` posts posture reports; `host_to_string`, `event_receiver_url` |
| `kubescan.summary` | `ControlSummary`, `WorkloadSummary`, `list_result_summary`, `group_by_namespace` |
| `kubescan.junit` | `convert_posture_report_to_junit` and the `JUnitTestSuites` XML model |
| `kubescan.printer` | `Printer` (`pretty-printer`, `json`, `junit`), `calculate_posture_score`, `percentage` |

## Examples

Labels:

```python
from kubescan.strutils import convert_string_to_labels, convert_labels_to_string

labels = convert_string_to_labels("app=web;tier=front")
assert labels == {"app": "web", "tier": "front"}
assert convert_labels_to_string(labels) == "app=web;tier=front"
```

Policies from a local file. The name is compared without regard to case;
a mismatch raises `ValueError`:

```python
from kubescan.getter import LoadPolicy

framework = LoadPolicy("nsa.json").get_framework("nsa")
control = LoadPolicy("c-0005.json").get_control("C-0005")
```

Policies and exceptions from the backend:

```python
from kubescan.getter import ArmoAPI, set_api_connector

api = ArmoAPI.prod()
set_api_connector(api)
framework = api.get_framework("nsa")   # also cached in ~/.kubescape/nsa.json
```

A failed request raises `kubescan.getter.HTTPRequestError`.

Printing results:

```python
import io
from kubescan.scaninfo import (
    ControlReport, FrameworkReport, OPASessionObj, PostureReport, RuleReport, RuleResponse,
)
from kubescan.printer import Printer

pod = {"apiVersion": "v1", "kind": "Pod", "metadata": {"name": "web", "namespace": "prod"}}
report = PostureReport(framework_reports=[
    FrameworkReport(name="nsa", control_reports=[
        ControlReport(name="Privileged container", rule_reports=[
            RuleReport(rule_responses=[RuleResponse(alert_message="privileged", k8s_api_objects=[pod])]),
        ]),
    ]),
])

out = io.StringIO()
score = Printer("pretty-printer", stream=out).action_print(OPASessionObj(posture_report=report))
print(out.getvalue())   # per-control verdicts and a summary table
print(score)            # 0.0: the only resource failed
```

With `Printer("json", output_file="results.json")` or
`Printer("junit", output_file="results.xml")` the results go to a file;
those formats also print the final score. An unknown format raises
`ValueError` unless quiet mode is on.

Percentages are truncated:

```python
from kubescan.printer import percentage
assert percentage(4, 1) == 75
```

Adding a report ID to a receiver URL (query keys come out sorted):

```python
from kubescan.reporter import host_to_string
assert host_to_string("https://h/p?b=2&a=1", "id") == "https://h/p?a=1&b=2&reportID=id"
```

Local configuration:

```python
from kubescan.config import get_value_from_config_json, set_value_in_config_json

set_value_in_config_json("clusterName", "staging")   # the file must already exist
print(get_value_from_config_json("clusterName"))
```

## What this package does not do

- It has no command-line program; everything is used from Python.
- It does not read manifests from files or URLs into resource maps, nor
  evaluate policy rules against resources. Callers fill in
  `PostureReport` and its nested reports themselves.
- It does not talk to a Kubernetes cluster. Config maps are kept in an
  in-memory `ConfigMapStore` that the caller supplies.

## Tests

```
pip install '.[test]'
pytest
```