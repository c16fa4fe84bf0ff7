"""Sources of policies, exceptions and tenant details."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlencode, urlsplit

import requests

log = logging.getLogger(__name__)

DEFAULT_LOCAL_STORE = ".kubescape"
REQUEST_TIMEOUT = 61

_BODY_PREVIEW = 1024
_FRAMEWORK_CUSTOMER_GUID = "11111111-1111-1111-1111-111111111111"

_PROD_URLS = ("report.armo.cloud", "api.armo.cloud", "portal.armo.cloud")
_DEV_URLS = (
    "report.eudev3.cyberarmorsoft.com",
    "eggdashbe.eudev3.cyberarmorsoft.com",
    "armoui.eudev3.cyberarmorsoft.com",
)


class HTTPRequestError(Exception):
    """An HTTP request answered with a non-2xx status."""

    def __init__(self, url: str, status_code: int, reason: str, body: str) -> None:
        parts = urlsplit(url)
        request_uri = parts.path or "/"
        if parts.query:
            request_uri += "?" + parts.query
        super().__init__(
            f"HTTP request failed. URL: '{request_uri}', "
            f"HTTP-ERROR: '{status_code} {reason}', BODY: '{body[:_BODY_PREVIEW]}'"
        )
        self.url = url
        self.status_code = status_code
        self.body = body


@dataclass
class TenantResponse:
    tenant_id: str = ""
    token: str = ""
    expires: str = ""
    admin_mail: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TenantResponse":
        return cls(
            tenant_id=data.get("tenantId", "") or "",
            token=data.get("token", "") or "",
            expires=data.get("expires", "") or "",
            admin_mail=data.get("adminMail", "") or "",
        )


class PolicyGetter(Protocol):
    def get_framework(self, name: str) -> dict[str, Any]: ...

    def get_control(self, policy_name: str) -> dict[str, Any]: ...


class ExceptionsGetter(Protocol):
    def get_exceptions(self, customer_guid: str, cluster_name: str) -> list[Any]: ...


class Backend(Protocol):
    def get_customer_guid(self, customer_guid: str) -> TenantResponse: ...


def get_default_path(name: str) -> str:
    """Return ``~/.kubescape/<name>``, or a relative path if there is no home."""
    relative = Path(DEFAULT_LOCAL_STORE) / name
    try:
        return str(Path.home() / relative)
    except (RuntimeError, KeyError):
        return str(relative)


def save_policy_in_file(policy: Any, path: str) -> None:
    """Write ``policy`` as compact JSON, creating the parent directory if missing."""
    encoded = json.dumps(policy, separators=(",", ":"), ensure_ascii=False)
    target = Path(path)
    try:
        target.write_text(encoded, encoding="utf-8")
    except FileNotFoundError:
        target.parent.mkdir(mode=0o744)
        target.write_text(encoded, encoding="utf-8")


def http_get(session: requests.Session, url: str) -> str:
    """GET ``url`` and return the body, raising HTTPRequestError on a bad status."""
    response = session.get(url)
    body = response.text
    if not 200 <= response.status_code < 300:
        raise HTTPRequestError(url, response.status_code, response.reason or "", body)
    return body


class _TimeoutSession(requests.Session):
    def __init__(self, timeout: float) -> None:
        super().__init__()
        self.timeout = timeout

    def request(self, method, url, **kwargs):  # type: ignore[override]
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


class ArmoAPI:
    """Client of the ARMO backend."""

    def __init__(self, report_receiver_url: str, api_url: str, frontend_url: str) -> None:
        self.report_receiver_url = report_receiver_url
        self.api_url = api_url
        self.frontend_url = frontend_url
        self.session: requests.Session = _TimeoutSession(REQUEST_TIMEOUT)

    @classmethod
    def dev(cls) -> "ArmoAPI":
        return cls(*_DEV_URLS)

    @classmethod
    def prod(cls) -> "ArmoAPI":
        return cls(*_PROD_URLS)

    def _url(self, path: str, query: dict[str, str] | None = None) -> str:
        url = f"https://{self.api_url}/{path}"
        if query:
            url += "?" + urlencode(sorted(query.items()))
        return url

    def framework_url(self, framework_name: str) -> str:
        return self._url(
            "v1/armoFrameworks",
            {
                "customerGUID": _FRAMEWORK_CUSTOMER_GUID,
                "frameworkName": framework_name.upper(),
                "getRules": "true",
            },
        )

    def exceptions_url(self, customer_guid: str, cluster_name: str) -> str:
        # The backend does not filter by cluster name yet.
        return self._url("api/v1/armoPostureExceptions", {"customerGUID": customer_guid})

    def customer_url(self) -> str:
        return self._url("api/v1/createTenant")

    def get_framework(self, name: str) -> dict[str, Any]:
        framework = json.loads(http_get(self.session, self.framework_url(name)))
        try:
            save_policy_in_file(framework, get_default_path(name + ".json"))
        except OSError as err:
            log.debug("could not cache framework %s: %s", name, err)
        return framework

    def get_exceptions(self, customer_guid: str, cluster_name: str) -> list[Any]:
        if not customer_guid:
            return []
        body = http_get(self.session, self.exceptions_url(customer_guid, cluster_name))
        return json.loads(body) or []

    def get_customer_guid(self, customer_guid: str) -> TenantResponse:
        url = self.customer_url()
        if customer_guid:
            url = f"{url}?customerGUID={customer_guid}"
        return TenantResponse.from_dict(json.loads(http_get(self.session, url)))


@dataclass
class _ConnectorSlot:
    api: ArmoAPI | None = None


_slot = _ConnectorSlot()


def set_api_connector(api: ArmoAPI | None) -> None:
    """Install the backend client used across the program."""
    _slot.api = api


def get_api_connector() -> ArmoAPI | None:
    """Return the installed backend client."""
    if _slot.api is None:
        log.error("returning nil API connector")
    return _slot.api


def _equal_fold(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()


@dataclass
class LoadPolicy:
    """Policies and exceptions read from a local JSON file."""

    file_path: str

    def _read(self) -> Any:
        return json.loads(Path(self.file_path).read_text(encoding="utf-8"))

    def _read_object(self) -> dict[str, Any]:
        data = self._read()
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object in '{self.file_path}'")
        return data

    def get_control(self, control_name: str) -> dict[str, Any]:
        control = self._read_object()
        if control_name and not (
            _equal_fold(control_name, str(control.get("name", "")))
            or _equal_fold(control_name, str(control.get("controlID", "")))
        ):
            raise ValueError("control from file not matching")
        return control

    def get_framework(self, framework_name: str) -> dict[str, Any]:
        framework = self._read_object()
        if framework_name and not _equal_fold(framework_name, str(framework.get("name", ""))):
            raise ValueError("framework from file not matching")
        return framework

    def get_exceptions(self, customer_guid: str, cluster_name: str) -> list[Any]:
        data = self._read()
        if data is None:
            return []
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON list in '{self.file_path}'")
        return data