"""Account configuration kept in a cluster config map and in a local file."""

from __future__ import annotations

import json
import logging
import os
import sys
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

from .display import info_text_display
from .getter import Backend, get_api_connector, get_default_path

log = logging.getLogger(__name__)

CONFIG_MAP_NAME = "kubescape"
CONFIG_FILE_NAME = "config"
DEFAULT_NAMESPACE = "default"

_VALUE_MISSING = "value does not exist"

# Attribute name -> key used in the config file and the config map.
_JSON_KEYS = {
    "customer_guid": "customerGUID",
    "token": "invitationParam",
    "customer_admin_email": "adminMail",
    "cluster_name": "clusterName",
}


def config_file_path() -> str:
    """Return the path of the local configuration file."""
    return get_default_path(CONFIG_FILE_NAME + ".json")


def _compact(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


@dataclass
class ConfigObj:
    """Account settings shared between the config map and the config file."""

    customer_guid: str = ""
    token: str = ""
    customer_admin_email: str = ""
    cluster_name: str = ""

    def _as_json_dict(self) -> dict[str, str]:
        return {key: getattr(self, attr) for attr, key in _JSON_KEYS.items()}

    def to_json(self) -> str:
        """Serialise every field as compact JSON."""
        return _compact(self._as_json_dict())

    def to_config(self) -> str:
        """Serialise for the config file, which never stores the cluster name."""
        data = self._as_json_dict()
        data["clusterName"] = ""
        return _compact(data)

    @classmethod
    def from_json(cls, data: str | bytes) -> "ConfigObj":
        """Parse a JSON document; empty input gives a blank configuration."""
        if not data:
            return cls()
        return cls._from_mapping(json.loads(data))

    @classmethod
    def _from_mapping(cls, data: Any) -> "ConfigObj":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("configuration must be a JSON object")
        values: dict[str, str] = {}
        for attr, key in _JSON_KEYS.items():
            value = data.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"configuration field '{key}' must be a string")
            values[attr] = value
        return cls(**values)


class ConfigMapStore(dict):
    """Config maps of one namespace, keyed by name, each holding string data."""

    def __init__(
        self,
        maps: Mapping[str, Mapping[str, str]] | Iterable[tuple[str, Mapping[str, str]]] = (),
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        super().__init__(maps)
        self.namespace = namespace


def _frontend_message() -> str:
    api = get_api_connector()
    host = api.frontend_url if api is not None else ""
    return f"\nCheckout for more cool features: https://{host}\n"


def _sprint(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _read_config_json() -> dict[str, Any]:
    data = json.loads(Path(config_file_path()).read_bytes())
    if not isinstance(data, dict):
        raise ValueError("configuration file must hold a JSON object")
    return data


def get_value_from_config_json(key: str) -> str:
    """Return the value stored under ``key`` in the local configuration file."""
    data = _read_config_json()
    if key not in data:
        raise LookupError(_VALUE_MISSING)
    return _sprint(data[key])


def set_value_in_config_json(key: str, value: str) -> None:
    """Store ``value`` under ``key`` in the existing local configuration file."""
    data = _read_config_json()
    data[key] = value
    path = Path(config_file_path())
    path.write_text(json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False), encoding="utf-8")
    with suppress(OSError):
        os.chmod(path, 0o664)


def _config_file_exists() -> bool:
    return Path(config_file_path()).is_file()


def _load_config_file() -> ConfigObj:
    try:
        return ConfigObj.from_json(Path(config_file_path()).read_bytes())
    except (OSError, ValueError) as err:
        log.debug("could not load configuration file: %s", err)
        return ConfigObj()


class EmptyConfig:
    """Configuration used when nothing is to be reported."""

    def __init__(self, cluster_name: str = "", default_ns: str = DEFAULT_NAMESPACE) -> None:
        self.cluster_name = cluster_name
        self.default_ns = default_ns

    @property
    def config_obj(self) -> ConfigObj:
        return ConfigObj()

    @property
    def customer_guid(self) -> str:
        return ""

    @property
    def backend(self) -> None:
        return None

    def set_config(self, customer_guid: str) -> None:
        """Nothing is stored without an account."""

    def generate_url(self) -> None:
        """Point the user at the portal."""
        info_text_display(sys.stdout, f"\n{_frontend_message()}\n")


class ClusterConfig:
    """Account configuration backed by a config map and the local file."""

    def __init__(
        self,
        backend: Backend | None,
        configmaps: ConfigMapStore | None = None,
        cluster_name: str = "",
    ) -> None:
        self.backend = backend
        self.configmaps = configmaps
        self.context_cluster_name = cluster_name
        self.config_obj = ConfigObj()

    @property
    def default_ns(self) -> str:
        return self.configmaps.namespace if self.configmaps is not None else DEFAULT_NAMESPACE

    @property
    def customer_guid(self) -> str:
        return self.config_obj.customer_guid

    @property
    def cluster_name(self) -> str:
        return self.config_obj.cluster_name

    def load_config(self) -> None:
        """Read the configuration from the config map, else from the file."""
        if self.exists_configmap():
            try:
                self.config_obj = ConfigObj._from_mapping(self.configmaps[CONFIG_MAP_NAME])
            except ValueError as err:
                log.debug("could not load config map: %s", err)
                self.config_obj = ConfigObj()
        elif _config_file_exists():
            self.config_obj = _load_config_file()
        else:
            self.config_obj = ConfigObj()

    def set_config(self, customer_guid: str) -> None:
        """Register with the backend and persist the resulting configuration."""
        if not self.config_obj.cluster_name:
            self.config_obj.cluster_name = self.context_cluster_name
        if customer_guid and self.config_obj.customer_guid != customer_guid:
            self.config_obj.customer_guid = customer_guid

        try:
            tenant = self.backend.get_customer_guid(self.config_obj.customer_guid)
        except Exception as err:
            if "already exists" not in str(err):
                raise
        else:
            if tenant.admin_mail:
                self.config_obj.customer_admin_email = tenant.admin_mail
            else:
                self.config_obj.token = tenant.token
                self.config_obj.customer_guid = tenant.tenant_id

        if self.exists_configmap():
            self._update_configmap()
        else:
            self._create_configmap()
        self._write_config_file()

    def generate_url(self) -> None:
        """Point the user at the portal."""
        info_text_display(sys.stdout, _frontend_message() + "\n")

    def exists_configmap(self) -> bool:
        """Return whether the config map is present."""
        return self.configmaps is not None and CONFIG_MAP_NAME in self.configmaps

    def value_from_configmap(self, key: str) -> str:
        """Return the value stored under ``key`` in the config map."""
        if not self.exists_configmap():
            raise LookupError(f"configmap '{CONFIG_MAP_NAME}' not found in namespace '{self.default_ns}'")
        data = self.configmaps[CONFIG_MAP_NAME]
        if key not in data:
            raise LookupError(_VALUE_MISSING)
        return data[key]

    def set_in_configmap(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, creating the config map when missing."""
        if self.configmaps is None:
            raise RuntimeError("not connected to a cluster")
        self.configmaps.setdefault(CONFIG_MAP_NAME, {})[key] = value

    def to_dict(self) -> dict[str, str]:
        """Return the configuration with its JSON key names."""
        return self.config_obj._as_json_dict()

    def _string_data(self) -> dict[str, str]:
        return {key: value for key, value in self.to_dict().items() if isinstance(value, str)}

    def _create_configmap(self) -> None:
        if self.configmaps is None:
            return
        self.configmaps[CONFIG_MAP_NAME] = self._string_data()

    def _update_configmap(self) -> None:
        if self.configmaps is None:
            return
        self.configmaps[CONFIG_MAP_NAME].update(self._string_data())

    def _write_config_file(self) -> None:
        path = Path(config_file_path())
        try:
            path.write_text(self.config_obj.to_config(), encoding="utf-8")
        except OSError as err:
            log.warning("could not write configuration file '%s': %s", path, err)


def is_submitted(cluster_config: ClusterConfig) -> bool:
    """Return whether a configuration was ever stored."""
    return cluster_config.exists_configmap() or _config_file_exists()


def is_registered(cluster_config: ClusterConfig) -> bool:
    """Return whether the account belongs to a signed-up user."""
    try:
        tenant = cluster_config.backend.get_customer_guid(cluster_config.customer_guid)
    except Exception as err:
        log.debug("tenant lookup failed: %s", err)
        return False
    return bool(tenant and tenant.admin_mail)


def delete_config_file() -> None:
    """Remove the local configuration file."""
    os.remove(config_file_path())


def delete_config(configmaps: ConfigMapStore | None) -> None:
    """Remove the config map, then the local configuration file."""
    if configmaps is not None:
        del configmaps[CONFIG_MAP_NAME]
    delete_config_file()


def cluster_config_setup(
    scan_info: Any,
    backend: Backend | None,
    configmaps: ConfigMapStore | None,
) -> ClusterConfig | EmptyConfig:
    """Choose whether results are submitted, following the user's history and flags.

    First run: report only with submit. Submitted but not signed up: report with
    submit, otherwise forget the stored configuration. Signed up: report unless
    asked to keep results local.
    """
    cluster_config = ClusterConfig(backend, configmaps)
    cluster_config.load_config()

    if not is_submitted(cluster_config):
        return cluster_config if scan_info.submit else EmptyConfig()
    if not is_registered(cluster_config):
        if scan_info.submit:
            return cluster_config
        with suppress(KeyError, OSError):
            delete_config(configmaps)
        return EmptyConfig()
    if scan_info.local:
        return EmptyConfig()
    return cluster_config