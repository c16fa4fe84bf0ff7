import json
from types import SimpleNamespace

import pytest

from kubescan.config import (
    CONFIG_MAP_NAME,
    ClusterConfig,
    ConfigMapStore,
    ConfigObj,
    EmptyConfig,
    cluster_config_setup,
    config_file_path,
    delete_config,
    delete_config_file,
    get_value_from_config_json,
    is_registered,
    is_submitted,
    set_value_in_config_json,
)
from kubescan.getter import ArmoAPI, TenantResponse, set_api_connector


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    store = tmp_path / ".kubescape"
    store.mkdir()
    return store


class FakeBackend:
    def __init__(self, tenant=None, error=None):
        self.tenant = tenant if tenant is not None else TenantResponse()
        self.error = error
        self.calls = []

    def get_customer_guid(self, customer_guid):
        self.calls.append(customer_guid)
        if self.error is not None:
            raise self.error
        return self.tenant


def write_config_file(data):
    with open(config_file_path(), "w", encoding="utf-8") as handle:
        json.dump(data, handle)


def read_config_file():
    with open(config_file_path(), encoding="utf-8") as handle:
        return json.load(handle)


def test_to_config_blanks_cluster_name_only_in_output():
    obj = ConfigObj("guid-1", "token", "admin@example.com", "ctx")
    assert json.loads(obj.to_config()) == {
        "customerGUID": "guid-1",
        "invitationParam": "token",
        "adminMail": "admin@example.com",
        "clusterName": "",
    }
    assert obj.cluster_name == "ctx"


def test_json_round_trip():
    obj = ConfigObj("guid-1", "token", "admin@example.com", "ctx")
    assert ConfigObj.from_json(obj.to_json()) == obj


def test_from_json_empty_and_partial():
    assert ConfigObj.from_json("") == ConfigObj()
    assert ConfigObj.from_json(b'{"customerGUID": "guid-1"}') == ConfigObj(customer_guid="guid-1")


def test_from_json_rejects_non_object():
    with pytest.raises(ValueError):
        ConfigObj.from_json("[1, 2]")


def test_config_file_path_is_in_local_store(home):
    assert config_file_path() == str(home / "config.json")


def test_set_and_get_value_in_config_json():
    write_config_file({"customerGUID": "guid-1"})
    set_value_in_config_json("clusterName", "ctx")
    assert get_value_from_config_json("clusterName") == "ctx"
    assert get_value_from_config_json("customerGUID") == "guid-1"


def test_get_value_missing_key():
    write_config_file({})
    with pytest.raises(LookupError, match="value does not exist"):
        get_value_from_config_json("absent")


def test_get_value_renders_number():
    write_config_file({"count": 7})
    assert get_value_from_config_json("count") == str(7)


def test_set_value_without_file():
    with pytest.raises(FileNotFoundError):
        set_value_in_config_json("key", "value")


def test_load_config_prefers_configmap():
    write_config_file({"customerGUID": "from-file"})
    store = ConfigMapStore({CONFIG_MAP_NAME: {"customerGUID": "from-map"}})
    cluster_config = ClusterConfig(FakeBackend(), store)
    cluster_config.load_config()
    assert cluster_config.customer_guid == "from-map"


def test_load_config_from_file():
    write_config_file({"customerGUID": "from-file", "adminMail": "admin@example.com"})
    cluster_config = ClusterConfig(FakeBackend(), ConfigMapStore())
    cluster_config.load_config()
    assert cluster_config.config_obj == ConfigObj(customer_guid="from-file", customer_admin_email="admin@example.com")


def test_load_config_without_anything():
    cluster_config = ClusterConfig(FakeBackend(), None)
    cluster_config.config_obj = ConfigObj(customer_guid="stale")
    cluster_config.load_config()
    assert cluster_config.config_obj == ConfigObj()


def test_set_config_with_registered_tenant():
    store = ConfigMapStore()
    backend = FakeBackend(TenantResponse(admin_mail="admin@example.com"))
    cluster_config = ClusterConfig(backend, store, cluster_name="ctx")
    cluster_config.set_config("guid-1")
    assert backend.calls == ["guid-1"]
    assert store[CONFIG_MAP_NAME] == {
        "customerGUID": "guid-1",
        "invitationParam": "",
        "adminMail": "admin@example.com",
        "clusterName": "ctx",
    }
    stored = read_config_file()
    assert stored["clusterName"] == ""
    assert stored["adminMail"] == "admin@example.com"


def test_set_config_with_new_tenant():
    store = ConfigMapStore({CONFIG_MAP_NAME: {"other": "kept"}})
    backend = FakeBackend(TenantResponse(tenant_id="tenant-9", token="token"))
    cluster_config = ClusterConfig(backend, store)
    cluster_config.set_config("")
    assert cluster_config.customer_guid == "tenant-9"
    assert cluster_config.config_obj.token == "token"
    assert store[CONFIG_MAP_NAME]["other"] == "kept"
    assert store[CONFIG_MAP_NAME]["customerGUID"] == "tenant-9"


def test_set_config_tolerates_existing_tenant():
    backend = FakeBackend(error=RuntimeError("tenant already exists"))
    cluster_config = ClusterConfig(backend, None)
    cluster_config.set_config("guid-1")
    assert read_config_file()["customerGUID"] == "guid-1"


def test_set_config_raises_backend_error():
    backend = FakeBackend(error=RuntimeError("connection refused"))
    cluster_config = ClusterConfig(backend, ConfigMapStore())
    with pytest.raises(RuntimeError, match="connection refused"):
        cluster_config.set_config("guid-1")


def test_is_registered():
    assert is_registered(ClusterConfig(FakeBackend(TenantResponse(admin_mail="admin@example.com"))))
    assert not is_registered(ClusterConfig(FakeBackend(TenantResponse())))
    assert not is_registered(ClusterConfig(FakeBackend(error=RuntimeError("down"))))


def test_is_submitted():
    assert not is_submitted(ClusterConfig(FakeBackend(), ConfigMapStore()))
    assert is_submitted(ClusterConfig(FakeBackend(), ConfigMapStore({CONFIG_MAP_NAME: {}})))
    write_config_file({})
    assert is_submitted(ClusterConfig(FakeBackend(), None))


@pytest.mark.parametrize(
    "submitted, admin_mail, submit, local, expected_guid",
    [
        (False, "", True, False, ""),
        (True, "", True, False, "guid-1"),
        (True, "admin@example.com", False, False, "guid-1"),
    ],
)
def test_cluster_config_setup_keeps_cluster_config(submitted, admin_mail, submit, local, expected_guid):
    store = ConfigMapStore({CONFIG_MAP_NAME: {"customerGUID": "guid-1"}} if submitted else {})
    backend = FakeBackend(TenantResponse(admin_mail=admin_mail))
    scan_info = SimpleNamespace(submit=submit, local=local)
    result = cluster_config_setup(scan_info, backend, store)
    assert isinstance(result, ClusterConfig)
    assert result.customer_guid == expected_guid


@pytest.mark.parametrize(
    "submitted, admin_mail, submit, local, configmap_kept",
    [
        (False, "", False, False, False),
        (True, "", False, False, False),
        (True, "admin@example.com", False, True, True),
    ],
)
def test_cluster_config_setup_falls_back_to_empty(submitted, admin_mail, submit, local, configmap_kept):
    store = ConfigMapStore({CONFIG_MAP_NAME: {"customerGUID": "guid-1"}} if submitted else {})
    backend = FakeBackend(TenantResponse(admin_mail=admin_mail))
    scan_info = SimpleNamespace(submit=submit, local=local)
    result = cluster_config_setup(scan_info, backend, store)
    assert isinstance(result, EmptyConfig)
    assert (CONFIG_MAP_NAME in store) is configmap_kept


def test_setup_forgets_unregistered_config(home):
    write_config_file({"customerGUID": "guid-1"})
    store = ConfigMapStore({CONFIG_MAP_NAME: {"customerGUID": "guid-1"}})
    result = cluster_config_setup(SimpleNamespace(submit=False, local=False), FakeBackend(), store)
    assert isinstance(result, EmptyConfig)
    assert CONFIG_MAP_NAME not in store
    assert not (home / "config.json").exists()


def test_delete_config_needs_configmap(home):
    write_config_file({})
    with pytest.raises(KeyError):
        delete_config(ConfigMapStore())
    assert (home / "config.json").exists()


def test_delete_config_file_missing():
    with pytest.raises(FileNotFoundError):
        delete_config_file()


def test_configmap_values():
    store = ConfigMapStore(namespace="scan")
    cluster_config = ClusterConfig(FakeBackend(), store)
    assert cluster_config.default_ns == "scan"
    with pytest.raises(LookupError):
        cluster_config.value_from_configmap("key")
    cluster_config.set_in_configmap("key", "value")
    assert cluster_config.value_from_configmap("key") == "value"
    with pytest.raises(LookupError, match="value does not exist"):
        cluster_config.value_from_configmap("other")


def test_set_in_configmap_without_cluster():
    with pytest.raises(RuntimeError):
        ClusterConfig(FakeBackend(), None).set_in_configmap("key", "value")


def test_to_dict_uses_json_keys():
    cluster_config = ClusterConfig(FakeBackend())
    cluster_config.config_obj = ConfigObj(customer_guid="guid-1", cluster_name="ctx")
    assert cluster_config.to_dict() == {
        "customerGUID": "guid-1",
        "invitationParam": "",
        "adminMail": "",
        "clusterName": "ctx",
    }


def test_generate_url_mentions_portal(capsys):
    api = ArmoAPI.prod()
    set_api_connector(api)
    try:
        ClusterConfig(FakeBackend()).generate_url()
        EmptyConfig().generate_url()
    finally:
        set_api_connector(None)
    out = capsys.readouterr().out
    assert out.count(f"https://{api.frontend_url}") == 2