"""
Tests for the client configuration file.
"""

import threading
import time

import pytest
import yaml

from tanzucli.clientconfig import (
    ClientConfigError,
    ClientConfigStore,
    ContextType,
    TelemetryOptions,
    parse_bool,
)
from tanzucli.utils.locking import file_lock


@pytest.fixture
def store(config):
    return ClientConfigStore(config)


CONFIG_WITH_CONTEXTS = """
contexts:
  - name: my-cluster
    contextType: kubernetes
    clusterOpts:
      endpoint: https://10.0.0.1:6443
      path: /home/me/.kube/config
      context: admin@c
  - name: my-org
    contextType: tanzu
    globalOpts:
      endpoint: https://api.tanzu.example.com
  - name: mislabeled
    contextType: tanzu
currentContext:
  kubernetes: my-cluster
  tanzu: my-org
  mission-control: missing
  unknown-type: my-cluster
"""


class TestCliId:
    """Tests for get_cli_id()."""

    def test_generated_once_and_persisted(self, store, config):
        cli_id = store.get_cli_id()

        assert cli_id
        assert ClientConfigStore(config).get_cli_id() == cli_id
        data = yaml.safe_load(config.client_config_path.read_text())
        assert data["cli"]["cliId"] == cli_id

    def test_concurrent_callers_agree(self, store):
        ids = []

        def worker():
            ids.append(store.get_cli_id())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(ids)) == 1

    def test_waits_for_other_writers(self, store, config):
        """Another process holding the config file lock delays ID generation."""
        ids = []
        worker = threading.Thread(target=lambda: ids.append(store.get_cli_id()))

        with file_lock(config.client_config_path):
            worker.start()
            time.sleep(0.2)
            assert worker.is_alive()
            assert not config.client_config_path.exists()
        worker.join(timeout=5)

        assert ids == [ClientConfigStore(config).get_cli_id()]

    def test_keeps_other_sections(self, store, config):
        config.client_config_path.parent.mkdir(parents=True)
        config.client_config_path.write_text(CONFIG_WITH_CONTEXTS)

        store.get_cli_id()

        assert len(store.get_contexts()) == 3


class TestTelemetryAndCeip:
    """Tests for telemetry options and CEIP opt-in."""

    def test_telemetry_options_roundtrip(self, store):
        assert store.get_telemetry_options() is None

        store.set_telemetry_options(TelemetryOptions(source="/tmp/cli_metrics.db"))

        assert store.get_telemetry_options() == TelemetryOptions(source="/tmp/cli_metrics.db")

    def test_ceip_default_opted_out(self, store):
        assert store.get_ceip_opt_in() == ""
        assert not store.ceip_opted_in()

    def test_ceip_set(self, store):
        store.set_ceip_opt_in(True)
        assert store.get_ceip_opt_in() == "true"
        assert store.ceip_opted_in()

        store.set_ceip_opt_in(False)
        assert not store.ceip_opted_in()

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("True", True), ("1", True), ("yes", True),
        ("false", False), ("", False), ("maybe", False),
    ])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected


class TestContexts:
    """Tests for get_contexts() and get_active_contexts()."""

    def test_active_contexts(self, store, config):
        config.client_config_path.parent.mkdir(parents=True)
        config.client_config_path.write_text(CONFIG_WITH_CONTEXTS)

        active = store.get_active_contexts()

        assert set(active) == {ContextType.KUBERNETES, ContextType.TANZU}
        assert active[ContextType.KUBERNETES].endpoint == "https://10.0.0.1:6443"
        assert active[ContextType.TANZU].endpoint == "https://api.tanzu.example.com"

    def test_no_config_file(self, store):
        assert store.get_contexts() == []
        assert store.get_active_contexts() == {}

    def test_invalid_yaml(self, store, config):
        config.client_config_path.parent.mkdir(parents=True)
        config.client_config_path.write_text("contexts: [")

        with pytest.raises(ClientConfigError, match="failed to parse client config"):
            store.get_contexts()

    def test_invalid_context(self, store, config):
        config.client_config_path.parent.mkdir(parents=True)
        config.client_config_path.write_text("contexts:\n  - contextType: kubernetes\n")

        with pytest.raises(ClientConfigError, match="invalid context"):
            store.get_contexts()
