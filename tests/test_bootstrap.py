"""Tests for cluster bootstrap artifacts."""

import pytest
import yaml

from conftest import BOOTSTRAP_YAML
from models import ResourceNotFoundError
from resources.bootstrap import fetch_bootstrap, find_relays, parse_bootstrap


class TestFindRelays:
    """Tests for find_relays."""

    def test_first_configmap_with_relays(self):
        docs = [
            "kind: ConfigMap\ndata:\n  other: x",
            "kind: ConfigMap\ndata:\n  relays: first",
            "kind: ConfigMap\ndata:\n  relays: second",
        ]

        assert find_relays(docs) == "first"

    def test_ignores_other_kinds(self):
        assert find_relays(["kind: Secret\ndata:\n  relays: x"]) is None

    def test_invalid_yaml(self):
        with pytest.raises(yaml.YAMLError):
            find_relays(["kind: [unclosed"])


class TestParseBootstrap:
    """Tests for parse_bootstrap."""

    def test_splits_documents(self):
        record = parse_bootstrap("default", "test", BOOTSTRAP_YAML, uuid="u1")

        assert record.id == "default:test"
        assert record.uuid == "u1"
        assert record.combined == BOOTSTRAP_YAML
        assert len(record.files) == 2
        assert record.files[0].startswith("apiVersion: v1\nkind: Namespace")
        assert "relay.paralus.local:443" in record.relays


class TestFetchBootstrap:
    """Tests for fetch_bootstrap."""

    def test_fetch(self, client):
        client.bootstrap_files[("default", "test")] = BOOTSTRAP_YAML

        record = fetch_bootstrap(client, "default", "test")

        assert record.relays is not None
        assert client.called("get_bootstrap_file") == [("default", "test")]

    def test_no_relays_yet(self, client):
        client.bootstrap_files[("default", "test")] = "kind: Namespace\n"

        record = fetch_bootstrap(client, "default", "test")

        assert record.relays is None
        assert record.files == ["kind: Namespace"]

    def test_single_attempt(self, client):
        with pytest.raises(ResourceNotFoundError):
            fetch_bootstrap(client, "default", "test")

        assert len(client.called("get_bootstrap_file")) == 1
