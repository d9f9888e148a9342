"""Tests for utility functions."""

import datetime

import pytest

from models import (
    InvalidCredentialsError,
    ParalusAPIError,
    ResourceNotFoundError,
    ValidationError,
)
from utils import (
    api_errors,
    make_cluster_id,
    now_iso,
    remote_exists,
    require_not_empty,
    set_condition,
    split_cluster_id,
    split_yaml_documents,
)


class TestClusterId:
    """Tests for make_cluster_id and split_cluster_id."""

    def test_make(self):
        assert make_cluster_id("default", "test") == "default:test"

    def test_split(self):
        assert split_cluster_id("default:test") == ("default", "test")

    @pytest.mark.parametrize("identity", ["", "default", "default:", ":test", "a:b:c"])
    def test_split_malformed(self, identity):
        with pytest.raises(ValidationError, match="PROJECT_NAME:CLUSTER_NAME"):
            split_cluster_id(identity)


class TestRequireNotEmpty:
    """Tests for require_not_empty function."""

    def test_returns_stripped_value(self):
        assert require_not_empty("name", "  test ") == "test"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_rejects_empty(self, value):
        with pytest.raises(ValidationError, match="name: expected not empty string"):
            require_not_empty("name", value)


class TestSplitYamlDocuments:
    """Tests for split_yaml_documents function."""

    def test_splits_and_trims(self):
        combined = "a: 1\n---\n  b: 2  \n---\n\n---\n"

        assert split_yaml_documents(combined) == ["a: 1", "b: 2"]

    def test_empty(self):
        assert split_yaml_documents("") == []


class TestApiErrors:
    """Tests for the api_errors context manager."""

    def test_wraps_api_error(self):
        with pytest.raises(ParalusAPIError, match="failed to create group devs: boom") as info:
            with api_errors("failed to create group devs"):
                raise ParalusAPIError("boom", 500)

        assert info.value.status_code == 500
        assert isinstance(info.value.__cause__, ParalusAPIError)

    def test_wraps_not_found(self):
        with pytest.raises(ParalusAPIError, match="missing"):
            with api_errors("failed to delete group devs"):
                raise ResourceNotFoundError("missing")

    def test_keeps_error_class(self):
        with pytest.raises(InvalidCredentialsError) as info:
            with api_errors("failed to list users"):
                raise InvalidCredentialsError("no or invalid credentials", 401)

        assert info.value.status_code == 401

    def test_leaves_other_errors(self):
        with pytest.raises(KeyError):
            with api_errors("failed"):
                raise KeyError("x")


class TestRemoteExists:
    """Tests for remote_exists function."""

    def test_found(self):
        def lookup(name):
            return {"metadata": {"name": name}}

        assert remote_exists(lookup, "p1", context="failed to retrieve project p1") is True

    def test_not_found(self):
        def lookup(name):
            raise ResourceNotFoundError(name)

        assert remote_exists(lookup, "p1", context="failed to retrieve project p1") is False

    def test_other_errors_propagate(self):
        def lookup(name):
            raise ParalusAPIError("unavailable", 503)

        with pytest.raises(
            ParalusAPIError, match="failed to retrieve project p1: unavailable"
        ) as info:
            remote_exists(lookup, "p1", context="failed to retrieve project p1")

        assert info.value.status_code == 503

    def test_composite_key(self):
        seen = []

        assert remote_exists(lambda *key: seen.append(key), "default", "c1", context="x")
        assert seen == [("default", "c1")]


class TestNowIso:
    """Tests for now_iso function."""

    def test_returns_iso_format(self):
        result = now_iso()
        # Should be parseable as ISO format
        parsed = datetime.datetime.fromisoformat(result)
        assert parsed is not None

    def test_returns_utc(self):
        result = now_iso()
        parsed = datetime.datetime.fromisoformat(result)
        assert parsed.tzinfo is not None


class TestSetCondition:
    """Tests for set_condition function."""

    def test_adds_new_condition(self):
        status: dict = {}
        set_condition(status, "Ready", "True", "Completed", "All done")

        assert len(status["conditions"]) == 1
        assert status["conditions"][0]["type"] == "Ready"
        assert status["conditions"][0]["status"] == "True"
        assert status["conditions"][0]["reason"] == "Completed"
        assert status["conditions"][0]["message"] == "All done"
        assert "lastTransitionTime" in status["conditions"][0]

    def test_updates_existing_condition(self):
        status: dict = {
            "conditions": [
                {
                    "type": "Ready",
                    "status": "False",
                    "reason": "Pending",
                    "message": "",
                    "lastTransitionTime": "2024-01-01T00:00:00+00:00",
                }
            ]
        }
        set_condition(status, "Ready", "True", "Completed", "Done")

        assert len(status["conditions"]) == 1
        assert status["conditions"][0]["status"] == "True"
        assert status["conditions"][0]["reason"] == "Completed"
        # Transition time should be updated since status changed
        assert status["conditions"][0]["lastTransitionTime"] != "2024-01-01T00:00:00+00:00"

    def test_preserves_transition_time_if_status_unchanged(self):
        original_time = "2024-01-01T00:00:00+00:00"
        status: dict = {
            "conditions": [
                {
                    "type": "Ready",
                    "status": "True",
                    "reason": "Completed",
                    "message": "Done",
                    "lastTransitionTime": original_time,
                }
            ]
        }
        set_condition(status, "Ready", "True", "StillComplete", "Still done")

        assert status["conditions"][0]["lastTransitionTime"] == original_time
        assert status["conditions"][0]["reason"] == "StillComplete"

    def test_multiple_conditions(self):
        status: dict = {}
        set_condition(status, "Ready", "True", "", "")
        set_condition(status, "Synced", "False", "Pending", "")

        assert len(status["conditions"]) == 2
        types = {c["type"] for c in status["conditions"]}
        assert types == {"Ready", "Synced"}
