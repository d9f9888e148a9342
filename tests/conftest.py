"""Shared fixtures: an in-memory stand-in for the Paralus API."""

import copy
import uuid
from typing import Any

import pytest

from config import ParalusConfig
from models import ResourceNotFoundError

BOOTSTRAP_YAML = """apiVersion: v1
kind: Namespace
metadata:
  name: paralus-system
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: relay-agent-config
  namespace: paralus-system
data:
  relays: '[{"token":"abc","addr":"relay.paralus.local:443"}]'
---
"""


def make_user(
    email: str, first_name: str = "", last_name: str = "", user_id: str | None = None
) -> dict[str, Any]:
    """Build a Paralus User object as returned by the API."""
    return {
        "kind": "User",
        "metadata": {"name": email, "id": user_id or str(uuid.uuid4())},
        "spec": {"first_name": first_name, "last_name": last_name},
    }


class FakeParalusClient:
    """Dict-backed implementation of the ParalusClient methods.

    Every call is recorded in ``calls`` as (method, args). Setting
    ``fail[method]`` makes that method raise the given exception.
    """

    def __init__(self) -> None:
        self.config = ParalusConfig(
            profile="test",
            rest_endpoint="console.paralus.local",
            ops_endpoint="console.paralus.local",
            api_key="key",
            api_secret="secret",
            partner="finman",
            organization="finmanorg",
        )
        self.projects: dict[str, dict[str, Any]] = {}
        self.groups: dict[str, dict[str, Any]] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.clusters: dict[tuple[str, str], dict[str, Any]] = {}
        self.bootstrap_files: dict[tuple[str, str], str] = {}
        self.kubeconfigs: dict[str, str] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail: dict[str, Exception] = {}

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if method in self.fail:
            raise self.fail[method]

    def called(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    @staticmethod
    def _get(store: dict[Any, dict[str, Any]], key: Any) -> dict[str, Any]:
        if key not in store:
            raise ResourceNotFoundError(f"sql: no rows in result set ({key})")
        return copy.deepcopy(store[key])

    @staticmethod
    def _stored(obj: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(obj)
        stored.setdefault("metadata", {}).setdefault("id", str(uuid.uuid4()))
        return stored

    # Seeding helpers

    def add_project(self, name: str, **spec: Any) -> None:
        self.projects[name] = {
            "kind": "Project",
            "metadata": {"name": name, "id": str(uuid.uuid4())},
            "spec": spec,
        }

    def add_group(self, name: str) -> None:
        self.groups[name] = {
            "kind": "Group",
            "metadata": {"name": name, "id": str(uuid.uuid4())},
            "spec": {"type": "SYSTEM"},
        }

    def add_user(self, email: str, first_name: str = "", last_name: str = "") -> dict[str, Any]:
        self.users[email] = make_user(email, first_name, last_name)
        return self.users[email]

    def add_cluster(self, project: str, name: str, cluster_type: str = "imported") -> None:
        self.clusters[(project, name)] = {
            "kind": "Cluster",
            "metadata": {"name": name, "project": project, "id": str(uuid.uuid4())},
            "spec": {"cluster_type": cluster_type},
        }

    # Projects

    def get_project(self, name: str) -> dict[str, Any]:
        self._record("get_project", name)
        return self._get(self.projects, name)

    def create_project(self, project: dict[str, Any]) -> dict[str, Any]:
        self._record("create_project", project)
        stored = self._stored(project)
        self.projects[project["metadata"]["name"]] = stored
        return copy.deepcopy(stored)

    def update_project(self, project: dict[str, Any]) -> dict[str, Any]:
        self._record("update_project", project)
        self.projects[project["metadata"]["name"]] = copy.deepcopy(project)
        return copy.deepcopy(project)

    def delete_project(self, name: str) -> None:
        self._record("delete_project", name)
        self.projects.pop(name, None)

    # Groups

    def get_group(self, name: str) -> dict[str, Any]:
        self._record("get_group", name)
        return self._get(self.groups, name)

    def create_group(self, group: dict[str, Any]) -> dict[str, Any]:
        self._record("create_group", group)
        stored = self._stored(group)
        self.groups[group["metadata"]["name"]] = stored
        return copy.deepcopy(stored)

    def update_group(self, group: dict[str, Any]) -> dict[str, Any]:
        self._record("update_group", group)
        self.groups[group["metadata"]["name"]] = copy.deepcopy(group)
        return copy.deepcopy(group)

    def delete_group(self, name: str) -> None:
        self._record("delete_group", name)
        self.groups.pop(name, None)

    # Users

    def get_user(self, name: str) -> dict[str, Any]:
        self._record("get_user", name)
        return self._get(self.users, name)

    def list_users(self, params: list[str]) -> list[dict[str, Any]]:
        self._record("list_users", list(params))
        return [copy.deepcopy(u) for u in self.users.values()]

    # Clusters

    def get_cluster(self, project: str, name: str) -> dict[str, Any]:
        self._record("get_cluster", project, name)
        return self._get(self.clusters, (project, name))

    def create_cluster(self, cluster: dict[str, Any]) -> dict[str, Any]:
        self._record("create_cluster", cluster)
        metadata = cluster["metadata"]
        stored = self._stored(cluster)
        self.clusters[(metadata["project"], metadata["name"])] = stored
        return copy.deepcopy(stored)

    def update_cluster(self, cluster: dict[str, Any]) -> dict[str, Any]:
        self._record("update_cluster", cluster)
        metadata = cluster["metadata"]
        self.clusters[(metadata["project"], metadata["name"])] = copy.deepcopy(cluster)
        return copy.deepcopy(cluster)

    def delete_cluster(self, project: str, name: str) -> None:
        self._record("delete_cluster", project, name)
        self.clusters.pop((project, name), None)

    def list_clusters(self, project: str) -> list[dict[str, Any]]:
        self._record("list_clusters", project)
        return [copy.deepcopy(c) for (p, _), c in self.clusters.items() if p == project]

    def get_bootstrap_file(self, project: str, name: str) -> str:
        self._record("get_bootstrap_file", project, name)
        if (project, name) not in self.bootstrap_files:
            raise ResourceNotFoundError(f"no bootstrap file for {project}/{name}")
        return self.bootstrap_files[(project, name)]

    # Kubeconfig

    def get_kubeconfig(
        self, account_id: str, namespace: str | None = None, cluster: str | None = None
    ) -> str:
        self._record("get_kubeconfig", account_id, namespace, cluster)
        if account_id not in self.kubeconfigs:
            raise ResourceNotFoundError(f"no kubeconfig for account {account_id}")
        return self.kubeconfigs[account_id]


@pytest.fixture
def client() -> FakeParalusClient:
    return FakeParalusClient()
