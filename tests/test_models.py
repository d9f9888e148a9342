"""Tests for data models."""

import pytest

from models import (
    BootstrapFileRecord,
    ClusterParams,
    ClusterRecord,
    DependencyMissingError,
    GroupRecord,
    KubeconfigRecord,
    ClusterInfo,
    ProjectRecord,
    ProjectRole,
    UserFilter,
    UserInfo,
    UserRole,
    ValidationError,
)


class TestProjectRole:
    """Tests for ProjectRole dataclass."""

    def test_to_domain_drops_absent_fields(self):
        role = ProjectRole(role="PROJECT_ADMIN", project="default")

        assert role.to_domain() == {"project": "default", "role": "PROJECT_ADMIN"}

    def test_from_domain_empty_strings_are_absent(self):
        role = ProjectRole.from_domain(
            {"role": "ADMIN", "project": "", "namespace": "", "group": "admins"}
        )

        assert role == ProjectRole(role="ADMIN", group="admins")

    def test_from_spec(self):
        role = ProjectRole.from_spec(
            {"role": "NAMESPACE_ADMIN", "project": "p1", "namespace": "ns1"}
        )

        assert role.project == "p1"
        assert role.namespace == "ns1"
        assert role.group is None


class TestUserRole:
    """Tests for UserRole dataclass."""

    def test_round_trip(self):
        role = UserRole(user="a@example.com", role="PROJECT_READ_ONLY", namespace="ns")

        assert UserRole.from_domain(role.to_domain()) == role

    def test_to_status_omits_namespace(self):
        role = UserRole(user="a@example.com", role="PROJECT_ADMIN")

        assert role.to_status() == {"user": "a@example.com", "role": "PROJECT_ADMIN"}


class TestClusterParams:
    """Tests for ClusterParams dataclass."""

    def test_from_spec_mapping(self):
        params = ClusterParams.from_spec(
            {"provisionType": "IMPORT", "kubernetesProvider": "EKS"}
        )

        assert params == ClusterParams(provision_type="IMPORT", kubernetes_provider="EKS")

    def test_from_spec_single_element_list(self):
        params = ClusterParams.from_spec([{"provisionType": "IMPORT"}])

        assert params == ClusterParams(provision_type="IMPORT")

    def test_from_spec_rejects_more_than_one_element(self):
        with pytest.raises(ValidationError):
            ClusterParams.from_spec([{"provisionType": "IMPORT"}, {"state": "CONFIG"}])

    def test_from_spec_empty_list_is_absent(self):
        assert ClusterParams.from_spec([]) is None
        assert ClusterParams.from_spec(None) is None

    def test_to_domain_uses_api_keys(self):
        params = ClusterParams(provision_type="IMPORT", environment_provider="AWS")

        assert params.to_domain() == {
            "provision_type": "IMPORT",
            "environment_provider": "AWS",
        }

    def test_to_status_uses_camel_case(self):
        params = ClusterParams(provision_package_type="LINUX")

        assert params.to_status() == {"provisionPackageType": "LINUX"}


class TestClusterRecord:
    """Tests for ClusterRecord dataclass."""

    def _record(self) -> ClusterRecord:
        return ClusterRecord(
            name="test",
            project="default",
            cluster_type="imported",
            description="test cluster",
            uuid="1234",
            params=ClusterParams(provision_type="IMPORT", state="CONFIG"),
            labels={"env": "dev"},
            annotations={"owner": "team-a"},
        )

    def test_to_domain(self):
        obj = self._record().to_domain()

        assert obj["kind"] == "Cluster"
        assert obj["metadata"] == {
            "name": "test",
            "description": "test cluster",
            "project": "default",
            "id": "1234",
            "labels": {"env": "dev"},
            "annotations": {"owner": "team-a"},
        }
        assert obj["spec"] == {
            "cluster_type": "imported",
            "params": {"provision_type": "IMPORT", "state": "CONFIG"},
        }

    def test_to_domain_minimal(self):
        obj = ClusterRecord(name="c", project="p", cluster_type="imported").to_domain()

        assert obj["metadata"] == {"name": "c", "project": "p"}
        assert obj["spec"] == {"cluster_type": "imported"}

    def test_round_trip(self):
        record = self._record()

        assert ClusterRecord.from_domain(record.to_domain()) == record

    def test_from_domain_is_idempotent(self):
        obj = self._record().to_domain()

        first = ClusterRecord.from_domain(obj)
        second = ClusterRecord.from_domain(first.to_domain())

        assert first == second

    def test_to_domain_copies_labels(self):
        record = self._record()
        obj = record.to_domain()
        obj["metadata"]["labels"]["env"] = "prod"

        assert record.labels == {"env": "dev"}

    def test_from_spec(self):
        record = ClusterRecord.from_spec(
            {
                "name": "test",
                "project": "default",
                "clusterType": "imported",
                "params": [{"provisionType": "IMPORT"}],
                "labels": {"a": "b"},
            }
        )

        assert record.cluster_type == "imported"
        assert record.params == ClusterParams(provision_type="IMPORT")
        assert record.annotations is None

    def test_to_status(self):
        record = self._record()
        record.id = "default:test"
        record.bootstrap = BootstrapFileRecord(
            name="test", project="default", combined="x", relays="[]"
        )

        status = record.to_status()

        assert status["clusterId"] == "default:test"
        assert status["uuid"] == "1234"
        assert status["relays"] == "[]"


class TestGroupRecord:
    """Tests for GroupRecord dataclass."""

    def test_to_domain_binds_roles_to_group(self):
        record = GroupRecord(
            name="devs",
            project_roles=[ProjectRole(role="PROJECT_ADMIN", project="p1", group="other")],
            users=["a@example.com"],
            type="SYSTEM",
        )

        obj = record.to_domain()

        assert obj["spec"]["project_namespace_roles"] == [
            {"project": "p1", "role": "PROJECT_ADMIN", "group": "devs"}
        ]
        assert obj["spec"]["users"] == ["a@example.com"]
        assert obj["spec"]["type"] == "SYSTEM"

    def test_from_spec_defaults_type(self):
        record = GroupRecord.from_spec({"name": "devs"})

        assert record.type == "SYSTEM"
        assert record.project_roles is None
        assert record.users is None

    def test_round_trip(self):
        record = GroupRecord(
            name="devs",
            description="developers",
            project_roles=[
                ProjectRole(role="NAMESPACE_ADMIN", project="p1", namespace="ns", group="devs")
            ],
            users=["a@example.com", "b@example.com"],
            type="SYSTEM",
        )

        assert GroupRecord.from_domain(record.to_domain()) == record


class TestProjectRecord:
    """Tests for ProjectRecord dataclass."""

    def test_to_domain_scopes_roles_to_project(self):
        record = ProjectRecord(
            name="p1",
            project_roles=[ProjectRole(role="PROJECT_ADMIN", project="elsewhere", group="devs")],
            user_roles=[UserRole(user="a@example.com", role="PROJECT_READ_ONLY")],
        )

        obj = record.to_domain()

        assert obj["spec"]["project_namespace_roles"] == [
            {"project": "p1", "role": "PROJECT_ADMIN", "group": "devs"}
        ]
        assert obj["spec"]["user_roles"] == [
            {"user": "a@example.com", "role": "PROJECT_READ_ONLY"}
        ]

    def test_round_trip_preserves_order(self):
        record = ProjectRecord(
            name="p1",
            description="first",
            uuid="abc",
            project_roles=[
                ProjectRole(role="PROJECT_ADMIN", project="p1", group="b"),
                ProjectRole(role="PROJECT_READ_ONLY", project="p1", group="a"),
            ],
            user_roles=[
                UserRole(user="z@example.com", role="PROJECT_ADMIN"),
                UserRole(user="a@example.com", role="NAMESPACE_READ_ONLY", namespace="ns"),
            ],
        )

        assert ProjectRecord.from_domain(record.to_domain()) == record

    def test_to_status(self):
        record = ProjectRecord(name="p1", uuid="abc", id="p1")

        assert record.to_status() == {"projectId": "p1", "uuid": "abc"}


class TestUserInfo:
    """Tests for UserInfo dataclass."""

    def test_from_domain(self):
        user = UserInfo.from_domain(
            {
                "metadata": {"name": "a@example.com", "id": "u1"},
                "spec": {
                    "first_name": "Ann",
                    "last_name": "",
                    "groups": ["devs"],
                    "project_namespace_roles": [{"role": "ADMIN", "project": ""}],
                },
            }
        )

        assert user.email == "a@example.com"
        assert user.first_name == "Ann"
        assert user.last_name is None
        assert user.groups == ["devs"]
        assert user.project_roles == [ProjectRole(role="ADMIN")]

    def test_round_trip(self):
        user = UserInfo(
            email="a@example.com",
            id="u1",
            first_name="Ann",
            last_name="Lee",
            groups=["devs"],
            project_roles=[ProjectRole(role="PROJECT_ADMIN", project="p1")],
        )

        assert UserInfo.from_domain(user.to_domain()) == user

    def test_to_status(self):
        status = UserInfo(email="a@example.com", first_name="Ann").to_status()

        assert status == {
            "email": "a@example.com",
            "firstName": "Ann",
            "groups": [],
            "projectRoles": [],
        }


class TestUserFilter:
    """Tests for UserFilter dataclass."""

    def test_from_spec(self):
        user_filter = UserFilter.from_spec(
            {"firstName": "Ann", "caseSensitive": True, "allowMoreThanOne": True}
        )

        assert user_filter.first_name == "Ann"
        assert user_filter.case_sensitive is True
        assert user_filter.allow_more_than_one is True

    def test_from_spec_none(self):
        assert UserFilter.from_spec(None) is None


class TestBootstrapFileRecord:
    """Tests for BootstrapFileRecord dataclass."""

    def test_id(self):
        record = BootstrapFileRecord(name="c1", project="p1", combined="")

        assert record.id == "p1:c1"

    def test_to_configmap_data(self):
        record = BootstrapFileRecord(
            name="c1",
            project="p1",
            combined="a: 1\n---\nb: 2",
            files=["a: 1", "b: 2"],
            relays="[]",
        )

        assert record.to_configmap_data() == {
            "bootstrap.yaml": "a: 1\n---\nb: 2",
            "bootstrap-00.yaml": "a: 1",
            "bootstrap-01.yaml": "b: 2",
            "relays": "[]",
        }


class TestKubeconfigRecord:
    """Tests for KubeconfigRecord dataclass."""

    def test_to_status_has_no_key_material(self):
        record = KubeconfigRecord(
            name="a@example.com",
            cluster_info=[ClusterInfo(server="https://c1:443", certificate_authority_data="Q0E=")],
            client_certificate_data="cert",
            client_key_data="key",
        )

        assert record.to_status() == {
            "clusters": [
                {"server": "https://c1:443", "certificateAuthorityData": "Q0E="}
            ]
        }


class TestExceptions:
    """Tests for exception messages."""

    def test_dependency_missing_names_kind_and_name(self):
        error = DependencyMissingError("user", "ghost@example.com")

        assert error.kind == "user"
        assert error.name == "ghost@example.com"
        assert str(error) == "user 'ghost@example.com' does not exist"
