"""Domain models for the Paralus operator.

This module defines the flat declared records for every resource kind and
their mapping to and from the nested objects the Paralus API speaks.

Three shapes meet here:
- CR spec dicts (camelCase, written by users in Kubernetes)
- Declared records (typed dataclasses, optional fields are None when absent)
- Domain objects (nested snake_case dicts sent to / received from Paralus)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, NotRequired, TypedDict, TypeVar


# =============================================================================
# Enums for constrained values
# =============================================================================


class Phase(Enum):
    """Resource lifecycle phase."""

    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    ERROR = "Error"
    DELETING = "Deleting"


class ConditionStatus(Enum):
    """Kubernetes condition status."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class MatchField(Enum):
    """User fields the post-fetch filter can match on."""

    EMAIL = "email"
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"


# =============================================================================
# TypedDicts for CRD spec (external data from Kubernetes)
# =============================================================================


class ClusterParamsSpec(TypedDict, total=False):
    """Cluster provisioning parameters from CRD."""

    provisionType: str
    provisionEnvironment: str
    provisionPackageType: str
    environmentProvider: str
    kubernetesProvider: str
    state: str


class ParalusClusterSpec(TypedDict):
    """Full ParalusCluster CRD spec."""

    name: str
    project: str
    clusterType: str
    params: NotRequired[ClusterParamsSpec | list[ClusterParamsSpec]]
    labels: NotRequired[dict[str, str]]
    annotations: NotRequired[dict[str, str]]
    importId: NotRequired[str]


class ProjectRoleSpec(TypedDict, total=False):
    """Project/namespace role binding from CRD."""

    project: str
    role: str
    namespace: str
    group: str


class UserRoleSpec(TypedDict):
    """User role binding from CRD."""

    user: str
    role: str
    namespace: NotRequired[str]


class ParalusGroupSpec(TypedDict):
    """Full ParalusGroup CRD spec."""

    name: str
    description: NotRequired[str]
    projectRoles: NotRequired[list[ProjectRoleSpec]]
    users: NotRequired[list[str]]
    type: NotRequired[str]
    importId: NotRequired[str]


class ParalusProjectSpec(TypedDict):
    """Full ParalusProject CRD spec."""

    name: str
    description: NotRequired[str]
    projectRoles: NotRequired[list[ProjectRoleSpec]]
    userRoles: NotRequired[list[UserRoleSpec]]
    importId: NotRequired[str]


class UserFilterSpec(TypedDict, total=False):
    """Users query filter block from CRD."""

    project: str
    role: str
    group: str
    email: str
    firstName: str
    lastName: str
    caseSensitive: bool
    allowMoreThanOne: bool


class ParalusUserQuerySpec(TypedDict, total=False):
    """Full ParalusUserQuery CRD spec."""

    limit: int
    offset: int
    filters: UserFilterSpec


class ParalusKubeconfigSpec(TypedDict):
    """Full ParalusKubeconfig CRD spec."""

    name: str
    namespace: NotRequired[str]
    cluster: NotRequired[str]
    secretName: NotRequired[str]


# =============================================================================
# Helpers
# =============================================================================


def _none_if_empty(value: Any) -> Any:
    """Treat an empty value returned by the API as an absent one."""
    return value if value else None


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    """Remove absent keys so they are not sent to the API."""
    return {k: v for k, v in data.items() if v is not None}


def _copy_map(data: dict[str, str] | None) -> dict[str, str] | None:
    return dict(data) if data is not None else None


# =============================================================================
# Dataclasses for declared records
# =============================================================================


@dataclass(frozen=True)
class ProjectRole:
    """A role granted on a project, optionally scoped to a namespace."""

    role: str
    project: str | None = None
    namespace: str | None = None
    group: str | None = None

    def to_domain(self) -> dict[str, str]:
        """Convert to a Paralus ProjectNamespaceRole."""
        return _drop_none(
            {
                "project": self.project,
                "role": self.role,
                "namespace": self.namespace,
                "group": self.group,
            }
        )

    @classmethod
    def from_domain(cls, data: dict[str, Any]) -> "ProjectRole":
        """Create from a Paralus ProjectNamespaceRole."""
        return cls(
            role=data.get("role", ""),
            project=_none_if_empty(data.get("project")),
            namespace=_none_if_empty(data.get("namespace")),
            group=_none_if_empty(data.get("group")),
        )

    @classmethod
    def from_spec(cls, data: dict[str, Any]) -> "ProjectRole":
        """Create from a CRD projectRoles entry."""
        return cls(
            role=data.get("role", ""),
            project=data.get("project"),
            namespace=data.get("namespace"),
            group=data.get("group"),
        )

    def to_status(self) -> dict[str, str]:
        """Convert to dict for Kubernetes status."""
        return _drop_none(
            {
                "project": self.project,
                "role": self.role,
                "namespace": self.namespace,
                "group": self.group,
            }
        )


@dataclass(frozen=True)
class UserRole:
    """A role granted directly to a user inside a project."""

    user: str
    role: str
    namespace: str | None = None

    def to_domain(self) -> dict[str, str]:
        """Convert to a Paralus UserRole."""
        return _drop_none(
            {"user": self.user, "role": self.role, "namespace": self.namespace}
        )

    @classmethod
    def from_domain(cls, data: dict[str, Any]) -> "UserRole":
        """Create from a Paralus UserRole."""
        return cls(
            user=data.get("user", ""),
            role=data.get("role", ""),
            namespace=_none_if_empty(data.get("namespace")),
        )

    @classmethod
    def from_spec(cls, data: dict[str, Any]) -> "UserRole":
        """Create from a CRD userRoles entry."""
        return cls(
            user=data.get("user", ""),
            role=data.get("role", ""),
            namespace=data.get("namespace"),
        )

    def to_status(self) -> dict[str, str]:
        """Convert to dict for Kubernetes status."""
        return self.to_domain()


_PARAMS_FIELDS = {
    "provision_type": "provisionType",
    "provision_environment": "provisionEnvironment",
    "provision_package_type": "provisionPackageType",
    "environment_provider": "environmentProvider",
    "kubernetes_provider": "kubernetesProvider",
    "state": "state",
}


@dataclass(frozen=True)
class ClusterParams:
    """Provisioning parameters of a cluster. Immutable after create."""

    provision_type: str | None = None
    provision_environment: str | None = None
    provision_package_type: str | None = None
    environment_provider: str | None = None
    kubernetes_provider: str | None = None
    state: str | None = None

    def to_domain(self) -> dict[str, str]:
        """Convert to Paralus ProvisionParams."""
        return _drop_none({name: getattr(self, name) for name in _PARAMS_FIELDS})

    @classmethod
    def from_domain(cls, data: dict[str, Any]) -> "ClusterParams":
        """Create from Paralus ProvisionParams."""
        return cls(**{name: _none_if_empty(data.get(name)) for name in _PARAMS_FIELDS})

    @classmethod
    def from_spec(
        cls, data: ClusterParamsSpec | list[ClusterParamsSpec] | None
    ) -> "ClusterParams | None":
        """Create from the CRD params block.

        The API models params as a singleton; a list is accepted for
        convenience but must not hold more than one element.
        """
        if data is None:
            return None
        if isinstance(data, list):
            if not data:
                return None
            if len(data) > 1:
                raise ValidationError(
                    f"params accepts a single entry, got {len(data)}"
                )
            data = data[0]
        return cls(
            **{name: data.get(spec_key) for name, spec_key in _PARAMS_FIELDS.items()}  # type: ignore[misc]
        )

    def to_status(self) -> dict[str, str]:
        """Convert to dict for Kubernetes status."""
        return _drop_none(
            {spec_key: getattr(self, name) for name, spec_key in _PARAMS_FIELDS.items()}
        )


@dataclass(frozen=True)
class BootstrapFileRecord:
    """Agent bootstrap artifacts downloaded for an imported cluster."""

    name: str
    project: str
    combined: str
    files: list[str] = field(default_factory=list)
    relays: str | None = None
    uuid: str | None = None

    @property
    def id(self) -> str:
        return f"{self.project}:{self.name}"

    def to_configmap_data(self) -> dict[str, str]:
        """Render the artifacts as ConfigMap data."""
        data = {"bootstrap.yaml": self.combined}
        for index, doc in enumerate(self.files):
            data[f"bootstrap-{index:02d}.yaml"] = doc
        if self.relays:
            data["relays"] = self.relays
        return data


@dataclass
class ClusterRecord:
    """Declared state of a Paralus cluster."""

    name: str
    project: str
    cluster_type: str
    description: str | None = None
    uuid: str | None = None
    params: ClusterParams | None = None
    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None
    id: str | None = None
    bootstrap: BootstrapFileRecord | None = None

    def to_domain(self) -> dict[str, Any]:
        """Build the Paralus Cluster object."""
        spec: dict[str, Any] = {"cluster_type": self.cluster_type}
        if self.params is not None:
            spec["params"] = self.params.to_domain()
        return {
            "kind": "Cluster",
            "metadata": _drop_none(
                {
                    "name": self.name,
                    "description": self.description,
                    "project": self.project,
                    "id": self.uuid,
                    "labels": _copy_map(self.labels),
                    "annotations": _copy_map(self.annotations),
                }
            ),
            "spec": spec,
        }

    @classmethod
    def from_domain(cls, data: dict[str, Any]) -> "ClusterRecord":
        """Create from a Paralus Cluster object."""
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        params = spec.get("params")
        return cls(
            name=metadata.get("name", ""),
            project=metadata.get("project", ""),
            cluster_type=spec.get("cluster_type", ""),
            description=_none_if_empty(metadata.get("description")),
            uuid=_none_if_empty(metadata.get("id")),
            params=ClusterParams.from_domain(params) if params else None,
            labels=_copy_map(metadata.get("labels")),
            annotations=_copy_map(metadata.get("annotations")),
        )

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> "ClusterRecord":
        """Create from a ParalusCluster CRD spec."""
        return cls(
            name=spec.get("name", ""),
            project=spec.get("project", ""),
            cluster_type=spec.get("clusterType", ""),
            params=ClusterParams.from_spec(spec.get("params")),
            labels=_copy_map(spec.get("labels")),
            annotations=_copy_map(spec.get("annotations")),
        )

    def to_status(self) -> dict[str, object]:
        """Convert to dict for Kubernetes status."""
        result: dict[str, object] = {"clusterId": self.id}
        if self.uuid:
            result["uuid"] = self.uuid
        if self.description:
            result["description"] = self.description
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.annotations:
            result["annotations"] = dict(self.annotations)
        if self.bootstrap and self.bootstrap.relays:
            result["relays"] = self.bootstrap.relays
        return result


@dataclass
class GroupRecord:
    """Declared state of a Paralus access group."""

    name: str
    description: str | None = None
    project_roles: list[ProjectRole] | None = None
    users: list[str] | None = None
    type: str | None = None
    id: str | None = None

    def to_domain(self) -> dict[str, Any]:
        """Build the Paralus Group object.

        Every project role is bound to this group, whatever the caller put
        in its group field.
        """
        spec: dict[str, Any] = {}
        if self.project_roles is not None:
            spec["project_namespace_roles"] = [
                ProjectRole(
                    role=role.role,
                    project=role.project,
                    namespace=role.namespace,
                    group=self.name,
                ).to_domain()
                for role in self.project_roles
            ]
        if self.users is not None:
            spec["users"] = list(self.users)
        if self.type is not None:
            spec["type"] = self.type
        return {
            "kind": "Group",
            "metadata": _drop_none(
                {"name": self.name, "description": self.description}
            ),
            "spec": spec,
        }

    @classmethod
    def from_domain(cls, data: dict[str, Any]) -> "GroupRecord":
        """Create from a Paralus Group object."""
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        roles = spec.get("project_namespace_roles")
        users = spec.get("users")
        return cls(
            name=metadata.get("name", ""),
            description=_none_if_empty(metadata.get("description")),
            project_roles=(
                [ProjectRole.from_domain(r) for r in roles] if roles is not None else None
            ),
            users=list(users) if users is not None else None,
            type=_none_if_empty(spec.get("type")),
        )

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> "GroupRecord":
        """Create from a ParalusGroup CRD spec."""
        roles = spec.get("projectRoles")
        users = spec.get("users")
        return cls(
            name=spec.get("name", ""),
            description=spec.get("description"),
            project_roles=(
                [ProjectRole.from_spec(r) for r in roles] if roles is not None else None
            ),
            users=list(users) if users is not None else None,
            type=spec.get("type", "SYSTEM"),
        )

    def to_status(self) -> dict[str, object]:
        """Convert to dict for Kubernetes status."""
        result: dict[str, object] = {"groupId": self.id}
        if self.type:
            result["type"] = self.type
        if self.project_roles:
            result["projectRoles"] = [r.to_status() for r in self.project_roles]
        if self.users:
            result["users"] = list(self.users)
        return result


@dataclass
class ProjectRecord:
    """Declared state of a Paralus project."""

    name: str
    description: str | None = None
    uuid: str | None = None
    project_roles: list[ProjectRole] | None = None
    user_roles: list[UserRole] | None = None
    id: str | None = None

    def to_domain(self) -> dict[str, Any]:
        """Build the Paralus Project object.

        Every project role is scoped to this project, whatever the caller
        put in its project field.
        """
        spec: dict[str, Any] = {}
        if self.project_roles is not None:
            spec["project_namespace_roles"] = [
                ProjectRole(
                    role=role.role,
                    project=self.name,
                    namespace=role.namespace,
                    group=role.group,
                ).to_domain()
                for role in self.project_roles
            ]
        if self.user_roles is not None:
            spec["user_roles"] = [role.to_domain() for role in self.user_roles]
        return {
            "kind": "Project",
            "metadata": _drop_none(
                {"name": self.name, "description": self.description, "id": self.uuid}
            ),
            "spec": spec,
        }

    @classmethod
    def from_domain(cls, data: dict[str, Any]) -> "ProjectRecord":
        """Create from a Paralus Project object."""
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        roles = spec.get("project_namespace_roles")
        user_roles = spec.get("user_roles")
        return cls(
            name=metadata.get("name", ""),
            description=_none_if_empty(metadata.get("description")),
            uuid=_none_if_empty(metadata.get("id")),
            project_roles=(
                [ProjectRole.from_domain(r) for r in roles] if roles is not None else None
            ),
            user_roles=(
                [UserRole.from_domain(r) for r in user_roles]
                if user_roles is not None
                else None
            ),
        )

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> "ProjectRecord":
        """Create from a ParalusProject CRD spec."""
        roles = spec.get("projectRoles")
        user_roles = spec.get("userRoles")
        return cls(
            name=spec.get("name", ""),
            description=spec.get("description"),
            project_roles=(
                [ProjectRole.from_spec(r) for r in roles] if roles is not None else None
            ),
            user_roles=(
                [UserRole.from_spec(r) for r in user_roles]
                if user_roles is not None
                else None
            ),
        )

    def to_status(self) -> dict[str, object]:
        """Convert to dict for Kubernetes status."""
        result: dict[str, object] = {"projectId": self.id}
        if self.uuid:
            result["uuid"] = self.uuid
        if self.project_roles:
            result["projectRoles"] = [r.to_status() for r in self.project_roles]
        if self.user_roles:
            result["userRoles"] = [r.to_status() for r in self.user_roles]
        return result


@dataclass(frozen=True)
class UserInfo:
    """A Paralus user as returned by the users query."""

    email: str
    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    groups: list[str] = field(default_factory=list)
    project_roles: list[ProjectRole] = field(default_factory=list)

    def to_domain(self) -> dict[str, Any]:
        """Build the Paralus User object."""
        spec: dict[str, Any] = _drop_none(
            {"first_name": self.first_name, "last_name": self.last_name}
        )
        if self.groups:
            spec["groups"] = list(self.groups)
        if self.project_roles:
            spec["project_namespace_roles"] = [r.to_domain() for r in self.project_roles]
        return {
            "kind": "User",
            "metadata": _drop_none({"name": self.email, "id": self.id}),
            "spec": spec,
        }

    @classmethod
    def from_domain(cls, data: dict[str, Any]) -> "UserInfo":
        """Create from a Paralus User object."""
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        return cls(
            email=metadata.get("name", ""),
            id=_none_if_empty(metadata.get("id")),
            first_name=_none_if_empty(spec.get("first_name")),
            last_name=_none_if_empty(spec.get("last_name")),
            groups=list(spec.get("groups") or []),
            project_roles=[
                ProjectRole.from_domain(r)
                for r in spec.get("project_namespace_roles") or []
            ],
        )

    def to_status(self) -> dict[str, object]:
        """Convert to dict for Kubernetes status."""
        result: dict[str, object] = _drop_none(
            {
                "email": self.email,
                "id": self.id,
                "firstName": self.first_name,
                "lastName": self.last_name,
            }
        )
        result["groups"] = list(self.groups)
        result["projectRoles"] = [r.to_status() for r in self.project_roles]
        return result


@dataclass(frozen=True)
class UserFilter:
    """Match criteria for the users query."""

    project: str | None = None
    role: str | None = None
    group: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    case_sensitive: bool = False
    allow_more_than_one: bool = False

    @classmethod
    def from_spec(cls, data: UserFilterSpec | None) -> "UserFilter | None":
        """Create from a CRD filters block."""
        if data is None:
            return None
        return cls(
            project=data.get("project"),
            role=data.get("role"),
            group=data.get("group"),
            email=data.get("email"),
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            case_sensitive=bool(data.get("caseSensitive", False)),
            allow_more_than_one=bool(data.get("allowMoreThanOne", False)),
        )


@dataclass(frozen=True)
class ClusterInfo:
    """Server endpoint of one cluster entry in a kubeconfig."""

    server: str
    certificate_authority_data: str | None = None

    def to_status(self) -> dict[str, str]:
        """Convert to dict for Kubernetes status."""
        return _drop_none(
            {
                "server": self.server,
                "certificateAuthorityData": self.certificate_authority_data,
            }
        )


@dataclass
class KubeconfigRecord:
    """A user's kubeconfig as issued by Paralus."""

    name: str
    namespace: str | None = None
    cluster: str | None = None
    cluster_info: list[ClusterInfo] = field(default_factory=list)
    client_certificate_data: str | None = None
    client_key_data: str | None = None
    raw: str = ""

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> "KubeconfigRecord":
        """Create from a ParalusKubeconfig CRD spec."""
        return cls(
            name=spec.get("name", ""),
            namespace=spec.get("namespace"),
            cluster=spec.get("cluster"),
        )

    def to_status(self) -> dict[str, object]:
        """Convert to dict for Kubernetes status (no key material)."""
        return {"clusters": [c.to_status() for c in self.cluster_info]}


T = TypeVar("T")


@dataclass
class ReconcileResult(Generic[T]):
    """Outcome of one lifecycle call.

    Warnings describe best-effort steps that failed after the primary
    resource was already in place.
    """

    record: T
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class ValidationError(OperatorError):
    """Declared input is malformed. Detected before any remote call."""

    pass


class ConfigurationError(OperatorError):
    """Invalid or missing configuration."""

    pass


class DependencyMissingError(OperatorError):
    """A referenced entity does not exist in Paralus."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} '{name}' does not exist")


class ResourceNotFoundError(OperatorError):
    """A Paralus resource was not found."""

    pass


class AlreadyExistsError(OperatorError):
    """A resource to be created already exists in Paralus."""

    pass


class ProjectNotEmptyError(OperatorError):
    """A project still holds clusters and cannot be deleted."""

    pass


class NoMatchError(OperatorError):
    """No user matched the requested filter."""

    pass


class AmbiguousMatchError(OperatorError):
    """More than one user matched a filter that expects exactly one."""

    pass


class ParalusAPIError(OperatorError):
    """Error communicating with the Paralus API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class InvalidCredentialsError(ParalusAPIError):
    """The API key or secret was rejected."""

    pass


class OperationNotAllowedError(ParalusAPIError):
    """The route is not allowed or the credentials lack privileges."""

    pass
