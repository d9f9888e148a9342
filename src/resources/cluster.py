"""Cluster resource management."""

import copy
import logging
from dataclasses import replace
from typing import Any

import yaml

from models import (
    AlreadyExistsError,
    ClusterRecord,
    ParalusAPIError,
    ReconcileResult,
    ResourceNotFoundError,
)
from paralus_client import ParalusClient
from resources.bootstrap import fetch_bootstrap
from resources.dependencies import check_project_exists
from utils import (
    api_error,
    api_errors,
    make_cluster_id,
    remote_exists,
    require_not_empty,
    split_cluster_id,
)

logger = logging.getLogger(__name__)


def _identity(record: ClusterRecord) -> tuple[str, str]:
    project = require_not_empty("cluster project", record.project)
    name = require_not_empty("cluster name", record.name)
    return project, name


def _lookup_context(project: str, name: str) -> str:
    return f"failed to retrieve cluster {name} in project {project}"


def _read_back(client: ParalusClient, project: str, name: str) -> ClusterRecord:
    with api_errors(f"error retrieving info for cluster {name} in project {project}"):
        obj = client.get_cluster(project, name)
    return ClusterRecord.from_domain(obj)


def _attach_bootstrap(
    client: ParalusClient, record: ClusterRecord, warnings: list[str]
) -> None:
    """Fetch bootstrap artifacts, recording a warning instead of failing."""
    try:
        record.bootstrap = fetch_bootstrap(client, record.project, record.name, record.uuid)
    except (ParalusAPIError, ResourceNotFoundError, yaml.YAMLError) as e:
        logger.warning(f"Failed to retrieve bootstrap file for cluster {record.name}: {e}")
        warnings.append(
            f"failed to retrieve bootstrap file for cluster {record.name} "
            f"in project {record.project}: {e}"
        )
        return
    if not record.bootstrap.relays:
        warnings.append(
            f"no relays populated yet for cluster {record.name} in project {record.project}"
        )


def create_cluster(
    client: ParalusClient, record: ClusterRecord, with_bootstrap: bool = True
) -> ReconcileResult[ClusterRecord]:
    """Create a cluster and read it back.

    The bootstrap fetch runs after the cluster exists; its failure is
    reported as a warning and does not fail the create.

    Raises:
        ValidationError: missing name, project or cluster type
        DependencyMissingError: the project does not exist
        AlreadyExistsError: a cluster with this name exists in the project
        ParalusAPIError: remote failure
    """
    project, name = _identity(record)
    require_not_empty("cluster type", record.cluster_type)

    check_project_exists(project, client.get_project)
    obj = record.to_domain()

    if remote_exists(
        client.get_cluster, project, name, context=_lookup_context(project, name)
    ):
        raise AlreadyExistsError(f"cluster {name} already exists in project {project}")

    with api_errors(f"failed to create cluster {name} in project {project}"):
        client.create_cluster(obj)
    logger.info(f"Created cluster {name} in project {project}")

    created = _read_back(client, project, name)
    warnings: list[str] = []
    if with_bootstrap:
        _attach_bootstrap(client, created, warnings)

    created.id = make_cluster_id(project, name)
    return ReconcileResult(created, warnings)


def _update_payload(current: dict[str, Any], record: ClusterRecord) -> dict[str, Any]:
    """Build an update body from the remote object.

    Only labels and annotations come from the declared record; cluster
    type, params and identity keep their remote values.
    """
    payload = copy.deepcopy(current)
    metadata = payload.setdefault("metadata", {})
    if record.labels is not None:
        metadata["labels"] = dict(record.labels)
    if record.annotations is not None:
        metadata["annotations"] = dict(record.annotations)
    return payload


def _immutable_changes(current: ClusterRecord, record: ClusterRecord) -> list[str]:
    changed = []
    if record.cluster_type and record.cluster_type != current.cluster_type:
        changed.append("cluster_type")
    if record.params is not None and record.params != current.params:
        changed.append("params")
    return changed


def update_cluster(
    client: ParalusClient, record: ClusterRecord, with_bootstrap: bool = False
) -> ReconcileResult[ClusterRecord]:
    """Update the mutable fields of an existing cluster.

    With with_bootstrap the bootstrap file is fetched again, as after a
    create; otherwise the bootstrap already on the record is kept.

    Raises:
        ValidationError: missing name or project
        DependencyMissingError: the project does not exist
        ResourceNotFoundError: the cluster does not exist
        ParalusAPIError: remote failure
    """
    project, name = _identity(record)
    check_project_exists(project, client.get_project)

    try:
        current = client.get_cluster(project, name)
    except ResourceNotFoundError as e:
        raise ResourceNotFoundError(
            f"cluster {name} does not exist in project {project}, cannot update"
        ) from e
    except ParalusAPIError as e:
        raise api_error(_lookup_context(project, name), e) from e

    warnings: list[str] = []
    changed = _immutable_changes(ClusterRecord.from_domain(current), record)
    if changed:
        logger.warning(f"Ignoring change of immutable fields {changed} on cluster {name}")
        warnings.append(
            f"cluster {name} in project {project}: {', '.join(changed)} cannot be "
            "changed after create; delete and recreate the cluster instead"
        )

    with api_errors(f"failed to update cluster {name} in project {project}"):
        client.update_cluster(_update_payload(current, record))
    logger.info(f"Updated cluster {name} in project {project}")

    updated = _read_back(client, project, name)
    if with_bootstrap:
        _attach_bootstrap(client, updated, warnings)
    else:
        updated.bootstrap = record.bootstrap
    updated.id = make_cluster_id(project, name)
    return ReconcileResult(updated, warnings)


def read_cluster(
    client: ParalusClient, record: ClusterRecord
) -> ReconcileResult[ClusterRecord]:
    """Refresh a cluster from Paralus.

    A cluster deleted outside the operator comes back with id cleared.
    """
    project, name = _identity(record)
    try:
        obj = client.get_cluster(project, name)
    except ResourceNotFoundError:
        logger.info(f"Cluster {name} in project {project} not found")
        return ReconcileResult(replace(record, id=None))
    except ParalusAPIError as e:
        raise api_error(
            f"error retrieving info for cluster {name} in project {project}", e
        ) from e

    current = ClusterRecord.from_domain(obj)
    current.bootstrap = record.bootstrap
    current.id = make_cluster_id(project, name)
    return ReconcileResult(current)


def delete_cluster(
    client: ParalusClient, record: ClusterRecord
) -> ReconcileResult[ClusterRecord]:
    """Delete a cluster. A cluster already gone is not an error."""
    project, name = _identity(record)
    if not remote_exists(
        client.get_cluster, project, name, context=_lookup_context(project, name)
    ):
        logger.info(f"Cluster {name} in project {project} already deleted")
        return ReconcileResult(replace(record, id=None))

    with api_errors(f"failed to delete cluster {name} in project {project}"):
        client.delete_cluster(project, name)
    logger.info(f"Deleted cluster {name} in project {project}")
    return ReconcileResult(replace(record, id=None))


def import_cluster(
    client: ParalusClient, identity: str, with_bootstrap: bool = False
) -> ReconcileResult[ClusterRecord]:
    """Adopt an existing cluster given its PROJECT_NAME:CLUSTER_NAME identity.

    Raises:
        ValidationError: malformed identity
        ResourceNotFoundError: no such cluster
    """
    project, name = split_cluster_id(identity)
    try:
        obj = client.get_cluster(project, name)
    except ResourceNotFoundError as e:
        raise ResourceNotFoundError(
            f"cluster {name} does not exist in project {project}"
        ) from e
    except ParalusAPIError as e:
        raise api_error(_lookup_context(project, name), e) from e

    imported = ClusterRecord.from_domain(obj)
    warnings: list[str] = []
    if with_bootstrap:
        _attach_bootstrap(client, imported, warnings)
    imported.id = make_cluster_id(project, name)
    logger.info(f"Imported cluster {name} in project {project}")
    return ReconcileResult(imported, warnings)
