"""Project resource management."""

import logging
from dataclasses import replace
from typing import Any

from models import (
    AlreadyExistsError,
    ParalusAPIError,
    ProjectNotEmptyError,
    ProjectRecord,
    ReconcileResult,
    ResourceNotFoundError,
    ValidationError,
)
from paralus_client import ParalusClient
from resources.dependencies import (
    assert_unique_project_roles,
    assert_unique_roles,
    check_groups_exist,
    check_user_roles_exist,
)
from utils import api_error, api_errors, remote_exists, require_not_empty

logger = logging.getLogger(__name__)


def _validated_domain(client: ParalusClient, record: ProjectRecord) -> dict[str, Any]:
    """Check the project's role bindings and build the outgoing object."""
    obj = record.to_domain()
    roles = obj["spec"].get("project_namespace_roles", [])
    assert_unique_project_roles(roles)
    assert_unique_roles(roles)
    check_groups_exist(record.project_roles, client.get_group)
    check_user_roles_exist(record.user_roles, client.get_user)
    return obj


def _lookup_context(name: str) -> str:
    return f"failed to retrieve project {name}"


def _read_back(client: ParalusClient, name: str) -> ProjectRecord:
    with api_errors(f"error retrieving info for project {name}"):
        obj = client.get_project(name)
    project = ProjectRecord.from_domain(obj)
    project.id = name
    return project


def create_project(
    client: ParalusClient, record: ProjectRecord
) -> ReconcileResult[ProjectRecord]:
    """Create a project with its role bindings.

    Raises:
        ValidationError: missing name or duplicate roles
        DependencyMissingError: a referenced group or user does not exist
        AlreadyExistsError: the project already exists
        ParalusAPIError: remote failure
    """
    name = require_not_empty("project name", record.name)
    obj = _validated_domain(client, record)

    if remote_exists(client.get_project, name, context=_lookup_context(name)):
        raise AlreadyExistsError(f"project {name} already exists")

    with api_errors(f"failed to create project {name}"):
        client.create_project(obj)
    logger.info(f"Created project {name}")
    return ReconcileResult(_read_back(client, name))


def update_project(
    client: ParalusClient, record: ProjectRecord
) -> ReconcileResult[ProjectRecord]:
    """Replace the description and role bindings of an existing project.

    Raises:
        ResourceNotFoundError: the project does not exist
    """
    name = require_not_empty("project name", record.name)
    obj = _validated_domain(client, record)

    try:
        current = client.get_project(name)
    except ResourceNotFoundError as e:
        raise ResourceNotFoundError(f"project {name} does not exist, cannot update") from e
    except ParalusAPIError as e:
        raise api_error(_lookup_context(name), e) from e

    # The project id is assigned by Paralus and must be echoed back
    remote_id = (current.get("metadata") or {}).get("id")
    if remote_id:
        obj["metadata"]["id"] = remote_id

    with api_errors(f"failed to update project {name}"):
        client.update_project(obj)
    logger.info(f"Updated project {name}")
    return ReconcileResult(_read_back(client, name))


def read_project(
    client: ParalusClient, record: ProjectRecord
) -> ReconcileResult[ProjectRecord]:
    """Refresh a project from Paralus; a deleted project comes back with id cleared."""
    name = require_not_empty("project name", record.name)
    try:
        obj = client.get_project(name)
    except ResourceNotFoundError:
        logger.info(f"Project {name} not found")
        return ReconcileResult(replace(record, id=None))
    except ParalusAPIError as e:
        raise api_error(f"error retrieving info for project {name}", e) from e

    project = ProjectRecord.from_domain(obj)
    project.id = name
    return ReconcileResult(project)


def delete_project(
    client: ParalusClient, record: ProjectRecord
) -> ReconcileResult[ProjectRecord]:
    """Delete a project once it holds no clusters.

    Raises:
        ProjectNotEmptyError: clusters still exist in the project
    """
    name = require_not_empty("project name", record.name)
    if not remote_exists(client.get_project, name, context=_lookup_context(name)):
        logger.info(f"Project {name} already deleted")
        return ReconcileResult(replace(record, id=None))

    with api_errors(f"failed to list clusters of project {name}"):
        clusters = client.list_clusters(name)
    if clusters:
        names = [(c.get("metadata") or {}).get("name", "") for c in clusters]
        raise ProjectNotEmptyError(
            f"project {name} still contains {len(clusters)} cluster(s): {', '.join(names)}"
        )

    with api_errors(f"failed to delete project {name}"):
        client.delete_project(name)
    logger.info(f"Deleted project {name}")
    return ReconcileResult(replace(record, id=None))


def import_project(client: ParalusClient, identity: str) -> ReconcileResult[ProjectRecord]:
    """Adopt an existing project by name.

    Raises:
        ValidationError: empty identity
        ResourceNotFoundError: no such project
    """
    name = (identity or "").strip()
    if not name:
        raise ValidationError("project import requires the project name as ID")
    try:
        obj = client.get_project(name)
    except ResourceNotFoundError as e:
        raise ResourceNotFoundError(f"project {name} does not exist") from e
    except ParalusAPIError as e:
        raise api_error(_lookup_context(name), e) from e

    project = ProjectRecord.from_domain(obj)
    project.id = name
    logger.info(f"Imported project {name}")
    return ReconcileResult(project)
