"""Group resource management."""

import logging
from dataclasses import replace
from typing import Any

from models import (
    AlreadyExistsError,
    GroupRecord,
    ParalusAPIError,
    ReconcileResult,
    ResourceNotFoundError,
    ValidationError,
)
from paralus_client import ParalusClient
from resources.dependencies import (
    assert_unique_project_roles,
    check_projects_exist,
    check_users_exist,
)
from utils import api_error, api_errors, remote_exists, require_not_empty

logger = logging.getLogger(__name__)


def _validated_domain(client: ParalusClient, record: GroupRecord) -> dict[str, Any]:
    """Check the group's references and build the outgoing object."""
    check_projects_exist(record.project_roles, client.get_project)
    obj = record.to_domain()
    assert_unique_project_roles(obj["spec"].get("project_namespace_roles", []))
    check_users_exist(record.users, client.get_user)
    return obj


def _lookup_context(name: str) -> str:
    return f"failed to retrieve group {name}"


def _read_back(client: ParalusClient, name: str) -> GroupRecord:
    with api_errors(f"error retrieving info for group {name}"):
        obj = client.get_group(name)
    group = GroupRecord.from_domain(obj)
    group.id = name
    return group


def create_group(client: ParalusClient, record: GroupRecord) -> ReconcileResult[GroupRecord]:
    """Create a group with its project roles and users.

    Raises:
        ValidationError: missing name, duplicate roles, or a project-less
            role that is not organization wide
        DependencyMissingError: a referenced project or user does not exist
        AlreadyExistsError: the group already exists
        ParalusAPIError: remote failure
    """
    name = require_not_empty("group name", record.name)
    obj = _validated_domain(client, record)

    if remote_exists(client.get_group, name, context=_lookup_context(name)):
        raise AlreadyExistsError(f"group {name} already exists")

    with api_errors(f"failed to create group {name}"):
        client.create_group(obj)
    logger.info(f"Created group {name}")
    return ReconcileResult(_read_back(client, name))


def update_group(client: ParalusClient, record: GroupRecord) -> ReconcileResult[GroupRecord]:
    """Replace the project roles and users of an existing group.

    Raises:
        ResourceNotFoundError: the group does not exist
    """
    name = require_not_empty("group name", record.name)
    obj = _validated_domain(client, record)

    if not remote_exists(client.get_group, name, context=_lookup_context(name)):
        raise ResourceNotFoundError(f"group {name} does not exist, cannot update")

    with api_errors(f"failed to update group {name}"):
        client.update_group(obj)
    logger.info(f"Updated group {name}")
    return ReconcileResult(_read_back(client, name))


def read_group(client: ParalusClient, record: GroupRecord) -> ReconcileResult[GroupRecord]:
    """Refresh a group from Paralus; a deleted group comes back with id cleared."""
    name = require_not_empty("group name", record.name)
    try:
        obj = client.get_group(name)
    except ResourceNotFoundError:
        logger.info(f"Group {name} not found")
        return ReconcileResult(replace(record, id=None))
    except ParalusAPIError as e:
        raise api_error(f"error retrieving info for group {name}", e) from e

    group = GroupRecord.from_domain(obj)
    group.id = name
    return ReconcileResult(group)


def delete_group(client: ParalusClient, record: GroupRecord) -> ReconcileResult[GroupRecord]:
    """Delete a group. A group already gone is not an error."""
    name = require_not_empty("group name", record.name)
    if not remote_exists(client.get_group, name, context=_lookup_context(name)):
        logger.info(f"Group {name} already deleted")
        return ReconcileResult(replace(record, id=None))

    with api_errors(f"failed to delete group {name}"):
        client.delete_group(name)
    logger.info(f"Deleted group {name}")
    return ReconcileResult(replace(record, id=None))


def import_group(client: ParalusClient, identity: str) -> ReconcileResult[GroupRecord]:
    """Adopt an existing group by name.

    Raises:
        ValidationError: empty identity
        ResourceNotFoundError: no such group
    """
    name = (identity or "").strip()
    if not name:
        raise ValidationError("group import requires the group name as ID")
    try:
        obj = client.get_group(name)
    except ResourceNotFoundError as e:
        raise ResourceNotFoundError(f"group {name} does not exist") from e
    except ParalusAPIError as e:
        raise api_error(_lookup_context(name), e) from e

    group = GroupRecord.from_domain(obj)
    group.id = name
    logger.info(f"Imported group {name}")
    return ReconcileResult(group)
