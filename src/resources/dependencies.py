"""Pre-flight checks for entities referenced by a group or project.

Lookups are injected so the checks stay independent of the client. A lookup
returns the remote object or raises ResourceNotFoundError.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any

from constants import NON_PROJECT_ROLES
from models import (
    DependencyMissingError,
    ParalusAPIError,
    ProjectRole,
    ResourceNotFoundError,
    UserRole,
    ValidationError,
)
from utils import api_error

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Any]


def _unique_in_order(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for name in names:
        if name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


def _check_exist(kind: str, names: Iterable[str], lookup: Lookup) -> None:
    """Look up each distinct name once, in declared order.

    Raises:
        DependencyMissingError: for the first name that does not resolve
        ParalusAPIError: if a lookup fails for any other reason
    """
    for name in _unique_in_order(names):
        logger.debug("Checking %s %s exists", kind, name)
        try:
            lookup(name)
        except ResourceNotFoundError as e:
            raise DependencyMissingError(kind, name) from e
        except ParalusAPIError as e:
            raise api_error(f"error getting {kind} {name} info", e) from e


def check_allow_empty_project(role: str) -> None:
    """Only organization-wide roles may omit the project."""
    if role not in NON_PROJECT_ROLES:
        raise ValidationError(
            f"project must be specified when assigning role '{role}'"
        )


def check_projects_exist(roles: list[ProjectRole] | None, lookup_project: Lookup) -> None:
    """Verify every project referenced by the roles exists in Paralus."""
    names: list[str] = []
    for role in roles or []:
        if not role.project:
            check_allow_empty_project(role.role)
            continue
        names.append(role.project)
    _check_exist("project", names, lookup_project)


def check_project_exists(name: str, lookup_project: Lookup) -> None:
    """Verify a single project exists in Paralus."""
    _check_exist("project", [name], lookup_project)


def check_groups_exist(roles: list[ProjectRole] | None, lookup_group: Lookup) -> None:
    """Verify every group referenced by the roles exists in Paralus."""
    names: list[str] = []
    for role in roles or []:
        if role.group is not None:
            if not role.group:
                raise ValidationError("group name cannot be empty")
            names.append(role.group)
    _check_exist("group", names, lookup_group)


def check_users_exist(users: list[str] | None, lookup_user: Lookup) -> None:
    """Verify every named user exists in Paralus."""
    _check_exist("user", users or [], lookup_user)


def check_user_roles_exist(user_roles: list[UserRole] | None, lookup_user: Lookup) -> None:
    """Verify the users of a project's user roles exist in Paralus."""
    _check_exist("user", [r.user for r in user_roles or []], lookup_user)


def assert_unique_project_roles(roles: list[dict[str, Any]]) -> None:
    """Each (group, namespace, project, role) combination may appear once.

    Args:
        roles: project_namespace_roles of an outgoing domain object
    """
    seen: set[str] = set()
    for role in roles:
        key = ",".join(
            role.get(k) or "" for k in ("group", "namespace", "project", "role")
        )
        if key in seen:
            raise ValidationError(
                f"group, namespace, project, and role entry already found: '{key}'. "
                "must have a unique combination"
            )
        seen.add(key)


def assert_unique_roles(roles: list[dict[str, Any]]) -> None:
    """Role values must be distinct among a project's own project roles."""
    seen: set[str] = set()
    for role in roles:
        if role.get("role") in seen:
            raise ValidationError(
                "roles must be distinct between project_roles blocks. "
                "If the same is required, then grant through the group instead"
            )
        seen.add(role.get("role", ""))
