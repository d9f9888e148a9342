"""Utility functions for the Paralus operator."""

import datetime
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from models import ParalusAPIError, ResourceNotFoundError, ValidationError


def api_error(message: str, error: ParalusAPIError) -> ParalusAPIError:
    """Prefix a remote error with context, keeping its class and status code."""
    return type(error)(f"{message}: {error}", error.status_code)


@contextmanager
def api_errors(message: str) -> Iterator[None]:
    """Wrap remote failures with the operation and entity they belong to.

    Usage:
        with api_errors(f"failed to create cluster {name} in project {project}"):
            client.create_cluster(obj)
    """
    try:
        yield
    except ParalusAPIError as e:
        raise api_error(message, e) from e
    except ResourceNotFoundError as e:
        raise ParalusAPIError(f"{message}: {e}") from e


def remote_exists(lookup: Callable[..., Any], *key: str, context: str) -> bool:
    """Return True if lookup finds key, False on NotFound.

    Other remote failures are re-raised prefixed with context.
    """
    try:
        lookup(*key)
    except ResourceNotFoundError:
        return False
    except ParalusAPIError as e:
        raise api_error(context, e) from e
    return True


def make_cluster_id(project: str, name: str) -> str:
    """Build the composite identity of a cluster.

    Example: ('default', 'test') -> 'default:test'
    """
    return f"{project}:{name}"


def split_cluster_id(identity: str) -> tuple[str, str]:
    """Split a cluster identity into (project, name).

    Raises:
        ValidationError: if the identity is not PROJECT_NAME:CLUSTER_NAME
    """
    parts = (identity or "").split(":")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValidationError(
            f"ID must be in format PROJECT_NAME:CLUSTER_NAME. Got {identity!r}"
        )
    return parts[0], parts[1]


def require_not_empty(label: str, value: str | None) -> str:
    """Return value stripped of whitespace, raising if nothing is left."""
    stripped = (value or "").strip()
    if not stripped:
        raise ValidationError(f"{label}: expected not empty string")
    return stripped


def split_yaml_documents(combined: str) -> list[str]:
    """Split a multi-document YAML string into trimmed, non-empty documents."""
    docs = []
    for doc in combined.split("\n---"):
        content = doc.strip()
        if content:
            docs.append(content)
    return docs


def now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.datetime.now(datetime.UTC).isoformat()


def set_condition(
    status: dict[str, Any],
    condition_type: str,
    condition_status: str,
    reason: str = "",
    message: str = "",
) -> None:
    """Set or update a condition in the status conditions list."""
    conditions: list[dict[str, str]] = status.setdefault("conditions", [])

    for condition in conditions:
        if condition["type"] == condition_type:
            if condition["status"] != condition_status:
                condition["status"] = condition_status
                condition["lastTransitionTime"] = now_iso()
            condition["reason"] = reason
            condition["message"] = message
            return

    conditions.append(
        {
            "type": condition_type,
            "status": condition_status,
            "reason": reason,
            "message": message,
            "lastTransitionTime": now_iso(),
        }
    )
