"""Helpers shared by the Paralus CRD handlers."""

import copy
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import kopf
from kubernetes import client as k8s_client

from config import OperatorSettings
from constants import MANAGED_BY_LABEL, MANAGED_BY_VALUE
from metrics import (
    DRIFT_DETECTED,
    RECONCILE_DURATION,
    RECONCILE_IN_PROGRESS,
    RECONCILE_TOTAL,
)
from models import (
    AlreadyExistsError,
    AmbiguousMatchError,
    ConditionStatus,
    DependencyMissingError,
    NoMatchError,
    Phase,
    ReconcileResult,
    ValidationError,
)
from utils import set_condition

logger = logging.getLogger(__name__)

# Errors that will not go away by retrying with the same spec
PERMANENT_ERRORS = (
    ValidationError,
    DependencyMissingError,
    AlreadyExistsError,
    NoMatchError,
    AmbiguousMatchError,
)

RECONCILE_INTERVAL = OperatorSettings.from_env().reconcile_interval


def set_patch_condition(
    patch: kopf.Patch,
    condition_type: str,
    condition_status: ConditionStatus,
    reason: str = "",
    message: str = "",
) -> None:
    """Set or update a condition in patch.status.conditions."""
    set_condition(patch.status, condition_type, condition_status.value, reason, message)


@contextmanager
def reconciling(
    resource: str,
    operation: str,
    patch: kopf.Patch,
    body: kopf.Body,
    namespace: str | None,
    name: str,
) -> Iterator[None]:
    """Track one handler run and translate failures into kopf errors.

    Domain errors caused by the declared spec become kopf.PermanentError;
    anything else is retried by kopf after 60 seconds.
    """
    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.labels(resource=resource).inc()
    reason = f"{operation.capitalize()}Failed"
    try:
        yield
    except PERMANENT_ERRORS as e:
        logger.error(f"Failed to {operation} {resource} {namespace}/{name}: {e}")
        patch.status["phase"] = Phase.ERROR.value
        set_patch_condition(
            patch, "Ready", ConditionStatus.FALSE, type(e).__name__, str(e)[:200]
        )
        RECONCILE_TOTAL.labels(
            resource=resource, operation=operation, status="permanent_error"
        ).inc()
        kopf.warn(body, reason=reason, message=str(e)[:200])
        raise kopf.PermanentError(f"{operation.capitalize()} failed: {e}") from e
    except kopf.PermanentError:
        RECONCILE_TOTAL.labels(
            resource=resource, operation=operation, status="permanent_error"
        ).inc()
        raise
    except Exception as e:
        logger.error(f"Failed to {operation} {resource} {namespace}/{name}: {e}")
        patch.status["phase"] = Phase.ERROR.value
        set_patch_condition(
            patch, "Ready", ConditionStatus.FALSE, "Error", str(e)[:200]
        )
        RECONCILE_TOTAL.labels(
            resource=resource, operation=operation, status="error"
        ).inc()
        kopf.warn(body, reason=reason, message=str(e)[:200])
        raise kopf.TemporaryError(f"{operation.capitalize()} failed: {e}", delay=60)
    else:
        RECONCILE_TOTAL.labels(
            resource=resource, operation=operation, status="success"
        ).inc()
        RECONCILE_DURATION.labels(resource=resource, operation=operation).observe(
            time.monotonic() - start_time
        )
    finally:
        RECONCILE_IN_PROGRESS.labels(resource=resource).dec()


def emit_warnings(body: kopf.Body, result: ReconcileResult[Any]) -> None:
    """Publish best-effort failures of a lifecycle call as warning events."""
    for warning in result.warnings:
        logger.warning(warning)
        kopf.warn(body, reason="Degraded", message=warning[:200])


def start_status(patch: kopf.Patch, meta: dict[str, Any]) -> None:
    """Mark a resource as being provisioned."""
    patch.status["phase"] = Phase.PROVISIONING.value
    patch.status["conditions"] = []
    patch.status["observedGeneration"] = meta.get("generation", 1)


def mark_drifted(patch: kopf.Patch, resource: str, id_key: str, kind: str) -> None:
    """Record that the Paralus object was deleted outside the operator.

    The resource is left Pending with its id cleared; the next spec change
    runs the update handler, which creates the object again.
    """
    DRIFT_DETECTED.labels(resource=resource).inc()
    patch.status["phase"] = Phase.PENDING.value
    patch.status[id_key] = None
    set_patch_condition(
        patch,
        "Ready",
        ConditionStatus.FALSE,
        "NotFound",
        f"{kind} deleted outside the operator; update the spec to recreate it",
    )


def preserve_status(patch: kopf.Patch, status: dict[str, Any], keys: tuple[str, ...]) -> None:
    """Copy status fields not touched by this run into the patch."""
    for key in keys:
        if key in status and key not in patch.status:
            patch.status[key] = copy.deepcopy(status[key])


def upsert_owned_object(
    api: k8s_client.CoreV1Api,
    kind: str,
    obj: dict[str, Any],
    owner: kopf.Body,
) -> None:
    """Create or replace a ConfigMap or Secret owned by a custom resource.

    The object gets an owner reference so Kubernetes removes it together
    with the custom resource.
    """
    metadata = obj.setdefault("metadata", {})
    metadata.setdefault("labels", {})[MANAGED_BY_LABEL] = MANAGED_BY_VALUE
    kopf.adopt(obj, owner=owner)
    namespace = metadata["namespace"]
    name = metadata["name"]

    if kind == "ConfigMap":
        create, replace = api.create_namespaced_config_map, api.replace_namespaced_config_map
    elif kind == "Secret":
        create, replace = api.create_namespaced_secret, api.replace_namespaced_secret
    else:
        raise ValueError(f"unsupported kind: {kind}")

    try:
        create(namespace, obj)
        logger.info(f"Created {kind} {namespace}/{name}")
    except k8s_client.ApiException as e:
        if e.status != 409:
            raise
        replace(name, namespace, obj)
        logger.info(f"Replaced {kind} {namespace}/{name}")
