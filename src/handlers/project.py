"""Kopf handlers for ParalusProject CRD."""

import logging
from typing import Any

import kopf

from constants import API_GROUP, API_VERSION
from handlers.common import (
    RECONCILE_INTERVAL,
    emit_warnings,
    mark_drifted,
    preserve_status,
    reconciling,
    set_patch_condition,
    start_status,
)
from models import (
    AlreadyExistsError,
    ConditionStatus,
    Phase,
    ProjectRecord,
    ReconcileResult,
)
from paralus_client import ParalusClient
from resources.project import (
    create_project,
    delete_project,
    import_project,
    read_project,
    update_project,
)
from state import get_paralus_client
from utils import now_iso

logger = logging.getLogger(__name__)

RESOURCE = "ParalusProject"
PLURAL = "paralusprojects"
STATUS_KEYS = ("projectId", "uuid", "projectRoles", "userRoles", "conditions")


def _record_from(spec: dict[str, Any], status: dict[str, Any]) -> ProjectRecord:
    record = ProjectRecord.from_spec(spec)
    project_id = status.get("projectId")
    if project_id and not record.name:
        record.name = project_id
    record.id = project_id
    return record


def _apply_result(
    patch: kopf.Patch, result: ReconcileResult[ProjectRecord], body: kopf.Body
) -> None:
    patch.status.update(result.record.to_status())
    emit_warnings(body, result)
    set_patch_condition(patch, "Ready", ConditionStatus.TRUE, "Synced", "")
    patch.status["phase"] = Phase.READY.value
    patch.status["lastSyncTime"] = now_iso()


def _create_or_resume(
    client: ParalusClient, record: ProjectRecord, retry: int
) -> ReconcileResult[ProjectRecord]:
    """Create the project, or finish a create that an earlier attempt started."""
    if record.id:
        return update_project(client, record)
    try:
        return create_project(client, record)
    except AlreadyExistsError:
        if not retry:
            raise
        logger.info(f"Project {record.name} was created by an earlier attempt, resuming")
        return update_project(client, record)


@kopf.on.create(API_GROUP, API_VERSION, PLURAL)
def create_project_handler(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    meta: dict[str, Any],
    body: kopf.Body,
    retry: int = 0,
    **_: Any,
) -> None:
    """Handle ParalusProject creation, or adoption when spec.importId is set."""
    import_id = spec.get("importId")
    operation = "import" if import_id else "create"
    logger.info(f"Creating ParalusProject: {namespace}/{name} ({operation})")
    start_status(patch, meta)

    with reconciling(RESOURCE, operation, patch, body, namespace, name):
        client = get_paralus_client()
        if import_id:
            result = import_project(client, import_id)
        else:
            result = _create_or_resume(client, _record_from(spec, status), retry)
        _apply_result(patch, result, body)
        logger.info(f"Successfully created ParalusProject: {namespace}/{name}")


@kopf.on.update(API_GROUP, API_VERSION, PLURAL)
def update_project_handler(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    meta: dict[str, Any],
    body: kopf.Body,
    retry: int = 0,
    **_: Any,
) -> None:
    """Handle ParalusProject updates."""
    logger.info(f"Updating ParalusProject: {namespace}/{name}")
    patch.status["phase"] = Phase.PROVISIONING.value
    patch.status["observedGeneration"] = meta.get("generation", 1)
    preserve_status(patch, status, STATUS_KEYS)

    with reconciling(RESOURCE, "update", patch, body, namespace, name):
        client = get_paralus_client()
        record = _record_from(spec, status)
        if not record.id:
            result = _create_or_resume(client, record, retry)
        else:
            result = update_project(client, record)
        _apply_result(patch, result, body)
        logger.info(f"Successfully updated ParalusProject: {namespace}/{name}")


@kopf.on.delete(API_GROUP, API_VERSION, PLURAL)
def delete_project_handler(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    body: kopf.Body,
    **_: Any,
) -> None:
    """Handle ParalusProject deletion.

    Deletion waits, through kopf retries, until every cluster of the
    project is gone.
    """
    logger.info(f"Deleting ParalusProject: {namespace}/{name}")
    patch.status["phase"] = Phase.DELETING.value

    if not status.get("projectId"):
        logger.warning(f"No projectId in status for {namespace}/{name}, nothing to delete")
        return

    with reconciling(RESOURCE, "delete", patch, body, namespace, name):
        delete_project(get_paralus_client(), _record_from(spec, status))
        logger.info(f"Successfully deleted ParalusProject: {namespace}/{name}")


@kopf.timer(API_GROUP, API_VERSION, PLURAL, interval=RECONCILE_INTERVAL)
def reconcile_project(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    **_: Any,
) -> None:
    """Periodic read to detect projects changed or removed outside the operator."""
    if status.get("phase") != Phase.READY.value:
        return

    logger.debug(f"Reconciling ParalusProject: {namespace}/{name}")
    try:
        result = read_project(get_paralus_client(), _record_from(spec, status))
        if result.record.id is None:
            logger.warning(f"Project for {namespace}/{name} not found in Paralus")
            mark_drifted(patch, RESOURCE, "projectId", "project")
            return
        patch.status.update(result.record.to_status())
        patch.status["lastSyncTime"] = now_iso()
    except Exception:
        logger.exception(f"Reconciliation failed for {namespace}/{name}")
