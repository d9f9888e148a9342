"""Kopf handlers for ParalusGroup CRD."""

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
    GroupRecord,
    Phase,
    ReconcileResult,
)
from paralus_client import ParalusClient
from resources.group import create_group, delete_group, import_group, read_group, update_group
from state import get_paralus_client
from utils import now_iso

logger = logging.getLogger(__name__)

RESOURCE = "ParalusGroup"
PLURAL = "paralusgroups"
STATUS_KEYS = ("groupId", "type", "projectRoles", "users", "conditions")


def _record_from(spec: dict[str, Any], status: dict[str, Any]) -> GroupRecord:
    record = GroupRecord.from_spec(spec)
    group_id = status.get("groupId")
    if group_id and not record.name:
        record.name = group_id
    record.id = group_id
    return record


def _apply_result(
    patch: kopf.Patch, result: ReconcileResult[GroupRecord], body: kopf.Body
) -> None:
    patch.status.update(result.record.to_status())
    emit_warnings(body, result)
    set_patch_condition(patch, "Ready", ConditionStatus.TRUE, "Synced", "")
    patch.status["phase"] = Phase.READY.value
    patch.status["lastSyncTime"] = now_iso()


def _create_or_resume(
    client: ParalusClient, record: GroupRecord, retry: int
) -> ReconcileResult[GroupRecord]:
    """Create the group, or finish a create that an earlier attempt started."""
    if record.id:
        return update_group(client, record)
    try:
        return create_group(client, record)
    except AlreadyExistsError:
        if not retry:
            raise
        logger.info(f"Group {record.name} was created by an earlier attempt, resuming")
        return update_group(client, record)


@kopf.on.create(API_GROUP, API_VERSION, PLURAL)
def create_group_handler(
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
    """Handle ParalusGroup creation, or adoption when spec.importId is set."""
    import_id = spec.get("importId")
    operation = "import" if import_id else "create"
    logger.info(f"Creating ParalusGroup: {namespace}/{name} ({operation})")
    start_status(patch, meta)

    with reconciling(RESOURCE, operation, patch, body, namespace, name):
        client = get_paralus_client()
        if import_id:
            result = import_group(client, import_id)
        else:
            result = _create_or_resume(client, _record_from(spec, status), retry)
        _apply_result(patch, result, body)
        logger.info(f"Successfully created ParalusGroup: {namespace}/{name}")


@kopf.on.update(API_GROUP, API_VERSION, PLURAL)
def update_group_handler(
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
    """Handle ParalusGroup updates."""
    logger.info(f"Updating ParalusGroup: {namespace}/{name}")
    patch.status["phase"] = Phase.PROVISIONING.value
    patch.status["observedGeneration"] = meta.get("generation", 1)
    preserve_status(patch, status, STATUS_KEYS)

    with reconciling(RESOURCE, "update", patch, body, namespace, name):
        client = get_paralus_client()
        record = _record_from(spec, status)
        if not record.id:
            result = _create_or_resume(client, record, retry)
        else:
            result = update_group(client, record)
        _apply_result(patch, result, body)
        logger.info(f"Successfully updated ParalusGroup: {namespace}/{name}")


@kopf.on.delete(API_GROUP, API_VERSION, PLURAL)
def delete_group_handler(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    body: kopf.Body,
    **_: Any,
) -> None:
    """Handle ParalusGroup deletion."""
    logger.info(f"Deleting ParalusGroup: {namespace}/{name}")
    patch.status["phase"] = Phase.DELETING.value

    if not status.get("groupId"):
        logger.warning(f"No groupId in status for {namespace}/{name}, nothing to delete")
        return

    with reconciling(RESOURCE, "delete", patch, body, namespace, name):
        delete_group(get_paralus_client(), _record_from(spec, status))
        logger.info(f"Successfully deleted ParalusGroup: {namespace}/{name}")


@kopf.timer(API_GROUP, API_VERSION, PLURAL, interval=RECONCILE_INTERVAL)
def reconcile_group(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    **_: Any,
) -> None:
    """Periodic read to detect groups changed or removed outside the operator."""
    if status.get("phase") != Phase.READY.value:
        return

    logger.debug(f"Reconciling ParalusGroup: {namespace}/{name}")
    try:
        result = read_group(get_paralus_client(), _record_from(spec, status))
        if result.record.id is None:
            logger.warning(f"Group for {namespace}/{name} not found in Paralus")
            mark_drifted(patch, RESOURCE, "groupId", "group")
            return
        patch.status.update(result.record.to_status())
        patch.status["lastSyncTime"] = now_iso()
    except Exception:
        logger.exception(f"Reconciliation failed for {namespace}/{name}")
