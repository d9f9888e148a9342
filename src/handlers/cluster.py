"""Kopf handlers for ParalusCluster CRD."""

import logging
from typing import Any

import kopf
from kubernetes import client as k8s_client

from constants import API_GROUP, API_VERSION
from handlers.common import (
    RECONCILE_INTERVAL,
    emit_warnings,
    mark_drifted,
    preserve_status,
    reconciling,
    set_patch_condition,
    start_status,
    upsert_owned_object,
)
from models import (
    AlreadyExistsError,
    BootstrapFileRecord,
    ClusterRecord,
    ConditionStatus,
    Phase,
    ReconcileResult,
)
from paralus_client import ParalusClient
from resources.cluster import (
    create_cluster,
    delete_cluster,
    import_cluster,
    read_cluster,
    update_cluster,
)
from state import get_k8s_core_api, get_paralus_client
from utils import now_iso, split_cluster_id

logger = logging.getLogger(__name__)

RESOURCE = "ParalusCluster"
PLURAL = "paralusclusters"
STATUS_KEYS = (
    "clusterId",
    "uuid",
    "description",
    "labels",
    "annotations",
    "relays",
    "bootstrapConfigMap",
    "conditions",
)


def _record_from(spec: dict[str, Any], status: dict[str, Any]) -> ClusterRecord:
    """Build the declared record, taking identity from status for imports."""
    record = ClusterRecord.from_spec(spec)
    cluster_id = status.get("clusterId")
    if cluster_id and not (record.name and record.project):
        record.project, record.name = split_cluster_id(cluster_id)
    record.id = cluster_id
    return record


def bootstrap_configmap_name(name: str) -> str:
    return f"{name}-bootstrap"


def _publish_bootstrap(
    bootstrap: BootstrapFileRecord, namespace: str, name: str, body: kopf.Body
) -> None:
    configmap = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": bootstrap_configmap_name(name),
            "namespace": namespace,
            "annotations": {f"{API_GROUP}/cluster-id": bootstrap.id},
        },
        "data": bootstrap.to_configmap_data(),
    }
    upsert_owned_object(get_k8s_core_api(), "ConfigMap", configmap, body)


def _apply_result(
    patch: kopf.Patch,
    result: ReconcileResult[ClusterRecord],
    namespace: str,
    name: str,
    body: kopf.Body,
) -> None:
    record = result.record
    patch.status.update(record.to_status())
    if record.bootstrap is not None:
        configmap = bootstrap_configmap_name(name)
        try:
            _publish_bootstrap(record.bootstrap, namespace, name, body)
        except k8s_client.ApiException as e:
            result.warnings.append(
                f"failed to publish bootstrap ConfigMap {namespace}/{configmap} "
                f"for cluster {record.name}: {e.status} {e.reason}"
            )
        else:
            patch.status["bootstrapConfigMap"] = configmap
    emit_warnings(body, result)
    set_patch_condition(patch, "Ready", ConditionStatus.TRUE, "Synced", "")
    patch.status["phase"] = Phase.READY.value
    patch.status["lastSyncTime"] = now_iso()


def _create_or_resume(
    client: ParalusClient, record: ClusterRecord, retry: int
) -> ReconcileResult[ClusterRecord]:
    """Create the cluster, or finish a create that an earlier attempt started.

    On a retry an existing cluster is taken to be the one an earlier
    attempt created; it is updated and its bootstrap file fetched again.
    """
    if record.id:
        return update_cluster(client, record, with_bootstrap=True)
    try:
        return create_cluster(client, record)
    except AlreadyExistsError:
        if not retry:
            raise
        logger.info(
            f"Cluster {record.name} in project {record.project} was created by "
            "an earlier attempt, resuming"
        )
        return update_cluster(client, record, with_bootstrap=True)


@kopf.on.create(API_GROUP, API_VERSION, PLURAL)
def create_cluster_handler(
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
    """Handle ParalusCluster creation, or adoption when spec.importId is set."""
    import_id = spec.get("importId")
    operation = "import" if import_id else "create"
    logger.info(f"Creating ParalusCluster: {namespace}/{name} ({operation})")
    start_status(patch, meta)

    with reconciling(RESOURCE, operation, patch, body, namespace, name):
        client = get_paralus_client()
        if import_id:
            result = import_cluster(client, import_id, with_bootstrap=True)
        else:
            result = _create_or_resume(client, _record_from(spec, status), retry)
        _apply_result(patch, result, namespace, name, body)
        logger.info(
            f"Successfully created ParalusCluster: {namespace}/{name} "
            f"(id={result.record.id})"
        )


@kopf.on.update(API_GROUP, API_VERSION, PLURAL)
def update_cluster_handler(
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
    """Handle ParalusCluster updates."""
    logger.info(f"Updating ParalusCluster: {namespace}/{name}")
    patch.status["phase"] = Phase.PROVISIONING.value
    patch.status["observedGeneration"] = meta.get("generation", 1)
    preserve_status(patch, status, STATUS_KEYS)

    with reconciling(RESOURCE, "update", patch, body, namespace, name):
        client = get_paralus_client()
        record = _record_from(spec, status)
        if not record.id:
            # Never created or deleted outside the operator
            result = _create_or_resume(client, record, retry)
        else:
            result = update_cluster(client, record)
        _apply_result(patch, result, namespace, name, body)
        logger.info(f"Successfully updated ParalusCluster: {namespace}/{name}")


@kopf.on.delete(API_GROUP, API_VERSION, PLURAL)
def delete_cluster_handler(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    body: kopf.Body,
    **_: Any,
) -> None:
    """Handle ParalusCluster deletion."""
    logger.info(f"Deleting ParalusCluster: {namespace}/{name}")
    patch.status["phase"] = Phase.DELETING.value

    if not status.get("clusterId"):
        logger.warning(f"No clusterId in status for {namespace}/{name}, nothing to delete")
        return

    with reconciling(RESOURCE, "delete", patch, body, namespace, name):
        delete_cluster(get_paralus_client(), _record_from(spec, status))
        logger.info(f"Successfully deleted ParalusCluster: {namespace}/{name}")


@kopf.timer(API_GROUP, API_VERSION, PLURAL, interval=RECONCILE_INTERVAL)
def reconcile_cluster(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    **_: Any,
) -> None:
    """Periodic read to detect clusters changed or removed outside the operator."""
    if status.get("phase") != Phase.READY.value:
        logger.debug(
            f"Skipping reconciliation for {namespace}/{name}: phase is "
            f"{status.get('phase')}"
        )
        return

    logger.debug(f"Reconciling ParalusCluster: {namespace}/{name}")
    try:
        result = read_cluster(get_paralus_client(), _record_from(spec, status))
        if result.record.id is None:
            logger.warning(f"Cluster for {namespace}/{name} not found in Paralus")
            mark_drifted(patch, RESOURCE, "clusterId", "cluster")
            return
        patch.status.update(result.record.to_status())
        patch.status["lastSyncTime"] = now_iso()
    except Exception:
        logger.exception(f"Reconciliation failed for {namespace}/{name}")
