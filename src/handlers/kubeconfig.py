"""Kopf handlers for ParalusKubeconfig CRD.

The kubeconfig Paralus issues to a user is stored in a Secret owned by the
custom resource, so it is removed together with it.
"""

import base64
import logging
from typing import Any

import kopf

from constants import API_GROUP, API_VERSION
from handlers.common import reconciling, set_patch_condition, upsert_owned_object
from models import ConditionStatus, KubeconfigRecord, Phase
from resources.kubeconfig import fetch_kubeconfig
from state import get_k8s_core_api, get_paralus_client
from utils import now_iso

logger = logging.getLogger(__name__)

RESOURCE = "ParalusKubeconfig"
PLURAL = "paraluskubeconfigs"


def secret_name(spec: dict[str, Any], name: str) -> str:
    return spec.get("secretName") or f"{name}-kubeconfig"


def _encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def build_secret(record: KubeconfigRecord, namespace: str, name: str) -> dict[str, Any]:
    """Render a fetched kubeconfig as a Secret manifest."""
    data = {"kubeconfig": _encode(record.raw)}
    if record.client_certificate_data:
        data["client.crt"] = _encode(record.client_certificate_data)
    if record.client_key_data:
        data["client.key"] = _encode(record.client_key_data)
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "annotations": {f"{API_GROUP}/user": record.name},
        },
        "data": data,
    }


def _sync_kubeconfig(
    spec: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    meta: dict[str, Any],
    body: kopf.Body,
    operation: str,
) -> None:
    """Fetch the user's kubeconfig and store it in a Secret."""
    logger.info(f"Syncing ParalusKubeconfig: {namespace}/{name}")
    patch.status["phase"] = Phase.PROVISIONING.value
    patch.status["observedGeneration"] = meta.get("generation", 1)

    with reconciling(RESOURCE, operation, patch, body, namespace, name):
        record = fetch_kubeconfig(get_paralus_client(), KubeconfigRecord.from_spec(spec))
        target = secret_name(spec, name)
        upsert_owned_object(
            get_k8s_core_api(), "Secret", build_secret(record, namespace, target), body
        )

        patch.status.update(record.to_status())
        patch.status["secretName"] = target
        set_patch_condition(patch, "Ready", ConditionStatus.TRUE, "Synced", "")
        patch.status["phase"] = Phase.READY.value
        patch.status["lastSyncTime"] = now_iso()
        logger.info(f"Stored kubeconfig of {record.name} in Secret {namespace}/{target}")


@kopf.on.create(API_GROUP, API_VERSION, PLURAL)
def create_kubeconfig_handler(
    spec: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    meta: dict[str, Any],
    body: kopf.Body,
    **_: Any,
) -> None:
    """Handle ParalusKubeconfig creation."""
    _sync_kubeconfig(spec, patch, namespace, name, meta, body, "create")


@kopf.on.update(API_GROUP, API_VERSION, PLURAL)
def update_kubeconfig_handler(
    spec: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    meta: dict[str, Any],
    body: kopf.Body,
    **_: Any,
) -> None:
    """Handle ParalusKubeconfig updates."""
    _sync_kubeconfig(spec, patch, namespace, name, meta, body, "update")
