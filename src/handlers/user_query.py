"""Kopf handlers for ParalusUserQuery CRD.

A user query is read-only: it looks users up in Paralus and publishes the
matches in its status. Nothing is written to Paralus.
"""

import logging
from typing import Any

import kopf

from constants import API_GROUP, API_VERSION
from handlers.common import RECONCILE_INTERVAL, reconciling, set_patch_condition
from models import ConditionStatus, OperatorError, Phase, UserFilter
from resources.users import query_users
from state import get_paralus_client
from utils import now_iso

logger = logging.getLogger(__name__)

RESOURCE = "ParalusUserQuery"
PLURAL = "paralususerqueries"


def _run_query(spec: dict[str, Any], patch: kopf.Patch) -> int:
    """Run the declared query and write the matches to status."""
    users = query_users(
        get_paralus_client(),
        spec.get("limit"),
        spec.get("offset"),
        UserFilter.from_spec(spec.get("filters")),
    )
    patch.status["users"] = [u.to_status() for u in users]
    patch.status["count"] = len(users)
    set_patch_condition(patch, "Ready", ConditionStatus.TRUE, "Matched", "")
    patch.status["phase"] = Phase.READY.value
    patch.status["lastSyncTime"] = now_iso()
    return len(users)


def _run_handler(
    spec: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    meta: dict[str, Any],
    body: kopf.Body,
    operation: str,
) -> None:
    logger.info(f"Running ParalusUserQuery: {namespace}/{name}")
    patch.status["observedGeneration"] = meta.get("generation", 1)

    with reconciling(RESOURCE, operation, patch, body, namespace, name):
        count = _run_query(spec, patch)
        logger.info(f"ParalusUserQuery {namespace}/{name} matched {count} user(s)")


@kopf.on.create(API_GROUP, API_VERSION, PLURAL)
def create_user_query_handler(
    spec: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    meta: dict[str, Any],
    body: kopf.Body,
    **_: Any,
) -> None:
    """Run the users query of a new ParalusUserQuery."""
    _run_handler(spec, patch, namespace, name, meta, body, "create")


@kopf.on.update(API_GROUP, API_VERSION, PLURAL)
def update_user_query_handler(
    spec: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    meta: dict[str, Any],
    body: kopf.Body,
    **_: Any,
) -> None:
    """Re-run the users query after a spec change."""
    _run_handler(spec, patch, namespace, name, meta, body, "update")


@kopf.timer(API_GROUP, API_VERSION, PLURAL, interval=RECONCILE_INTERVAL)
def refresh_user_query(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    namespace: str,
    name: str,
    **_: Any,
) -> None:
    """Periodically refresh the matches of a query."""
    if status.get("phase") != Phase.READY.value:
        return

    logger.debug(f"Refreshing ParalusUserQuery: {namespace}/{name}")
    try:
        _run_query(spec, patch)
    except OperatorError as e:
        logger.warning(f"Refreshing ParalusUserQuery {namespace}/{name} failed: {e}")
        patch.status["phase"] = Phase.ERROR.value
        set_patch_condition(
            patch, "Ready", ConditionStatus.FALSE, type(e).__name__, str(e)[:200]
        )
