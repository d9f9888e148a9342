"""Paralus operator entry point.

Run with: kopf run src/main.py
"""

import logging
import sys
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from prometheus_client import start_http_server

from config import OperatorSettings
from constants import FINALIZER
from metrics import init_metrics, set_operator_info
from state import state

# Import resource handlers (registers with Kopf)
import handlers  # noqa: F401

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings on startup."""
    operator_settings = OperatorSettings.from_env()

    # Reduce logging noise
    settings.posting.level = logging.WARNING
    settings.persistence.finalizer = FINALIZER
    if operator_settings.watch_namespace:
        settings.watching.namespaces = [operator_settings.watch_namespace]
    else:
        settings.watching.clusterwide = True

    # Start Prometheus metrics server
    try:
        start_http_server(operator_settings.metrics_port)
        logger.info(
            "Prometheus metrics server started on port %d", operator_settings.metrics_port
        )
    except OSError as e:
        logger.warning(
            "Failed to start metrics server on port %d: %s",
            operator_settings.metrics_port,
            e,
        )

    # Fail fast on missing Paralus settings
    client = state.get_paralus_client()
    logger.debug("Paralus config used: %s", client.config.as_log_dict())

    init_metrics()
    set_operator_info(OPERATOR_VERSION, client.config.rest_endpoint)

    logger.info("Paralus operator started (version %s)", OPERATOR_VERSION)


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("Paralus operator shutting down")
    state.close()

