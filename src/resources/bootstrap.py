"""Bootstrap artifacts of imported clusters."""

import logging

import yaml

from models import BootstrapFileRecord
from paralus_client import ParalusClient
from utils import split_yaml_documents

logger = logging.getLogger(__name__)


def find_relays(documents: list[str]) -> str | None:
    """Return the relays entry of the relay-agent ConfigMap, if present.

    Raises:
        yaml.YAMLError: if a document cannot be parsed
    """
    for doc in documents:
        obj = yaml.safe_load(doc)
        if not isinstance(obj, dict) or obj.get("kind") != "ConfigMap":
            continue
        relays = (obj.get("data") or {}).get("relays")
        if relays:
            return relays
    return None


def parse_bootstrap(
    project: str, name: str, combined: str, uuid: str | None = None
) -> BootstrapFileRecord:
    """Build a bootstrap record from the combined YAML download."""
    files = split_yaml_documents(combined)
    return BootstrapFileRecord(
        name=name,
        project=project,
        combined=combined,
        files=files,
        relays=find_relays(files),
        uuid=uuid,
    )


def fetch_bootstrap(
    client: ParalusClient, project: str, name: str, uuid: str | None = None
) -> BootstrapFileRecord:
    """Download and parse the bootstrap file of a cluster.

    Single shot: a cluster created moments ago may not have its relays
    populated yet, in which case the record carries relays=None.
    """
    logger.debug("Retrieving bootstrap info for cluster %s in project %s", name, project)
    combined = client.get_bootstrap_file(project, name)
    record = parse_bootstrap(project, name, combined, uuid)
    if not record.relays:
        logger.info("No relay populated yet for cluster %s in project %s", name, project)
    return record
