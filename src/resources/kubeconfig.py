"""Kubeconfig issued by Paralus to a user."""

import base64
import binascii
import logging
from dataclasses import replace

import yaml

from models import ClusterInfo, KubeconfigRecord, ParalusAPIError, ValidationError
from paralus_client import ParalusClient
from utils import api_errors, require_not_empty

logger = logging.getLogger(__name__)


def _decode(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValidationError(f"invalid base64 data in kubeconfig: {e}") from e


def parse_kubeconfig(record: KubeconfigRecord, kubeconfig_yaml: str) -> KubeconfigRecord:
    """Fill a kubeconfig record from the downloaded YAML.

    Client certificate and key come from the first user entry and are
    base64-decoded. Every cluster entry contributes its server and CA data.

    Raises:
        ValidationError: if the YAML cannot be loaded
    """
    try:
        config = yaml.safe_load(kubeconfig_yaml) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Error loading kubeconfig YAML: {e}") from e
    if not isinstance(config, dict):
        raise ValidationError("Error loading kubeconfig YAML: not a mapping")

    cert_data = key_data = None
    users = config.get("users") or []
    if users:
        auth_info = users[0].get("user") or {}
        cert_data = _decode(auth_info.get("client-certificate-data"))
        key_data = _decode(auth_info.get("client-key-data"))

    clusters = []
    for entry in config.get("clusters") or []:
        cluster = entry.get("cluster") or {}
        clusters.append(
            ClusterInfo(
                server=cluster.get("server", ""),
                certificate_authority_data=cluster.get("certificate-authority-data"),
            )
        )

    return replace(
        record,
        cluster_info=clusters,
        client_certificate_data=cert_data,
        client_key_data=key_data,
        raw=kubeconfig_yaml,
    )


def fetch_kubeconfig(client: ParalusClient, record: KubeconfigRecord) -> KubeconfigRecord:
    """Resolve the user and download the kubeconfig Paralus issued to them.

    Raises:
        ValidationError: if the user name is empty
        ParalusAPIError: if the user or the kubeconfig cannot be retrieved
    """
    name = require_not_empty("name", record.name)
    logger.debug("Retrieving kubeconfig info for user %s", name)

    with api_errors(f"error locating user info: {name}"):
        user = client.get_user(name)
    user_id = (user.get("metadata") or {}).get("id")
    if not user_id:
        raise ParalusAPIError(f"user {name} has no id")

    logger.debug(
        "Retrieving kubeconfig for user %s (id %s), cluster %s, namespace %s",
        name,
        user_id,
        record.cluster,
        record.namespace,
    )
    with api_errors(
        f"error locating kubeconfig for user {name}. Make sure the kubeconfig "
        "has been generated manually through the UI for the first time"
    ):
        kubeconfig_yaml = client.get_kubeconfig(user_id, record.namespace, record.cluster)

    return parse_kubeconfig(record, kubeconfig_yaml)
