"""Paralus REST API wrapper with retry logic and session management."""

import base64
import binascii
import json
import logging
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar
from urllib.parse import quote

import requests

from config import ParalusConfig
from constants import CLUSTER_LIST_PAGE_SIZE
from metrics import PARALUS_API_CALLS, PARALUS_API_DURATION, PARALUS_API_RETRIES
from models import (
    InvalidCredentialsError,
    OperationNotAllowedError,
    ParalusAPIError,
    ResourceNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Substrings of Paralus error bodies mapped to typed errors
_NOT_FOUND_MARKERS = ("no rows in result set",)
_INVALID_CREDENTIALS_MARKERS = ("no or invalid credentials",)
_NOT_ALLOWED_MARKERS = (
    "method or route not allowed",
    "You do not have enough privileges",
)


def retry_on_error(
    max_retries: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (
        requests.ConnectionError,
        requests.Timeout,
    ),
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator to retry transport-level failures.

    Only connection problems are retried. HTTP error responses are
    classified and raised to the caller on the first attempt.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: Exception | None = None
            current_delay = delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_retries:
                        logger.warning(
                            "Attempt %d/%d failed for %s: %s. Retrying in %.1fs...",
                            attempt + 1,
                            max_retries + 1,
                            func.__name__,
                            e,
                            current_delay,
                        )
                        PARALUS_API_RETRIES.labels(operation=func.__name__).inc()
                        time.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(
                            "All %d attempts failed for %s",
                            max_retries + 1,
                            func.__name__,
                        )

            raise ParalusAPIError(
                f"connection error: {func.__name__} failed after "
                f"{max_retries + 1} attempts: {last_exception}"
            ) from last_exception

        return wrapper

    return decorator


def classify_error(status_code: int, body: str) -> ParalusAPIError | ResourceNotFoundError:
    """Map a non-200 Paralus response to a typed error."""
    if status_code == 404 or any(m in body for m in _NOT_FOUND_MARKERS):
        return ResourceNotFoundError(body or "resource does not exist")
    if any(m in body for m in _INVALID_CREDENTIALS_MARKERS):
        return InvalidCredentialsError("invalid credentials", status_code)
    if any(m in body for m in _NOT_ALLOWED_MARKERS):
        return OperationNotAllowedError("operation not allowed", status_code)
    if not body:
        return ParalusAPIError(f"invalid HTTP response code: {status_code}", status_code)
    return ParalusAPIError(body, status_code)


def unwrap_body(body: str) -> str:
    """Return the payload of a response.

    Download endpoints wrap their payload in an HttpBody envelope whose
    ``data`` field is base64 encoded. Any other body is returned as is.
    """
    if not body:
        return ""
    try:
        envelope = json.loads(body)
    except ValueError:
        return body
    if not isinstance(envelope, dict):
        return body
    data = envelope.get("data")
    if not isinstance(data, str) or not data:
        return body
    try:
        return base64.b64decode(data, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return data


def _segment(value: str) -> str:
    return quote(value, safe="")


class ParalusClient:
    """Wrapper around the Paralus REST API with convenience methods.

    Every method either returns the decoded payload or raises:
    ResourceNotFoundError when the entity does not exist, ParalusAPIError
    (or a subclass) for anything else.
    """

    def __init__(
        self,
        config: ParalusConfig,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings; used for every call made by this client
            session: Pre-built session (tests); created lazily otherwise
            timeout: Per-request timeout in seconds
        """
        self.config = config
        self.timeout = timeout
        self._session = session

    @property
    def session(self) -> requests.Session:
        """Get or create the HTTP session."""
        if self._session is None:
            logger.info("Connecting to Paralus at %s", self.config.base_url)
            session = requests.Session()
            session.headers.update(
                {
                    "X-API-KEYID": self.config.api_key,
                    "X-API-TOKEN": self.config.api_secret,
                    "Content-Type": "application/json",
                }
            )
            session.verify = not self.config.skip_server_cert_valid
            self._session = session
        return self._session

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    @property
    def _org_prefix(self) -> str:
        return (
            f"/auth/v3/partner/{_segment(self.config.partner)}"
            f"/organization/{_segment(self.config.organization)}"
        )

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    @retry_on_error()
    def _send(
        self,
        method: str,
        uri: str,
        payload: dict[str, Any] | None = None,
        params: list[tuple[str, str]] | None = None,
    ) -> requests.Response:
        if payload is not None:
            logger.debug("payload body: %s", json.dumps(payload, indent="\t"))
        return self.session.request(
            method,
            self.config.base_url + uri,
            json=payload,
            params=params,
            timeout=self.timeout,
        )

    def _request(
        self,
        method: str,
        uri: str,
        payload: dict[str, Any] | None = None,
        params: list[tuple[str, str]] | None = None,
    ) -> str:
        """Make a REST call and return the unwrapped response body."""
        start = time.monotonic()
        try:
            response = self._send(method, uri, payload=payload, params=params)
        except ParalusAPIError:
            PARALUS_API_CALLS.labels(method=method, status="error").inc()
            raise
        PARALUS_API_DURATION.labels(method=method).observe(time.monotonic() - start)

        body = response.text or ""
        if response.status_code != 200:
            error = classify_error(response.status_code, body)
            status = "not_found" if isinstance(error, ResourceNotFoundError) else "error"
            PARALUS_API_CALLS.labels(method=method, status=status).inc()
            logger.debug("%s %s returned %d: %s", method, uri, response.status_code, body)
            raise error

        PARALUS_API_CALLS.labels(method=method, status="success").inc()
        return unwrap_body(body)

    def _request_json(
        self,
        method: str,
        uri: str,
        payload: dict[str, Any] | None = None,
        params: list[tuple[str, str]] | None = None,
    ) -> dict[str, Any]:
        body = self._request(method, uri, payload=payload, params=params)
        if not body:
            return {}
        try:
            return json.loads(body)
        except ValueError as e:
            raise ParalusAPIError(f"error decoding response of {method} {uri}: {e}") from e

    # -------------------------------------------------------------------------
    # Project operations
    # -------------------------------------------------------------------------

    def get_project(self, name: str) -> dict[str, Any]:
        """Get a project by name."""
        return self._request_json("GET", f"{self._org_prefix}/project/{_segment(name)}")

    def create_project(self, project: dict[str, Any]) -> dict[str, Any]:
        """Create a new project."""
        logger.info("Creating project: %s", project["metadata"]["name"])
        return self._request_json("POST", f"{self._org_prefix}/project", payload=project)

    def update_project(self, project: dict[str, Any]) -> dict[str, Any]:
        """Update an existing project."""
        name = project["metadata"]["name"]
        logger.info("Updating project: %s", name)
        return self._request_json(
            "PUT", f"{self._org_prefix}/project/{_segment(name)}", payload=project
        )

    def delete_project(self, name: str) -> None:
        """Delete a project."""
        logger.info("Deleting project: %s", name)
        self._request("DELETE", f"{self._org_prefix}/project/{_segment(name)}")

    # -------------------------------------------------------------------------
    # Group operations
    # -------------------------------------------------------------------------

    def get_group(self, name: str) -> dict[str, Any]:
        """Get a group by name."""
        return self._request_json("GET", f"{self._org_prefix}/group/{_segment(name)}")

    def create_group(self, group: dict[str, Any]) -> dict[str, Any]:
        """Create a new group."""
        logger.info("Creating group: %s", group["metadata"]["name"])
        return self._request_json("POST", f"{self._org_prefix}/groups", payload=group)

    def update_group(self, group: dict[str, Any]) -> dict[str, Any]:
        """Update an existing group."""
        name = group["metadata"]["name"]
        logger.info("Updating group: %s", name)
        return self._request_json(
            "PUT", f"{self._org_prefix}/group/{_segment(name)}", payload=group
        )

    def delete_group(self, name: str) -> None:
        """Delete a group."""
        logger.info("Deleting group: %s", name)
        self._request("DELETE", f"{self._org_prefix}/group/{_segment(name)}")

    # -------------------------------------------------------------------------
    # User operations
    # -------------------------------------------------------------------------

    def get_user(self, name: str) -> dict[str, Any]:
        """Get a user by name (the user's email)."""
        return self._request_json("GET", f"/auth/v3/user/{_segment(name)}")

    def list_users(self, params: list[str]) -> list[dict[str, Any]]:
        """List users matching ordered key=value query parameters."""
        pairs = [tuple(p.split("=", 1)) for p in params if "=" in p]
        result = self._request_json("GET", "/auth/v3/users", params=pairs)  # type: ignore[arg-type]
        return list(result.get("items") or [])

    # -------------------------------------------------------------------------
    # Cluster operations
    # -------------------------------------------------------------------------

    def _cluster_uri(self, project: str, name: str | None = None) -> str:
        uri = f"/infra/v3/project/{_segment(project)}/cluster"
        if name is not None:
            uri += f"/{_segment(name)}"
        return uri

    def get_cluster(self, project: str, name: str) -> dict[str, Any]:
        """Get a cluster by name within a project."""
        return self._request_json("GET", self._cluster_uri(project, name))

    def create_cluster(self, cluster: dict[str, Any]) -> dict[str, Any]:
        """Create a new cluster in the project named by its metadata."""
        project = cluster["metadata"]["project"]
        logger.info(
            "Creating cluster: %s in project %s", cluster["metadata"]["name"], project
        )
        return self._request_json("POST", self._cluster_uri(project), payload=cluster)

    def update_cluster(self, cluster: dict[str, Any]) -> dict[str, Any]:
        """Update an existing cluster."""
        project = cluster["metadata"]["project"]
        name = cluster["metadata"]["name"]
        logger.info("Updating cluster: %s in project %s", name, project)
        return self._request_json(
            "PUT", self._cluster_uri(project, name), payload=cluster
        )

    def delete_cluster(self, project: str, name: str) -> None:
        """Delete a cluster."""
        logger.info("Deleting cluster: %s in project %s", name, project)
        self._request("DELETE", self._cluster_uri(project, name))

    def _list_clusters_page(
        self, project: str, limit: int, offset: int
    ) -> tuple[list[dict[str, Any]], int]:
        if limit < 0 or offset < 0:
            raise ValidationError(
                f"provided limit ({limit}) or offset ({offset}) cannot be negative"
            )
        result = self._request_json(
            "GET",
            self._cluster_uri(project),
            params=[("limit", str(limit)), ("offset", str(offset))],
        )
        count = int((result.get("metadata") or {}).get("count") or 0)
        return list(result.get("items") or []), count

    def list_clusters(self, project: str) -> list[dict[str, Any]]:
        """List every cluster in a project, following pagination."""
        limit = CLUSTER_LIST_PAGE_SIZE
        clusters, count = self._list_clusters_page(project, limit, 0)
        while len(clusters) < count:
            page, _ = self._list_clusters_page(project, limit, len(clusters))
            if not page:
                break
            clusters.extend(page)
        return clusters

    def get_bootstrap_file(self, project: str, name: str) -> str:
        """Download the agent bootstrap YAML of an imported cluster."""
        return self._request("GET", self._cluster_uri(project, name) + "/download")

    # -------------------------------------------------------------------------
    # Kubeconfig operations
    # -------------------------------------------------------------------------

    def get_kubeconfig(
        self,
        account_id: str,
        namespace: str | None = None,
        cluster: str | None = None,
    ) -> str:
        """Download the kubeconfig issued to a user account."""
        params: list[tuple[str, str]] = []
        if namespace:
            params.append(("namespace", namespace))
        if cluster:
            params.append(("opts.selector", f"paralus.dev/clusterName={cluster}"))
        params.append(("opts.account", account_id))
        params.append(("opts.organization", self.config.organization))
        return self._request("GET", "/v2/sentry/kubeconfig/user", params=params)
