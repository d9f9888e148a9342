"""Shared operator state - thread-safe singleton for Paralus and Kubernetes clients."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from config import ParalusConfig
from paralus_client import ParalusClient


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    Handlers share one Paralus client (configured from the environment on
    first use) and one Kubernetes CoreV1Api for ConfigMaps and Secrets.
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _paralus_client: ParalusClient | None = field(default=None, repr=False)
    _k8s_core_api: k8s_client.CoreV1Api | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def get_paralus_client(self) -> ParalusClient:
        """Get or create the Paralus client (thread-safe).

        Raises:
            ConfigurationError: if the environment does not hold a usable
                Paralus configuration
        """
        with self._lock:
            if self._paralus_client is None:
                self._paralus_client = ParalusClient(ParalusConfig.from_env().validate())
            return self._paralus_client

    def get_k8s_core_api(self) -> k8s_client.CoreV1Api:
        """Get or create the Kubernetes CoreV1Api client (thread-safe)."""
        with self._lock:
            self._ensure_k8s_config()
            if self._k8s_core_api is None:
                self._k8s_core_api = k8s_client.CoreV1Api()
            return self._k8s_core_api

    def close(self) -> None:
        """Close all connections."""
        with self._lock:
            if self._paralus_client is not None:
                self._paralus_client.close()
                self._paralus_client = None


# Global operator state singleton
state = OperatorState()


def get_paralus_client() -> ParalusClient:
    """Get the shared Paralus client."""
    return state.get_paralus_client()


def get_k8s_core_api() -> k8s_client.CoreV1Api:
    """Get the shared Kubernetes CoreV1Api client."""
    return state.get_k8s_core_api()
