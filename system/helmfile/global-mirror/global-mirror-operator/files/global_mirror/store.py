"""
Object store access for the reconciler.

Every component receives the store explicitly and only uses the calls below,
so tests can hand in an in-memory double instead of a live API server.
Objects are returned as plain camelCase dicts, the same shape shell-operator
puts into binding contexts.
"""

import logging
from typing import Any, Dict, List, Optional

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from global_mirror.constants import MIRRORED_SERVICE_LABEL
from global_mirror.errors import CreateConflict, TransientStoreError

logger = logging.getLogger(__name__)


def load_client_config():
    """Load in-cluster config, falling back to the local kubeconfig"""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except ConfigException:
        config.load_kube_config()
        logger.info("Loaded Kubernetes config from kubeconfig")


def label_selector(labels: Optional[Dict[str, str]]) -> Optional[str]:
    if not labels:
        return None
    return ','.join(f"{key}={value}" for key, value in sorted(labels.items()))


def field_selector(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return f"metadata.name={name}"


class KubernetesStore:
    """Thin wrapper over the core and discovery APIs"""

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self.api_client = api_client or client.ApiClient()
        self.v1 = client.CoreV1Api(self.api_client)
        self.discovery_v1 = client.DiscoveryV1Api(self.api_client)

    def _to_dicts(self, result) -> List[Dict[str, Any]]:
        return [self.api_client.sanitize_for_serialization(item) for item in result.items]

    def _list(self, what: str, call, **kwargs) -> List[Dict[str, Any]]:
        kwargs = {k: v for k, v in kwargs.items() if v is not None}
        try:
            return self._to_dicts(call(**kwargs))
        except ApiException as e:
            raise TransientStoreError(f"Failed to list {what} ({kwargs}): {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise TransientStoreError(f"Failed to list {what} ({kwargs}): {e}") from e

    def _create(self, kind: str, namespace: str, body, call):
        name = body.metadata.name
        try:
            call(namespace=namespace, body=body)
        except ApiException as e:
            if e.status == 409:
                raise CreateConflict(kind, namespace, name) from e
            raise TransientStoreError(f"Failed to create {kind} {namespace}/{name}: {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise TransientStoreError(f"Failed to create {kind} {namespace}/{name}: {e}") from e

    # Services
    def list_services(self, namespace: str, name: Optional[str] = None,
                      labels: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """List Services in a namespace by exact name and/or label equality"""
        return self._list(
            'services',
            self.v1.list_namespaced_service,
            namespace=namespace,
            field_selector=field_selector(name),
            label_selector=label_selector(labels),
        )

    def list_mirrored_services(self) -> List[Dict[str, Any]]:
        """List mirrored Services in all namespaces"""
        return self._list(
            'mirrored services',
            self.v1.list_service_for_all_namespaces,
            label_selector=label_selector({MIRRORED_SERVICE_LABEL: 'true'}),
        )

    def create_service(self, namespace: str, body: client.V1Service):
        self._create('Service', namespace, body, self.v1.create_namespaced_service)

    # EndpointSlices
    def list_endpoint_slices(self, namespace: str, name: Optional[str] = None,
                             labels: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """List EndpointSlices in a namespace by exact name and/or label equality"""
        return self._list(
            'endpointslices',
            self.discovery_v1.list_namespaced_endpoint_slice,
            namespace=namespace,
            field_selector=field_selector(name),
            label_selector=label_selector(labels),
        )

    def create_endpoint_slice(self, namespace: str, body: client.V1EndpointSlice):
        self._create('EndpointSlice', namespace, body, self.discovery_v1.create_namespaced_endpoint_slice)

    # Namespaces
    def ensure_namespace(self, name: str):
        """Create the namespace if it does not exist yet"""
        try:
            self.v1.read_namespace(name=name)
            return
        except ApiException as e:
            if e.status != 404:
                raise TransientStoreError(f"Failed to read namespace {name}: {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise TransientStoreError(f"Failed to read namespace {name}: {e}") from e

        try:
            self.v1.create_namespace(body=client.V1Namespace(
                metadata=client.V1ObjectMeta(name=name)
            ))
            logger.info(f"Created namespace {name}")
        except ApiException as e:
            if e.status != 409:
                raise TransientStoreError(f"Failed to create namespace {name}: {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise TransientStoreError(f"Failed to create namespace {name}: {e}") from e
