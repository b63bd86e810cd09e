"""
Global EndpointSlice handling.

For every source cluster one EndpointSlice named `<global>-<cluster>` backs
the global Service through `kubernetes.io/service-name`. Its endpoints are
copied from the shard's own slices with the cluster appended to each
hostname, so `nginx-set-0.orders-svc-global` becomes
`nginx-set-0-us.orders-svc-global` and every pod keeps a unique A record.
"""

import copy
import logging
from typing import Dict, List, Tuple

from kubernetes import client

from global_mirror.constants import (
    CLUSTER_NAME_LABEL,
    DEFAULT_ADDRESS_TYPE,
    GLOBAL_MIRROR_OF_LABEL,
    MANAGED_BY,
    MANAGED_BY_LABEL,
    SERVICE_NAME_LABEL,
)
from global_mirror.errors import EndpointsNotReady
from global_mirror.identity import Identity
from global_mirror.service import check_exists, dedupe_ports

logger = logging.getLogger(__name__)


def qualify_hostname(hostname, cluster_name: str) -> str:
    if not hostname:
        return ''
    if cluster_name in hostname:
        return hostname
    return f"{hostname}-{cluster_name}"


def translate_endpoints(slices: List[Dict], cluster_name: str) -> Tuple[List[Dict], List[Dict], str]:
    """
    Flatten the shard's slices into (endpoints, ports, address type).
    Endpoints keep addresses and conditions as they are.
    """
    endpoints = []
    ports = []
    for eps in slices:
        for endpoint in eps.get('endpoints') or []:
            translated = copy.deepcopy(endpoint)
            translated['hostname'] = qualify_hostname(endpoint.get('hostname'), cluster_name)
            endpoints.append(translated)
        ports.extend(eps.get('ports') or [])

    address_type = DEFAULT_ADDRESS_TYPE
    for eps in slices:
        if eps.get('addressType'):
            address_type = eps['addressType']
            break

    return endpoints, dedupe_ports(ports), address_type


def shard_endpoint_slices(store, identity: Identity) -> List[Dict]:
    """EndpointSlices the shard's own parent Service owns"""
    return store.list_endpoint_slices(identity.namespace, labels={SERVICE_NAME_LABEL: identity.parent_name})


def global_endpointslice_exists(store, identity: Identity, namespace: str) -> Tuple[bool, str]:
    name = identity.endpointslice_name()
    items = store.list_endpoint_slices(namespace, name=name)
    return check_exists(items, 'EndpointSlice', name), name


def _wire_endpoint(endpoint: Dict) -> Dict:
    # The API validates any non-nil hostname as a DNS label, '' included
    if endpoint.get('hostname'):
        return endpoint
    return {k: v for k, v in endpoint.items() if k != 'hostname'}


def build_global_endpointslice(identity: Identity, namespace: str, endpoints: List[Dict],
                               ports: List[Dict], address_type: str) -> client.V1EndpointSlice:
    return client.V1EndpointSlice(
        api_version='discovery.k8s.io/v1',
        kind='EndpointSlice',
        metadata=client.V1ObjectMeta(
            name=identity.endpointslice_name(),
            namespace=namespace,
            labels={
                SERVICE_NAME_LABEL: identity.global_name,
                CLUSTER_NAME_LABEL: identity.cluster_name,
                MANAGED_BY_LABEL: MANAGED_BY,
                GLOBAL_MIRROR_OF_LABEL: identity.base_name,
            }
        ),
        address_type=address_type,
        endpoints=[_wire_endpoint(endpoint) for endpoint in endpoints],
        ports=ports
    )


def create_global_endpointslice(store, identity: Identity, namespace: str, endpoints: List[Dict],
                                ports: List[Dict], address_type: str) -> client.V1EndpointSlice:
    """Persist the per-cluster slice; raises CreateConflict if it already exists"""
    eps = build_global_endpointslice(identity, namespace, endpoints, ports, address_type)
    store.create_endpoint_slice(namespace, eps)
    logger.info(f"Created EndpointSlice {namespace}/{eps.metadata.name} with {len(endpoints)} endpoints")
    return eps


def ensure_global_endpointslice(store, identity: Identity, namespace: str) -> bool:
    """Create the per-cluster slice when absent. Returns True if it was created."""
    exists, name = global_endpointslice_exists(store, identity, namespace)
    if exists:
        logger.debug(f"EndpointSlice {namespace}/{name} already exists, skipping creation")
        return False

    slices = shard_endpoint_slices(store, identity)
    endpoints, ports, address_type = translate_endpoints(slices, identity.cluster_name)
    logger.debug(f"Translated {len(endpoints)} endpoints from {len(slices)} slices of {identity.parent_name}")
    # Slices are never updated once created, so an empty one would stay empty
    if not endpoints:
        raise EndpointsNotReady(f"No endpoints observed yet for {identity.namespace}/{identity.parent_name}")
    create_global_endpointslice(store, identity, namespace, endpoints, ports, address_type)
    return True
