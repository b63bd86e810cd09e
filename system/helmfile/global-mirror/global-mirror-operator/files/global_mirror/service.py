"""
Global Service handling: existence check, port aggregation and creation.

Example, with two clusters mirrored into the same namespace:
    $ kubectl get svc
    NAME                 TYPE        CLUSTER-IP   PORT(S)
    orders-svc-us        ClusterIP   None         80/TCP
    orders-svc-eu        ClusterIP   None         80/TCP,443/TCP
    orders-svc-global    ClusterIP   None         80/TCP,443/TCP   <- created here
"""

import logging
from typing import Dict, List, Tuple

from kubernetes import client

from global_mirror.constants import (
    GLOBAL_MIRROR_OF_LABEL,
    HEADLESS_CLUSTER_IP,
    MANAGED_BY,
    MANAGED_BY_LABEL,
    MIRRORED_SERVICE_LABEL,
)
from global_mirror.errors import AmbiguousIdentityError
from global_mirror.identity import Identity, resolve_identity

logger = logging.getLogger(__name__)


def check_exists(items: List[Dict], kind: str, name: str) -> bool:
    """Exactly one match exists, none is absent, more than one is corruption"""
    if len(items) > 1:
        raise AmbiguousIdentityError(kind, name, len(items))
    return len(items) == 1


def global_service_exists(store, identity: Identity, namespace: str) -> Tuple[bool, str]:
    """Check whether the global Service for this identity exists"""
    global_name = identity.global_name
    logger.debug(f"Checking if global Service {namespace}/{global_name} exists")
    items = store.list_services(namespace, name=global_name)
    return check_exists(items, 'Service', global_name), global_name


def _port_key(port: Dict) -> Tuple:
    return (
        port.get('name'),
        port.get('protocol') or 'TCP',
        port.get('port'),
        port.get('targetPort'),
    )


def dedupe_ports(ports: List[Dict]) -> List[Dict]:
    """Drop repeated port definitions, keeping the first one seen"""
    seen = set()
    result = []
    for port in ports:
        key = _port_key(port)
        if key in seen:
            continue
        seen.add(key)
        result.append(port)
    return result


def aggregate_ports(store, identity: Identity) -> List[Dict]:
    """
    Union of the ports of every mirrored shard that resolves to the same
    global Service. Order follows the store's listing and is not stable.
    """
    shards = store.list_services(identity.namespace, labels={MIRRORED_SERVICE_LABEL: 'true'})

    ports = []
    for shard in shards:
        if resolve_identity(shard).global_name != identity.global_name:
            continue
        ports.extend((shard.get('spec') or {}).get('ports') or [])

    result = dedupe_ports(ports)
    logger.debug(f"Aggregated {len(result)} ports for {identity.global_name} from {len(shards)} mirrored services")
    return result


def _service_ports(ports: List[Dict]) -> List[Dict]:
    """Ports as they go on a headless Service"""
    result = []
    for index, port in enumerate(ports):
        port = {k: v for k, v in port.items() if k != 'nodePort'}
        # Multi-port Services need every port named
        if len(ports) > 1 and not port.get('name'):
            port['name'] = f"port-{index}"
        result.append(port)
    return result


def build_global_service(identity: Identity, namespace: str, ports: List[Dict]) -> client.V1Service:
    return client.V1Service(
        api_version='v1',
        kind='Service',
        metadata=client.V1ObjectMeta(
            name=identity.global_name,
            namespace=namespace,
            labels={
                GLOBAL_MIRROR_OF_LABEL: identity.base_name,
                MANAGED_BY_LABEL: MANAGED_BY,
            }
        ),
        spec=client.V1ServiceSpec(
            cluster_ip=HEADLESS_CLUSTER_IP,
            ports=_service_ports(ports)
        )
    )


def create_global_service(store, identity: Identity, namespace: str, ports: List[Dict]) -> client.V1Service:
    """Persist the global Service; raises CreateConflict if it already exists"""
    service = build_global_service(identity, namespace, ports)
    store.create_service(namespace, service)
    logger.info(f"Created global Service {namespace}/{identity.global_name} with {len(ports)} ports")
    return service


def ensure_global_service(store, identity: Identity, namespace: str) -> bool:
    """Create the global Service when absent. Returns True if it was created."""
    exists, global_name = global_service_exists(store, identity, namespace)
    if exists:
        logger.debug(f"Global Service {namespace}/{global_name} already exists, skipping creation")
        return False

    ports = aggregate_ports(store, identity)
    create_global_service(store, identity, namespace, ports)
    return True
