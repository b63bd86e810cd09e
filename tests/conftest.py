"""Shared fixtures: an in-memory object store and object factories"""

import copy

import pytest
from kubernetes import client

from global_mirror.config import Settings
from global_mirror.constants import (
    CLUSTER_NAME_LABEL,
    HEADLESS_PARENT_LABEL,
    MIRRORED_SERVICE_LABEL,
    SERVICE_NAME_LABEL,
)
from global_mirror.errors import CreateConflict

_serializer = client.ApiClient()


def port(number, name=None, protocol='TCP', target=None):
    result = {'port': number, 'protocol': protocol, 'targetPort': number if target is None else target}
    if name:
        result['name'] = name
    return result


def make_service(name, cluster=None, ports=(), namespace='default', parent=None, mirrored=True):
    labels = {}
    if mirrored:
        labels[MIRRORED_SERVICE_LABEL] = 'true'
    if cluster is not None:
        labels[CLUSTER_NAME_LABEL] = cluster
    if parent is not None:
        labels[HEADLESS_PARENT_LABEL] = parent
    return {
        'apiVersion': 'v1',
        'kind': 'Service',
        'metadata': {'name': name, 'namespace': namespace, 'labels': labels},
        'spec': {'clusterIP': 'None', 'ports': list(ports)},
    }


def make_endpoint(ip, hostname=None, ready=True):
    endpoint = {'addresses': [ip], 'conditions': {'ready': ready, 'serving': ready}}
    if hostname is not None:
        endpoint['hostname'] = hostname
    return endpoint


def make_slice(name, service_name, endpoints, namespace='default', ports=None, address_type='IPv4'):
    eps = {
        'apiVersion': 'discovery.k8s.io/v1',
        'kind': 'EndpointSlice',
        'metadata': {'name': name, 'namespace': namespace, 'labels': {SERVICE_NAME_LABEL: service_name}},
        'endpoints': list(endpoints),
        'ports': ports if ports is not None else [{'name': 'http', 'port': 80, 'protocol': 'TCP'}],
    }
    if address_type:
        eps['addressType'] = address_type
    return eps


def _matches(obj, namespace, name, labels):
    metadata = obj.get('metadata') or {}
    if namespace is not None and metadata.get('namespace') != namespace:
        return False
    if name is not None and metadata.get('name') != name:
        return False
    obj_labels = metadata.get('labels') or {}
    return all(obj_labels.get(k) == v for k, v in (labels or {}).items())


class FakeStore:
    """
    In-memory stand-in for KubernetesStore.

    stale_service_lookups: number of upcoming exact-name Service lookups that
    return nothing, as a lagging read would.
    failures: method name -> exception raised once on the next call.
    """

    def __init__(self):
        self.services = []
        self.endpoint_slices = []
        self.namespaces = {'default'}
        self.created = []
        self.stale_service_lookups = 0
        self.failures = {}

    def _maybe_fail(self, method):
        exc = self.failures.pop(method, None)
        if exc is not None:
            raise exc

    def add(self, *objects):
        for obj in objects:
            if obj['kind'] == 'Service':
                self.services.append(copy.deepcopy(obj))
            else:
                self.endpoint_slices.append(copy.deepcopy(obj))
        return self

    def get_service(self, namespace, name):
        found = [s for s in self.services if _matches(s, namespace, name, None)]
        return found[0] if found else None

    def get_endpoint_slice(self, namespace, name):
        found = [e for e in self.endpoint_slices if _matches(e, namespace, name, None)]
        return found[0] if found else None

    def list_services(self, namespace, name=None, labels=None):
        self._maybe_fail('list_services')
        if name is not None and self.stale_service_lookups > 0:
            self.stale_service_lookups -= 1
            return []
        return [copy.deepcopy(s) for s in self.services if _matches(s, namespace, name, labels)]

    def list_mirrored_services(self):
        self._maybe_fail('list_mirrored_services')
        return [copy.deepcopy(s) for s in self.services
                if _matches(s, None, None, {MIRRORED_SERVICE_LABEL: 'true'})]

    def list_endpoint_slices(self, namespace, name=None, labels=None):
        self._maybe_fail('list_endpoint_slices')
        return [copy.deepcopy(e) for e in self.endpoint_slices if _matches(e, namespace, name, labels)]

    def _create(self, kind, collection, namespace, body):
        obj = _serializer.sanitize_for_serialization(body)
        name = obj['metadata']['name']
        if any(_matches(o, namespace, name, None) for o in collection):
            raise CreateConflict(kind, namespace, name)
        obj['metadata']['namespace'] = namespace
        collection.append(obj)
        self.created.append((kind, namespace, name))

    def create_service(self, namespace, body):
        self._maybe_fail('create_service')
        self._create('Service', self.services, namespace, body)

    def create_endpoint_slice(self, namespace, body):
        self._maybe_fail('create_endpoint_slice')
        self._create('EndpointSlice', self.endpoint_slices, namespace, body)

    def ensure_namespace(self, name):
        self._maybe_fail('ensure_namespace')
        self.namespaces.add(name)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def settings():
    return Settings(requeue_seconds=5.0, resync_seconds=300.0)


@pytest.fixture
def orders_store(store):
    """Two clusters mirroring orders-svc, as in the multicluster walkthrough"""
    store.add(
        make_service('orders-svc-us', cluster='us', ports=[port(80, 'http')]),
        make_service('orders-svc-eu', cluster='eu', ports=[port(80, 'http'), port(443, 'https')]),
        make_slice('orders-svc-us-abc12', 'orders-svc-us', [
            make_endpoint('10.0.1.10', 'orders-0'),
            make_endpoint('10.0.1.11', 'orders-1'),
        ]),
        make_slice('orders-svc-eu-def34', 'orders-svc-eu', [
            make_endpoint('10.1.1.10', 'orders-0'),
        ]),
    )
    return store
