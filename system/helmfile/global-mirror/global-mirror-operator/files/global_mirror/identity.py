"""
Identity resolution for mirrored shard Services.

A mirrored Service named `orders-svc-us` carrying the label
`mirror.linkerd.io/cluster-name: us` belongs to the global Service
`orders-svc-global`. Per-pod child Services point at their headless parent
through `mirror.linkerd.io/headless-mirror-svc-name` and resolve to the same
global name as that parent.
"""

from dataclasses import dataclass
from typing import Dict

from global_mirror.constants import CLUSTER_NAME_LABEL, GLOBAL_SUFFIX, HEADLESS_PARENT_LABEL


@dataclass(frozen=True)
class Identity:
    """Parsed identity of one shard Service"""
    name: str
    namespace: str
    parent_name: str
    cluster_name: str
    global_name: str

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_child(self) -> bool:
        return self.parent_name != self.name

    @property
    def degenerate(self) -> bool:
        """No cluster token, so the global name collapses onto the parent name"""
        return not self.cluster_name

    @property
    def suffix_match(self) -> bool:
        return bool(self.cluster_name) and self.parent_name.endswith(f"-{self.cluster_name}")

    @property
    def base_name(self) -> str:
        if self.global_name.endswith(GLOBAL_SUFFIX):
            return self.global_name[:-len(GLOBAL_SUFFIX)]
        return self.global_name

    def endpointslice_name(self) -> str:
        return f"{self.global_name}-{self.cluster_name}"


def derive_global_name(parent_name: str, cluster_name: str) -> str:
    """
    Replace the trailing `-<cluster>` of the parent name with `-global`.
    When the token is not a suffix, the first occurrence is replaced instead;
    an empty token leaves the name unchanged.
    """
    if not cluster_name:
        return parent_name

    token = f"-{cluster_name}"
    if parent_name.endswith(token):
        return parent_name[:-len(token)] + GLOBAL_SUFFIX
    return parent_name.replace(token, GLOBAL_SUFFIX, 1)


def resolve_identity(shard: Dict) -> Identity:
    """Build the Identity of a Service object given as an API dict"""
    metadata = shard.get('metadata') or {}
    labels = metadata.get('labels') or {}

    name = metadata.get('name', '')
    parent_name = labels.get(HEADLESS_PARENT_LABEL) or name
    cluster_name = labels.get(CLUSTER_NAME_LABEL, '')

    return Identity(
        name=name,
        namespace=metadata.get('namespace', ''),
        parent_name=parent_name,
        cluster_name=cluster_name,
        global_name=derive_global_name(parent_name, cluster_name),
    )
