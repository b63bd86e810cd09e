"""
Global Mirror Operator
Aggregates per-cluster mirrored headless Services into one global Service
and one EndpointSlice per source cluster
"""

from global_mirror.identity import Identity, resolve_identity
from global_mirror.reconciler import Converged, RetryAfter, reconcile

__all__ = [
    "Identity",
    "resolve_identity",
    "Converged",
    "RetryAfter",
    "reconcile",
]
