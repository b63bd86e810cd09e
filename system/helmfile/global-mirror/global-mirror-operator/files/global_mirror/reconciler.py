"""
Reconcile driver.

One call handles one shard Service:
    resolve identity -> ensure global Service -> ensure EndpointSlice -> converged
Every step re-reads the store, so a failed attempt is simply run again from
the start after the requeue delay. Scheduling the retry is up to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

from global_mirror.config import Settings
from global_mirror.constants import HEADLESS_PARENT_LABEL
from global_mirror.endpointslice import ensure_global_endpointslice
from global_mirror.errors import (
    CreateConflict,
    EndpointsNotReady,
    IdentityMismatchError,
    StructuralError,
    TransientStoreError,
)
from global_mirror.identity import resolve_identity
from global_mirror.service import ensure_global_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Converged:
    """Nothing left to do until the next change of this object"""


@dataclass(frozen=True)
class RetryAfter:
    delay: float
    reason: str = ''


Result = Union[Converged, RetryAfter]


def reconcile(store, shard: Dict, settings: Optional[Settings] = None) -> Result:
    """Reconcile the global objects for one mirrored shard Service"""
    settings = settings or Settings()

    metadata = shard.get('metadata') or {}
    labels = metadata.get('labels') or {}
    key = f"{metadata.get('namespace')}/{metadata.get('name')}"

    # Only the shards themselves drive aggregation, not their per-pod children
    if HEADLESS_PARENT_LABEL in labels:
        logger.debug(f"Skipping {key}: carries {HEADLESS_PARENT_LABEL}")
        return Converged()

    identity = resolve_identity(shard)
    if identity.degenerate:
        logger.warning(f"Service {key} has no cluster name label, global name would be {identity.global_name!r}; skipping")
        return Converged()

    namespace = settings.target_namespace(identity.namespace)

    try:
        if not identity.suffix_match:
            raise IdentityMismatchError(
                f"Cluster name {identity.cluster_name!r} is not a suffix of {identity.parent_name!r}"
            )

        logger.info(f"Reconciling {key} -> {namespace}/{identity.global_name} (cluster {identity.cluster_name})")

        if settings.global_namespace:
            store.ensure_namespace(namespace)

        ensure_global_service(store, identity, namespace)
        ensure_global_endpointslice(store, identity, namespace)

    except CreateConflict as e:
        logger.info(f"{e}; requeueing {key} to re-check")
        return RetryAfter(settings.requeue_seconds, str(e))
    except EndpointsNotReady as e:
        logger.info(f"{e}; requeueing {key}")
        return RetryAfter(settings.requeue_seconds, str(e))
    except StructuralError as e:
        logger.error(f"Structural problem reconciling {key}: {e}")
        return RetryAfter(settings.requeue_seconds, str(e))
    except TransientStoreError as e:
        logger.warning(f"Failed to reconcile {key}: {e}")
        return RetryAfter(settings.requeue_seconds, str(e))

    logger.info(f"✓ Successfully reconciled {key}")
    return Converged()
