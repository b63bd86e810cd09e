"""
Request loop: shell-operator writes binding contexts for mirrored Service
events into the shared directory, we reconcile and write the response back.
Retries and periodic full resyncs are scheduled here, never inside the
reconciler itself.
"""

import json
import logging
import os
import signal
import time
from typing import Dict, List, Optional, Tuple

from global_mirror.config import Settings
from global_mirror.constants import MIRRORED_SERVICE_LABEL
from global_mirror.errors import GlobalMirrorError
from global_mirror.reconciler import RetryAfter, reconcile
from global_mirror.service import check_exists

logger = logging.getLogger(__name__)


def is_mirrored_service(obj: Dict) -> bool:
    labels = (obj.get('metadata') or {}).get('labels') or {}
    return labels.get(MIRRORED_SERVICE_LABEL) == 'true'


def objects_from_binding(binding: Dict) -> List[Dict]:
    """Objects a single binding asks us to reconcile"""
    if binding.get('type') == 'Synchronization':
        return [wrapper.get('object', {}) for wrapper in binding.get('objects') or []]

    if binding.get('watchEvent') == 'Deleted':
        # Global objects are never garbage collected by this operator
        return []

    if 'object' in binding:
        return [binding['object']]
    return [wrapper.get('object', {}) for wrapper in binding.get('objects') or []]


class RequeueSchedule:
    """Pending retries keyed by namespace/name, at most one per key"""

    def __init__(self):
        self._pending: Dict[str, Tuple[float, str, str]] = {}

    def __len__(self):
        return len(self._pending)

    def __contains__(self, key):
        return key in self._pending

    def schedule(self, namespace: str, name: str, delay: float, now: float):
        self._pending[f"{namespace}/{name}"] = (now + delay, namespace, name)

    def cancel(self, namespace: str, name: str):
        self._pending.pop(f"{namespace}/{name}", None)

    def due(self, now: float) -> List[Tuple[str, str]]:
        """Pop and return every (namespace, name) whose delay has passed"""
        ready = [key for key, (due_at, _, _) in self._pending.items() if due_at <= now]
        result = []
        for key in ready:
            _, namespace, name = self._pending.pop(key)
            result.append((namespace, name))
        return result


class GlobalMirrorOperatorService:
    """Main service for reconciling mirrored Services into global Services"""

    def __init__(self, store, settings: Settings, clock=time.monotonic):
        self.store = store
        self.settings = settings
        self.clock = clock
        self.running = True
        self.requeue = RequeueSchedule()
        self.last_resync: Optional[float] = None

        logger.info(f"Global Mirror Operator Service initialized (requeue={settings.requeue_seconds}s, "
                    f"resync={settings.resync_seconds}s, namespace={settings.global_namespace or '<shard>'})")

    def install_signal_handlers(self):
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

    def _handle_shutdown(self, signum, frame):
        """Handle graceful shutdown"""
        logger.info(f"[shutdown] Received signal {signum}, shutting down...")
        self.running = False

    def reconcile_object(self, obj: Dict):
        metadata = obj.get('metadata') or {}
        namespace = metadata.get('namespace', '')
        name = metadata.get('name', '')

        result = reconcile(self.store, obj, self.settings)
        if isinstance(result, RetryAfter):
            logger.debug(f"Requeueing {namespace}/{name} in {result.delay}s")
            self.requeue.schedule(namespace, name, result.delay, self.clock())
        else:
            self.requeue.cancel(namespace, name)
        return result

    def process_binding_context(self, context_data: List[Dict]) -> int:
        """Reconcile every mirrored Service in a binding context, returns how many"""
        if not context_data:
            raise ValueError("Empty binding context")

        count = 0
        for binding in context_data:
            for obj in objects_from_binding(binding):
                if not is_mirrored_service(obj):
                    continue
                try:
                    self.reconcile_object(obj)
                    count += 1
                except Exception as e:
                    name = (obj.get('metadata') or {}).get('name')
                    logger.error(f"Failed to reconcile mirrored service {name}: {e}", exc_info=True)
        return count

    def process_requeues(self):
        """Retry due objects against their current state in the store"""
        for namespace, name in self.requeue.due(self.clock()):
            try:
                items = self.store.list_services(namespace, name=name)
                if not check_exists(items, 'Service', name):
                    logger.info(f"Service {namespace}/{name} is gone, dropping retry")
                    continue
            except GlobalMirrorError as e:
                logger.warning(f"Failed to re-read {namespace}/{name}: {e}")
                self.requeue.schedule(namespace, name, self.settings.requeue_seconds, self.clock())
                continue

            self.reconcile_object(items[0])

    def reconcile_all(self):
        """Reconcile every mirrored Service in the cluster"""
        logger.info("=== Starting full reconciliation ===")
        try:
            services = self.store.list_mirrored_services()
        except GlobalMirrorError as e:
            logger.warning(f"Failed to list mirrored services: {e}")
            return

        logger.info(f"Found {len(services)} mirrored services to reconcile")
        for svc in services:
            if not self.running:
                logger.info("[shutdown] Stopping reconciliation...")
                break
            try:
                self.reconcile_object(svc)
            except Exception as e:
                name = (svc.get('metadata') or {}).get('name')
                logger.error(f"Failed to reconcile mirrored service {name}: {e}", exc_info=True)

        logger.info("=== Reconciliation complete ===")

    def maybe_resync(self):
        now = self.clock()
        if self.last_resync is None or now - self.last_resync >= self.settings.resync_seconds:
            self.last_resync = now
            self.reconcile_all()

    def handle_request_file(self, request_path: str):
        request_id = os.path.basename(request_path).replace('request-', '').replace('.json', '')
        response_path = os.path.join(os.path.dirname(request_path), f'response-{request_id}.txt')
        try:
            with open(request_path, 'r') as f:
                context_data = json.load(f)

            logger.info(f"[handler] Processing request from {os.path.basename(request_path)}")
            count = self.process_binding_context(context_data)
            response = "OK"
            logger.info(f"[handler] Processed {count} mirrored services")
        except Exception as e:
            response = f"ERROR: {e}"
            logger.error(f"Error processing request {request_path}: {e}", exc_info=True)

        with open(response_path, 'w') as f:
            f.write(response)

        try:
            os.remove(request_path)
        except FileNotFoundError:
            pass

    def run_once(self):
        self.maybe_resync()

        shared_dir = self.settings.shared_dir
        if not os.path.exists(shared_dir):
            logger.warning(f"Shared directory {shared_dir} does not exist, waiting...")
        else:
            request_files = sorted(f for f in os.listdir(shared_dir)
                                   if f.startswith('request-') and f.endswith('.json'))
            for request_file in request_files:
                if not self.running:
                    logger.info("[shutdown] Stopping request processing...")
                    break
                self.handle_request_file(os.path.join(shared_dir, request_file))

        self.process_requeues()

    def run(self):
        """Main service loop"""
        logger.info(f"Global Mirror Operator service watching {self.settings.shared_dir}")

        while self.running:
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Error in main loop: {e}", exc_info=True)
                time.sleep(1)
                continue

            # Small delay to avoid busy loop
            time.sleep(0.1)

        logger.info("[shutdown] Service stopped cleanly")
