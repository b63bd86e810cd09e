"""Operator settings, read from environment variables"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Settings:
    log_level: str = 'INFO'
    requeue_seconds: float = 5.0
    resync_seconds: float = 300.0
    shared_dir: str = '/shared'
    # Empty means: same namespace as the triggering shard
    global_namespace: str = ''

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'Settings':
        env = os.environ if env is None else env
        return cls(
            log_level=env.get('GLOBAL_MIRROR_LOG_LEVEL', 'INFO').upper(),
            requeue_seconds=float(env.get('GLOBAL_MIRROR_REQUEUE_SECONDS', '5')),
            resync_seconds=float(env.get('GLOBAL_MIRROR_RESYNC_SECONDS', '300')),
            shared_dir=env.get('GLOBAL_MIRROR_SHARED_DIR', '/shared'),
            global_namespace=env.get('GLOBAL_MIRROR_NAMESPACE', ''),
        )

    def target_namespace(self, shard_namespace: str) -> str:
        return self.global_namespace or shard_namespace


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )
