"""Run the operator: python -m global_mirror"""

import logging
import sys

from global_mirror.config import Settings, configure_logging
from global_mirror.store import KubernetesStore, load_client_config
from global_mirror.watcher import GlobalMirrorOperatorService

logger = logging.getLogger('global_mirror')


def main() -> int:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    try:
        load_client_config()
        service = GlobalMirrorOperatorService(KubernetesStore(), settings)
        service.install_signal_handlers()
        service.run()
    except Exception as e:
        logger.critical(f"FATAL ERROR: {e}", exc_info=True)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
