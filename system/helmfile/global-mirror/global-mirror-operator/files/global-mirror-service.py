#!/usr/bin/env python3
"""
Global Mirror Operator Service
Watches mirrored headless Services and maintains a global Service plus one
EndpointSlice per source cluster
"""

import sys

from global_mirror.__main__ import main


if __name__ == '__main__':
    sys.exit(main())
