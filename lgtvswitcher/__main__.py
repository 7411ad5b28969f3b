#!/usr/bin/env python3
"""LGTVSwitcher as run via python -m"""

import sys

import lgtvswitcher.daemon

if __name__ == "__main__":
    sys.exit(lgtvswitcher.daemon.main())
