#!/usr/bin/env python3
"""Keep an LG webOS TV's input in sync with a monitor"""

__version__ = "1.0.0"
