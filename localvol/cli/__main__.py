#!/usr/bin/env python3
"""
Entry point for localvol CLI tool.
"""

import sys

from localvol.cli.cli import main

if __name__ == "__main__":
    sys.exit(main())
