#!/usr/bin/env python3
"""Crategate - main entry point.

Runs the gateway CLI from a source checkout; an installed package exposes
the same entry point as the ``crategate`` console script.
"""

import sys
from pathlib import Path

# Add src directory to Python path BEFORE imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from crategate.app.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
