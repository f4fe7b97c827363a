#!/usr/bin/env python3
"""Run the pokemon-showdown launcher from a checkout without installing it."""

import sys
from pathlib import Path

# Add src to PYTHONPATH
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from showdown_pcc.cli import main

if __name__ == "__main__":
    main()
