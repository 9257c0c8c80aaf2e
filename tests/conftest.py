"""Pytest configuration for the exlower test suite."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
