"""
Pytest configuration for the product sales workflow tests.

This file adds the project root to the Python path so that tests can import
the domain, repositories, services and api packages, and the tests directory
itself so that tests can import the shared fakes.
"""

import sys
from pathlib import Path

# Add the project root (and this directory, for `fakes`) to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))
