"""Test utilities for rampart applications::

    from rampart.testing import TestClient
"""

from rampart.testing.client import TestClient

__all__ = ["TestClient"]
