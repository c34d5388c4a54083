"""Fake/mock implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without external dependencies:

- FakeOrderRepository: In-memory order storage with captured writes
- FakeCatalog: Canned product snapshots
- FakeCartStore: In-memory cart
- FakeLocation: Configurable position, failure or delay
- FakeNotifier: Captured messages and scripted confirmations
"""

from .cart_store import FakeCartStore
from .catalog import FakeCatalog
from .location import FakeLocation
from .notifier import FakeNotifier
from .repository import FakeOrderRepository

__all__ = [
    "FakeCartStore",
    "FakeCatalog",
    "FakeLocation",
    "FakeNotifier",
    "FakeOrderRepository",
]
