"""Test fixtures for in-memory implementations."""

from .fake_wallet_api import FakeClock, FakeWalletApi
from .waiting import wait_until

__all__ = [
    "FakeClock",
    "FakeWalletApi",
    "wait_until",
]
