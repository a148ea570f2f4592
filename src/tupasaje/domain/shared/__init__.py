"""Shared domain utilities.

This package is domain-accessible and should not depend on application code.
"""

from .wallet_api_protocol import WalletApiProtocol

__all__ = ["WalletApiProtocol"]
