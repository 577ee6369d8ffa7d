"""Broker API layer: error hierarchy and the in-memory paper broker."""

from gridbot.api.exceptions import (
    BrokerAPIError,
    BrokerNotAvailableError,
    InsufficientFundsError,
    OrderRejectedError,
    PositionNotFoundError,
)

__all__ = [
    "BrokerAPIError",
    "BrokerNotAvailableError",
    "InsufficientFundsError",
    "OrderRejectedError",
    "PositionNotFoundError",
]
