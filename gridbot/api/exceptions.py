"""Custom exceptions for broker operations"""


class BrokerAPIError(Exception):
    """Base exception for all broker errors"""

    pass


class InsufficientFundsError(BrokerAPIError):
    """Raised when the account has no free margin/funds for an order"""

    pass


class OrderRejectedError(BrokerAPIError):
    """Raised when the broker declines an order for reasons other than funds"""

    pass


class PositionNotFoundError(BrokerAPIError):
    """Raised when a position id is unknown or already closed"""

    pass


class BrokerNotAvailableError(BrokerAPIError):
    """Raised when the broker cannot serve a request (disconnected, maintenance)"""

    pass
