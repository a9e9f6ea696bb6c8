"""
Errors raised by the yield-delta plugin
"""


class YieldDeltaError(Exception):
    """Base class for plugin errors"""


class ConfigurationError(YieldDeltaError):
    """Missing or invalid settings"""


class PositionNotFoundError(YieldDeltaError, KeyError):
    """No position tracked under the given key"""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No position tracked for {self.key}"


class OrderPlacerNotConfiguredError(YieldDeltaError):
    """The AMM manager was asked to place an order without an order placer"""


class ProviderUnsupportedError(YieldDeltaError):
    """A hedge provider does not implement the requested capability"""


class ProviderUnavailableError(YieldDeltaError):
    """No hedge provider can serve the current geography/preference"""


class InvalidParametersError(YieldDeltaError, ValueError):
    """User supplied parameters failed business-rule validation"""


class TransactionError(YieldDeltaError):
    """A transaction could not be built, signed or submitted"""
