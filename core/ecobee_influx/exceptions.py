"""
Connector Custom Exceptions

Simple exception hierarchy for error handling.
Transient errors are retried by the sync loop, everything else is fatal.
"""


class EcobeeInfluxError(Exception):
    """Base exception for the connector."""

    pass


class ConfigurationError(EcobeeInfluxError):
    """Configuration is invalid."""

    pass


class AuthenticationError(EcobeeInfluxError):
    """Ecobee credentials are missing or were rejected."""

    pass


class EcobeeAPIError(EcobeeInfluxError):
    """Ecobee API request failed (network, HTTP or API status)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(EcobeeInfluxError):
    """Ecobee API returned a payload we cannot interpret."""

    pass


class SinkWriteError(EcobeeInfluxError):
    """InfluxDB rejected a write or is unreachable."""

    pass


class WatermarkError(EcobeeInfluxError):
    """The sync watermark could not be persisted."""

    pass


class SyncAbortedError(EcobeeInfluxError):
    """A sync window failed after all retry attempts."""

    def __init__(self, message: str, window=None):
        super().__init__(message)
        self.window = window
