"""Core exceptions for configuration and upstream handling.

This module contains shared exception classes to avoid circular imports
between the configuration loader and the gateway services.
"""


class ConfigurationError(Exception):
    """Raised when configuration loading or parsing fails."""

    def __init__(self, message: str, config_path: str | None = None) -> None:
        """Initialize the configuration error.

        Args:
            message: Error description
            config_path: Path to the config file that caused the error

        """
        super().__init__(message)
        self.config_path = config_path


class GatewayError(Exception):
    """Base exception for gateway-internal failures."""


class UpstreamError(GatewayError):
    """Raised internally when an upstream attempt fails with a non-success status.

    Never escapes the gateway: the upstream client converts it into a
    ``None`` result after logging.
    """

    def __init__(self, message: str, status: int, url: str, retry_after: str | None = None) -> None:
        """Initialize upstream error.

        Args:
            message: Error description
            status: HTTP status returned by the upstream API
            url: Requested URL
            retry_after: Raw ``Retry-After`` header value, if any

        """
        super().__init__(message)
        self.status = status
        self.url = url
        self.retry_after = retry_after
