"""Core error types for proxy configuration."""


class ProxySwitchError(Exception):
    """Base exception for all proxyswitch errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        """Initialize with a message and optional cause.

        Args:
            message: The error message
            cause: The underlying exception that caused this error
        """
        super().__init__(message)
        self.cause = cause
        if cause:
            # Use Python's exception chaining
            self.__cause__ = cause


class ProxyConfigurationError(ProxySwitchError):
    """Error raised when a proxy configuration cannot be applied.

    Raising one of these never leaves the client partially reconfigured:
    the previously active transport and proxy string stay in effect.
    """


class ProxyURLParseError(ProxyConfigurationError):
    """Error raised when a proxy URL string is malformed."""

    def __init__(
        self, message: str, url: str | None = None, cause: Exception | None = None
    ):
        """Initialize with a message, the offending URL, and cause.

        Args:
            message: The error message
            url: The proxy string that failed to parse
            cause: The underlying parse exception
        """
        super().__init__(message, cause)
        self.url = url


class UnsupportedSchemeError(ProxyConfigurationError):
    """Error raised when a proxy URL uses a scheme with no routing strategy."""

    def __init__(self, scheme: str, cause: Exception | None = None):
        """Initialize with the offending scheme.

        Args:
            scheme: The scheme string taken from the proxy URL
            cause: The underlying exception, if any
        """
        super().__init__(f"Unsupported proxy scheme: {scheme!r}", cause)
        self.scheme = scheme


class SOCKS5DialerConstructionError(ProxyConfigurationError):
    """Error raised when the SOCKS5 transport cannot be constructed."""

    def __init__(
        self, message: str, url: str | None = None, cause: Exception | None = None
    ):
        super().__init__(message, cause)
        self.url = url
