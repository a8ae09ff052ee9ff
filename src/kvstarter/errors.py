from __future__ import annotations


class StarterError(Exception):
    """Domain error with a stable error code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ConfigError(StarterError):
    pass


class DecodeError(StarterError):
    pass


class MarkerNotFoundError(StarterError):
    pass


class ProbeError(StarterError):
    pass


class DiscoveryError(StarterError):
    pass


class LaunchError(StarterError):
    pass
