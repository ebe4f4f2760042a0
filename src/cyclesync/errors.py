"""
Error taxonomy for sensor acquisition and orchestration.
"""


class CycleSyncError(Exception):
    """Base class for all cyclesync errors."""


class ConfigError(CycleSyncError):
    """Configuration file is missing, unreadable or invalid."""


class ResolutionError(CycleSyncError):
    """Failed to resolve the CSC Measurement characteristic."""


class ScanTimeout(ResolutionError):
    """No matching peripheral advertised within the scan window."""


class ConnectionFailed(ResolutionError):
    """Connecting to the matched peripheral failed."""


class ServiceNotFound(ResolutionError):
    """Peripheral does not expose the CSC service."""


class CharacteristicNotFound(ResolutionError):
    """CSC service does not expose the CSC Measurement characteristic."""


class SubscriptionFailed(CycleSyncError):
    """Enabling notifications on the characteristic failed."""


class ConnectionLost(CycleSyncError):
    """Peripheral disconnected while being monitored."""


class ContextCancelled(CycleSyncError):
    """Shutdown was requested while work was still in progress."""
