"""Domain-specific errors for chargectl."""


class ChargectlError(Exception):
    """Base error for chargectl."""


class ConfigValidationError(ChargectlError):
    """Raised when the config file does not conform to schema or semantics."""


class ConfigLoadError(ChargectlError):
    """Raised when reading or writing the config file fails."""


class StateStoreError(ChargectlError):
    """Raised when the confirmed state cannot be persisted."""


class BatteryUnavailableError(ChargectlError):
    """Raised when the host exposes no readable battery."""


class TransportError(ChargectlError):
    """Base transport error."""

    retryable = True


class AdapterDisabledError(TransportError):
    """Raised when the Bluetooth adapter is missing or powered off."""

    retryable = False


class ResolutionTimeoutError(TransportError):
    """Raised when no advertisement for the address arrives in time."""


class ScanFailedError(TransportError):
    """Raised when the platform aborts a scan."""


class ConnectTimeoutError(TransportError):
    """Raised when the link is not established in time."""


class ConnectFailedError(TransportError):
    """Raised when the platform rejects the connection."""


class ServiceNotFoundError(TransportError):
    """Raised when the accessory does not expose the command service."""


class CharacteristicNotFoundError(TransportError):
    """Raised when the command service lacks the write characteristic."""


class WriteFailedError(TransportError):
    """Raised when the characteristic write is not acknowledged."""


class RadioFaultError(TransportError):
    """Raised when the radio fails with an error no phase maps."""

    retryable = False


class RetriesExhaustedError(TransportError):
    """Raised once every retry of a command has failed."""

    retryable = False

    def __init__(self, message: str, *, last_error: TransportError | None = None) -> None:
        super().__init__(message)
        self.last_error = last_error


class SupersededError(TransportError):
    """Raised to awaiters of a command that a newer command replaced."""

    retryable = False
