from typing import Optional


class PlantMonitorError(Exception):
    """Base class for errors raised by the plant monitor."""


class ValidationError(PlantMonitorError):
    """A reading or settings payload is missing fields or is malformed."""


class ConfigurationError(PlantMonitorError):
    """A collaborator was needed but its credentials are not configured."""


class DataUnavailableError(PlantMonitorError):
    """No reading or settings record exists yet."""


class UpstreamServiceError(PlantMonitorError):
    """An external collaborator (text generation, social posting) failed."""

    def __init__(self, service: str, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        self.service = service
        self.status_code = status_code
        self.message = message or f"Request to {service} failed"
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        if self.status_code is not None and 400 <= self.status_code <= 599:
            return self.status_code
        return 502


class CredentialVerificationError(UpstreamServiceError):
    """The social-posting credentials were rejected during verification."""

    @property
    def http_status(self) -> int:
        return 401
