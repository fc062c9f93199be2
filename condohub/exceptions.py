"""Domain exceptions raised by workflow services that also run outside HTTP handlers"""


class CondoHubError(Exception):
    """Base class for domain errors"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BackupError(CondoHubError):
    """Backup could not be created or restored"""


class FeeGenerationError(CondoHubError):
    """Fees could not be generated"""


class LicenseError(CondoHubError):
    """License limit or minimum violated"""

    status_code = 403


class PaymentGatewayError(CondoHubError):
    """Payment provider request failed"""

    status_code = 502
