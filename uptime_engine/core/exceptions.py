"""Exceptions raised by alert channel delivery."""


class AlertDeliveryError(Exception):
    """Base class for a failed delivery to one alert channel."""
    pass


class ChannelConfigError(AlertDeliveryError):
    """A required per-channel or global setting is missing."""
    pass


class ChannelDeliveryError(AlertDeliveryError):
    """The destination rejected the request or returned an error status."""
    
    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status
