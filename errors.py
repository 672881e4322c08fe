# errors.py


class EntitlementError(Exception):
    """Base class for every error raised by the resolution engines."""


class NoCandidateError(EntitlementError):
    """No entitlement survived filtering for a request."""

    def __init__(self, request_id: str):
        super().__init__(f"No entitlement candidate for request {request_id}")
        self.request_id = request_id


class ExternalServiceError(EntitlementError):
    """Capacity planner timeout, HTTP failure or malformed body."""


class ConfigurationError(EntitlementError):
    """Malformed or missing field-mapping data."""


class CalculationError(EntitlementError):
    """Date arithmetic failed for a single request."""


class BusinessCalendarError(EntitlementError):
    """The business calendar is unavailable or never yields a business day."""


class ServiceDateOverrideError(EntitlementError):
    """A manual service date was set without the required override details."""


class BatchTooLargeError(EntitlementError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"Batch of {size} requests exceeds the limit of {limit}")
        self.size = size
        self.limit = limit
