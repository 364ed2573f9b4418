"""
Service-layer exceptions for check-in intake and escalation.

Intake errors surface to the caller (routes map them to HTTP status
codes). Sweep errors are caught per user/contact by the escalation
engine and only logged.
"""


class CheckInServiceError(Exception):
    """Base exception for check-in service operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class UserNotFound(CheckInServiceError):
    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found", operation="load_user", recoverable=False)
        self.user_id = user_id


class ServicePaused(CheckInServiceError):
    def __init__(self, user_id: int):
        super().__init__(
            "Service is paused, resume it before checking in",
            operation="submit_check_in",
        )
        self.user_id = user_id


class AlreadyCheckedInToday(CheckInServiceError):
    def __init__(self, user_id: int):
        super().__init__(
            "Already checked in today, come back tomorrow",
            operation="submit_check_in",
        )
        self.user_id = user_id


class ContactNotFound(CheckInServiceError):
    def __init__(self, contact_id: int):
        super().__init__(f"Contact {contact_id} not found", operation="load_contact")
        self.contact_id = contact_id


class DuplicateContact(CheckInServiceError):
    def __init__(self, phone: str):
        super().__init__("A contact with this phone number already exists", operation="save_contact")
        self.phone = phone


class NoContactsConfigured(CheckInServiceError):
    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} has no emergency contacts", operation="escalate")
        self.user_id = user_id


class NotificationDeliveryFailed(CheckInServiceError):
    def __init__(self, contact_phone: str, reason: str):
        super().__init__(f"Delivery to {contact_phone} failed: {reason}", operation="notify")
        self.contact_phone = contact_phone
        self.reason = reason


class PersistenceFailure(CheckInServiceError):
    def __init__(self, message: str, operation: str = "persist"):
        super().__init__(message, operation=operation)


class EscalationSuperseded(CheckInServiceError):
    """The user checked in or paused between classification and append."""

    def __init__(self, user_id: int):
        super().__init__(
            f"Escalation for user {user_id} superseded by a newer deadline",
            operation="append_escalation",
            recoverable=False,
        )
        self.user_id = user_id
