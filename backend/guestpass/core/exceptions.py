"""Domain exceptions for the guest roster and check-in core.

Scan outcomes (unknown pass, pass already used) are not exceptions: the
check-in engine returns them as data. The classes below cover the cases the
caller must handle out of band.
"""


class GuestPassError(Exception):
    """Base exception for all GuestPass errors."""

    pass


class GuestNotFoundError(GuestPassError):
    """Raised when a guest id does not exist in the store."""

    def __init__(self, guest_id: str):
        self.guest_id = guest_id
        super().__init__(f"Guest '{guest_id}' not found")


class DuplicateGuestError(GuestPassError):
    """Raised when a guest id is already taken."""

    def __init__(self, guest_id: str):
        self.guest_id = guest_id
        super().__init__(f"Guest id '{guest_id}' already exists")


class GuestValidationError(GuestPassError):
    """Raised when a guest record fails field validation."""

    pass


class ImmutableFieldError(GuestValidationError):
    """Raised when an edit touches a field that admins may not change."""

    def __init__(self, fields):
        self.fields = sorted(fields)
        super().__init__(f"Fields cannot be edited: {', '.join(self.fields)}")


class AlreadyCheckedInError(GuestPassError):
    """Raised when a check-in is applied to a guest who is already checked in."""

    def __init__(self, guest):
        self.guest = guest
        super().__init__(f"Guest '{guest.id}' already checked in at {guest.check_in_time}")


class CategoryError(GuestPassError):
    """Raised for invalid category operations."""

    pass


class ProtectedCategoryError(CategoryError):
    """Raised when deleting the default category."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Cannot remove the default system category '{label}'")


class ConfirmationError(GuestPassError):
    """Raised when a destructive action is confirmed with an unknown or expired token."""

    pass


class StoreUnavailableError(GuestPassError):
    """Raised when the guest store cannot be read or written."""

    pass


class EmailSendError(GuestPassError):
    """Raised when the e-mail transport rejects or fails a send."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class ScannerInitError(GuestPassError):
    """Raised by a decoder that cannot start the camera."""

    def __init__(self, message: str, kind: str = "init_failed"):
        self.kind = kind
        super().__init__(message)
