class BackendError(RuntimeError):
    """Raised when the booking backend rejects a call or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendTimeoutError(BackendError):
    """Raised when a backend call does not settle within the configured timeout."""
    pass


class WizardValidationError(ValueError):
    """Raised when required draft fields are missing. `errors` maps field -> message."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(errors.values()) or "Invalid booking draft")
        self.errors = dict(errors)


class WizardStateError(RuntimeError):
    """Raised when an operation is not allowed in the wizard's current state."""
    pass


class SubmissionInProgressError(WizardStateError):
    """Raised when submit() is called while a previous submission is still pending."""
    pass


class BookingSubmissionError(RuntimeError):
    """Raised when the backend fails to create the booking. The draft is kept for retry."""
    pass
