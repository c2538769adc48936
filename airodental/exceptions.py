class SchedulingError(Exception):
    """Base exception for availability and booking failures.

    ``public_message`` is what a caller (voice agent or dashboard) may see;
    ``str(exc)`` may carry internal detail and is only logged.
    """

    public_message = "Something went wrong while handling the request."

    def __init__(self, message: str | None = None, *, public_message: str | None = None) -> None:
        if public_message is not None:
            self.public_message = public_message
        super().__init__(message or self.public_message)


class ValidationError(SchedulingError):
    """Raised when a required field is missing or malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, public_message=message)


class PolicyViolation(SchedulingError):
    """Raised when an instant falls outside the business calendar."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason, public_message=reason)


class SlotConflict(SchedulingError):
    """Raised when the requested instant already holds an active appointment."""

    public_message = "This time slot is already booked. Please choose another time."


class DependencyUnavailable(SchedulingError):
    """Raised when the database (or another collaborator) times out or errors."""

    public_message = "We're having trouble reaching the schedule right now. Please try again in a moment."


class ConfigurationFault(SchedulingError):
    """Raised when the deployment is missing something every request needs."""

    public_message = "Internal setup error. Cannot schedule appointment."


class DuplicatePatient(SchedulingError):
    """Raised when a patient with the same email was created first by another request."""

    public_message = "This patient already exists."
