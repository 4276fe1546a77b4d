"""Failure taxonomy of the onboarding and identity verification workflow."""


class OnboardingError(Exception):
    """Base class for recoverable onboarding failures."""


class ValidationError(OnboardingError):
    """A transition was refused; nothing was sent to any external store."""

    def __init__(self, message: str, field: str | None = None, service: str | None = None):
        super().__init__(message)
        self.field = field
        self.service = service


class MissingRequiredFile(OnboardingError):
    def __init__(self, slots: list[str]):
        super().__init__(f"Missing required files: {', '.join(slots)}")
        self.slots = slots


class UploadFailure(OnboardingError):
    """An upload failed. Objects listed in `uploaded` stay in the store."""

    def __init__(self, slot: str, uploaded: list[str], cause: Exception | None = None):
        super().__init__(f"Upload of {slot} failed: {cause}")
        self.slot = slot
        self.uploaded = uploaded
        self.cause = cause


class PersistenceFailure(OnboardingError):
    """A database write was rejected. Earlier writes are not undone."""

    def __init__(self, step: str, cause: Exception | None = None):
        super().__init__(f"Could not save {step}")
        self.step = step
        self.cause = cause


class GuardViolation(OnboardingError):
    """State error that the wizard's own transitions should make unreachable."""


class GeolocationUnavailable(OnboardingError):
    pass
