"""Errors raised when an integration request cannot be queued."""


class IntegrationRequestError(Exception):
    """Base class for rejected integration requests."""

    def __init__(self, msel_id: str, message: str):
        self.msel_id = msel_id
        self.message = message
        super().__init__(message)


class MselNotFoundError(IntegrationRequestError):
    def __init__(self, msel_id: str):
        super().__init__(msel_id, f"Msel {msel_id} not found")


class IntegrationConflictError(IntegrationRequestError):
    """The exercise is not in a state that allows the requested operation."""


class ExerciseBusyError(IntegrationRequestError):
    """Another push, pull, resume or launch for the exercise is still running."""

    def __init__(self, msel_id: str):
        super().__init__(msel_id, f"Msel {msel_id} already has an integration job in progress")
