class DomainError(Exception):
    """Base class for business-rule failures raised by use cases."""


class EventNotFoundError(DomainError):
    pass


class SlotNotFoundError(DomainError):
    pass


class SlotConflictError(DomainError):
    """Another writer changed the event's slots first."""


class SlotAlreadyAssignedError(SlotConflictError):
    pass


class SlotInUseError(DomainError):
    """Assigned slots cannot be deleted."""


class VideoNotFoundError(DomainError):
    pass


class DuplicateVideoError(DomainError):
    pass


class VideoStateError(DomainError):
    """The record is not in a state that allows the operation."""


class RegistrationRejectedError(DomainError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
