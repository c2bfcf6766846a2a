class SensorNetError(Exception):
    """Base class for errors raised by the domain and application layers."""


class ValidationError(SensorNetError):
    pass


class NotFoundError(SensorNetError):
    pass


class ForbiddenError(SensorNetError):
    pass


class InvalidTransitionError(SensorNetError):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change status from '{current}' to '{requested}'")


class TicketLockedError(SensorNetError):
    def __init__(self, status: str, action: str):
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} a ticket in status '{status}'")
