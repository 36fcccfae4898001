"""Error taxonomy shared by services and routers."""


class GoalcastError(Exception):
    """Base class for errors raised by goalcast services."""


class NotFound(GoalcastError):
    """A goal, budget or alert is missing or not owned by the caller."""

    def __init__(self, resource: str, resource_id):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class ExternalServiceDegraded(GoalcastError):
    """The narrative service failed, timed out or returned nothing usable."""


class PersistenceFailure(GoalcastError):
    """A computed result could not be written to the store."""


class AlertTransitionError(GoalcastError):
    """An alert lifecycle transition is not allowed from its current state."""
