class HealthyColorsError(Exception):
    """Base class for domain errors raised by the service layer."""


class NotFoundError(HealthyColorsError, LookupError):
    """A plan or log id does not exist for the requesting user."""


class ValidationError(HealthyColorsError, ValueError):
    """Input rejected before any repository call."""


class ReconciliationFailure(HealthyColorsError):
    """The activity log was stored but the plan completion update failed."""

    def __init__(self, message: str, *, user_id: int | None = None, log_date=None, activity_type: str | None = None):
        super().__init__(message)
        self.user_id = user_id
        self.log_date = log_date
        self.activity_type = activity_type


class AggregationInputError(HealthyColorsError, ValueError):
    """A stored log carries a missing or corrupt quantity."""

    def __init__(self, message: str, *, log_id: int | None = None):
        super().__init__(message)
        self.log_id = log_id
