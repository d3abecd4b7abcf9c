class TaskflowError(Exception):
    pass


class ValidationError(TaskflowError):
    """Malformed input or a reference to a record that does not exist."""


class NotFoundError(TaskflowError):
    """The targeted task or category id does not exist."""


class OperationFailure(TaskflowError):
    """Any other failure: unexpected server fault or transport error."""
