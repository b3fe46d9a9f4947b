class RecordNotFoundError(LookupError):
    pass


class RecordConflictError(ValueError):
    """Maps to HTTP 409."""
