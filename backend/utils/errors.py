class ValidationError(ValueError):
    """Raised when a date, status, or other user-supplied value cannot be interpreted."""
