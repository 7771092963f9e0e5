"""
Typed failures raised by the health engine.

Missing data is never an exception — only store/query failures are.
"""


class StoreError(Exception):
    """A relational store query failed (connectivity, malformed query)."""

    def __init__(self, operation: str, cause: Exception = None):
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
