class PolyQueryError(Exception):
    """Base class for all errors raised by polyquery."""


class PlanError(PolyQueryError, ValueError):
    """
    Raised when a query or mutation cannot be planned against the schema,
    e.g. an unknown table or column, or a malformed filter. Plan errors are
    always raised before any call is made to the backend.
    """


class UnsupportedOperationError(PolyQueryError, NotImplementedError):
    """Raised when a backend does not offer the requested capability."""


class BackendCallError(PolyQueryError, RuntimeError):
    """
    Raised when a call into a backend client fails. The original exception is
    available as ``__cause__``.
    """


class ValueConversionError(PolyQueryError, ValueError):
    """Raised when a raw value cannot be decoded into its column type."""
