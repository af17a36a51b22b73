from .backend_protocols import Backend, PagingBackend, RawCursor, UpdateableBackend

__all__ = ["Backend", "PagingBackend", "RawCursor", "UpdateableBackend"]
