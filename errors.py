from typing import Any, Dict, List, Optional


class RosterError(Exception):
    """Base class for failures the request layer turns into a client response."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RosterError):
    status_code = 404

    def __init__(self, message: str = 'Member not found'):
        super().__init__(message)


class ValidationError(RosterError):
    status_code = 400

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class UploadError(RosterError):
    status_code = 400


class PersistenceError(RosterError):
    """Store unreachable or write failed. The client only sees a generic message."""
    status_code = 500
