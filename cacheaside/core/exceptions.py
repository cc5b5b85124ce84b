"""
Service Exceptions

Base class for domain errors that map onto an HTTP status.
"""

from typing import Any, Dict, Optional


class ServiceException(Exception):
    """Domain error carrying the HTTP status it should be reported with."""

    status_code: int = 500
    error_code: str = "SERVICE_ERROR"
    title: str = "Service error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)
