from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(DomainError):
    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} with id {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(DomainError):
    status_code = 409


class RepositoryError(DomainError):
    """Storage failure that is not a domain rule (duplicate key, broken connection)."""

    def __init__(self, message: str):
        super().__init__(f"Repository error: {message}")
