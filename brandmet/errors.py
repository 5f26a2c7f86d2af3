"""Exceptions raised by the reporting core."""

from typing import Optional


class BrandMetError(Exception):
    """Base exception for BrandMet."""


class EntityNotFound(BrandMetError):
    """A brand or competitor does not exist."""

    def __init__(self, entity: str, identifier: Optional[str] = None):
        message = f"{entity} not found"
        if identifier:
            message = f"{entity} with id '{identifier}' not found"
        self.entity = entity
        self.identifier = identifier
        super().__init__(message)


class InvalidReportRequest(BrandMetError):
    """A report request that cannot be served."""
