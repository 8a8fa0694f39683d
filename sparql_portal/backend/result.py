"""Result envelope shared by the identity provider and the table store."""
from dataclasses import dataclass
from typing import Any, Optional


class BackendError(Exception):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


class AuthApiError(BackendError):
    pass


class StoreError(BackendError):
    def __init__(self, message, status=500):
        super().__init__(message, status)


@dataclass
class Result:
    data: Any = None
    error: Optional[BackendError] = None
    count: Optional[int] = None

    @property
    def ok(self):
        return self.error is None
