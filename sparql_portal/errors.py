"""Exception hierarchy raised by the service layer."""


class PortalError(Exception):
    """Base class for errors surfaced to the person performing an action."""

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class AuthError(PortalError):
    """Authentication failed."""


class AuthorizationError(PortalError):
    """You do not have permission to perform this action."""


class DataStoreError(PortalError):
    """Something went wrong. Please try again later."""


class RegistrationError(PortalError):
    """The registration request could not be processed."""


class RegistrationNotFound(RegistrationError):
    """Registration request not found."""


class InvalidTransition(RegistrationError):
    """The registration request has already been reviewed."""


class SelfModificationError(RegistrationError):
    """You cannot change your own role or deactivate your own account."""
