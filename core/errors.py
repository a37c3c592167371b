class DomainError(Exception):
    """Base error whose message is safe to show to the invoking user."""

    def __init__(self, cause: str) -> None:
        super().__init__(cause)
        self.cause = cause

    def __str__(self) -> str:
        return self.cause


class ValidationError(DomainError):
    """A command parameter is missing or malformed."""


class ConfigurationError(DomainError):
    """The community has not configured a policy field the operation needs."""


class StoreError(DomainError):
    """A database call failed."""


class ExternalInterfaceError(DomainError):
    """A Discord API call failed."""
