from __future__ import annotations


class DocCatalogError(Exception):
    """Base class for errors raised while building a content catalog."""

    def __init__(self, message: str, *, location: str | None = None) -> None:
        self.location = location
        if location:
            message = f"{message} (location: {location})"
        super().__init__(message)


class ConfigurationError(DocCatalogError):
    """A content source, descriptor or playbook value is invalid."""


class TransportError(DocCatalogError):
    """A clone or fetch of a remote repository failed."""

    def __init__(
        self, message: str, *, location: str | None = None, stderr: str = ""
    ) -> None:
        self.stderr = stderr
        super().__init__(message, location=location)


class AuthenticationError(TransportError):
    pass


class ContentError(DocCatalogError):
    """A file or alias in the aggregate cannot be placed in the catalog."""


class DuplicateFileError(ContentError):
    pass


class InvalidResourceIdError(ContentError):
    pass


class AggregateError(DocCatalogError):
    """Several independent tasks failed; ``errors`` holds each failure in order."""

    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = list(errors)
        lines = [f"{len(self.errors)} errors occurred:"]
        lines.extend(f"  {idx}: {err}" for idx, err in enumerate(self.errors, 1))
        super().__init__("\n".join(lines))


def raise_collected(errors: list[BaseException]) -> None:
    if not errors:
        return
    if len(errors) == 1:
        raise errors[0]
    raise AggregateError(errors)
