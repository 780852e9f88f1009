"""Domain errors."""


class DomainError(Exception):
    """Base domain error."""


class PublishValidationError(DomainError):
    """Recoverable validation failure surfaced to the user as messages."""

    def __init__(self, messages: list[str] | str) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class FilenameCollisionError(PublishValidationError):
    """Two files in one dataset resolve to the same filename."""


class RepositoryNameCollisionError(PublishValidationError):
    """Remote repository name already taken."""


class InvalidSchemaError(PublishValidationError):
    """Dataset schema has no usable fields."""


class SchemaResolutionError(DomainError):
    """Schema document could not be resolved."""


class SchemaUnreachableError(SchemaResolutionError):
    """Schema document could not be fetched."""


class SchemaParseError(SchemaResolutionError):
    """Schema document is not valid schema syntax."""


class SchemaMalformedError(SchemaResolutionError):
    """Schema parses but declares no fields or tables."""


class ExternalUnavailableError(DomainError):
    """Transient failure of an external collaborator."""


class RepositoryNotFoundError(DomainError):
    """Remote repository does not exist."""


class DatasetNotFoundError(DomainError):
    """Dataset record does not exist."""


class DatasetBusyError(DomainError):
    """Another job holds the dataset lease."""


class InvalidJobPayloadError(DomainError):
    """Job payload is malformed."""
