"""Exception types raised by the import engine.

Only schema lookup and file-level checks abort a whole import. Everything a
single row raises is caught by the engine and turned into a row error.
"""


class ImportEngineError(Exception):
    """Base class for import engine failures."""


class SchemaNotFoundError(ImportEngineError, KeyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown schema: {name}")

    def __str__(self) -> str:
        return self.args[0]


class FileValidationError(ImportEngineError):
    """The uploaded file was rejected before any row was parsed."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class DuplicateRecordError(ImportEngineError):
    """Raised for a row whose natural key exists and the strategy is `error`."""

    def __init__(self, table: str, key: dict, field: str | None = None):
        self.table = table
        self.key = key
        self.field = field
        super().__init__("Duplicate record detected")
