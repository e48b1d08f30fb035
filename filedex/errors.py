"""Exception types. Only CatalogOpenError and WalkError end a run."""


class FiledexError(Exception):
    """Base class for filedex errors."""


class CatalogOpenError(FiledexError):
    """Catalog directory, file or schema could not be created or opened."""


class WalkError(FiledexError):
    """The walk root cannot be traversed at all."""


class LookupFailed(FiledexError):
    """Point lookup of a catalog row failed (distinct from 'row absent')."""


class WriteFailed(FiledexError):
    """Insert or update of a catalog row failed."""
