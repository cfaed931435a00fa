class CategoryTreeError(Exception):
    """Base class for errors raised by the category tree core."""

    code: str = "error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class CategoryValidationError(CategoryTreeError):
    """Client input that the tree cannot accept (reason codes: idexists, idnull, parentnotfound, cycle)."""

    code = "validation"


class CategoryNotFoundError(CategoryTreeError):
    code = "notfound"


class CategoryStorageError(CategoryTreeError):
    """The backing store is unavailable or rejected the write."""

    code = "storage"


class ImportSourceError(CategoryTreeError):
    """The bulk import source could not be read."""

    code = "importsource"
