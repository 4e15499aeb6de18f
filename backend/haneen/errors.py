class BackOfficeError(Exception):
    """Base for per-operation failures reported back to the caller."""

    status_code = 400

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self):
        return {"error": self.reason}


class ValidationFailed(BackOfficeError):
    status_code = 400


class UniquenessConflict(BackOfficeError):
    status_code = 409


class RecordNotFound(BackOfficeError):
    status_code = 404


class LedgerImmutable(BackOfficeError):
    status_code = 405
