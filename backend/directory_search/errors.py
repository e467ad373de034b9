"""
Error taxonomy for the search engine.

Each error carries a stable ``code`` and an HTTP status so the API layer can
render a well-formed envelope without leaking internal exception text.
"""


class DirectoryError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.field:
            body["field"] = self.field
        return {"error": body}


class ValidationError(DirectoryError):
    code = "VALIDATION_ERROR"
    status_code = 400


class StoreError(DirectoryError):
    code = "SEARCH_ERROR"
    status_code = 503

    def __init__(self, message: str = "Search temporarily unavailable"):
        super().__init__(message)


class CacheError(DirectoryError):
    code = "CACHE_ERROR"
    status_code = 500


class TenantContextError(DirectoryError):
    code = "TENANT_CONTEXT_ERROR"
    status_code = 401


class ForbiddenError(DirectoryError):
    code = "FORBIDDEN"
    status_code = 403
