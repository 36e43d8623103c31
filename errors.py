"""
Error taxonomy shared by services and routes.

Every error carries the HTTP status the terminal responder should use.
"""


class CatalogError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFound(CatalogError):
    status_code = 404


class ValidationFailure(CatalogError):
    status_code = 400


class UpstreamFailure(CatalogError):
    status_code = 502
