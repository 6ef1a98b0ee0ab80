from typing import Dict, Optional


class APIError(Exception):
    status_code = 500

    def __init__(self, message: str = "", errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def to_body(self) -> dict:
        if self.errors:
            return {"errors": self.errors}
        return {"message": self.message}


class InvalidIdentifier(APIError):
    status_code = 400


class ValidationError(APIError):
    status_code = 400


class InvalidCategory(APIError):
    status_code = 400


class NotFound(APIError):
    status_code = 404


class StoreFailure(APIError):
    status_code = 500
