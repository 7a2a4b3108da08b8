"""
Project: Community Lunch Orders

Description:
Error kinds raised by the services and converted to JSON notices by the
Flask error handler in app.py.
"""


class LunchError(Exception):
    status_code = 400
    kind = "error"

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"ok": False, "error": self.kind, "message": self.message}


class ValidationError(LunchError):
    """Missing or malformed input."""
    status_code = 400
    kind = "validation"


class StockError(LunchError):
    """Selected dessert is unknown or out of stock."""
    status_code = 409
    kind = "out_of_stock"


class NotFoundError(LunchError):
    status_code = 404
    kind = "not_found"


class PersistenceError(LunchError):
    """The record store call failed."""
    status_code = 503
    kind = "persistence"


class AuthError(LunchError):
    status_code = 401
    kind = "auth"
