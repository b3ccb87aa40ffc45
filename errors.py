"""
Service errors.

Services raise these; main.py turns each into a JSON ``{"error": message}``
response with the class's status code.
"""


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StoreError):
    """Missing or malformed input, raised before the store is touched."""
    status_code = 400


class AuthorizationError(StoreError):
    """No active session for an action that needs one."""
    status_code = 401


class NotFound(StoreError):
    status_code = 404


class ServerError(StoreError):
    """Store or network failure. The message is generic; the cause is only logged."""
    status_code = 500
