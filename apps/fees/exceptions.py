# fees/exceptions.py

"""
Typed errors raised by the fee ledger and the collection service.

Every error carries an HTTP-style status code so JSON views can translate
it directly into a response without inspecting the message.
"""


class FeeServiceError(Exception):
    """Base class for fee business-rule failures"""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self):
        return self.message

    def to_dict(self):
        return {'success': False, 'error': self.message}


class ValidationFailed(FeeServiceError):
    """Amount or input violates a collection rule"""
    status_code = 400


class Forbidden(FeeServiceError):
    """Requester acts for a different school than the student"""
    status_code = 403


class NotFound(FeeServiceError):
    """Student, fee structure, fee record or fee slot is missing"""
    status_code = 404


class InvalidState(FeeServiceError):
    """Operation not allowed in the slot's current state"""
    status_code = 409


class InternalError(FeeServiceError):
    """Unexpected persistence failure"""
    status_code = 500
