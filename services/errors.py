"""Typed failures raised by the approval and verification services.

Routes never catch these individually; ``app.py`` registers a single
handler for :class:`WorkflowError` that renders ``to_dict()`` as JSON with
``status_code``.
"""


class WorkflowError(Exception):
    status_code = 400
    code = "workflow_error"
    default_message = "Request could not be processed."

    def __init__(self, message=None, payload=None):
        self.message = message or self.default_message
        self.payload = dict(payload or {})
        super().__init__(self.message)

    def to_dict(self):
        data = dict(self.payload)
        data["error"] = self.code
        data["message"] = self.message
        return data


class NotFound(WorkflowError):
    status_code = 404
    code = "not_found"
    default_message = "Record not found."


class Conflict(WorkflowError):
    """The target field already left its initial state.

    ``payload`` carries the authoritative stored state so callers can show it
    instead of treating the response as a failure.
    """

    status_code = 409
    code = "conflict"
    default_message = "Already decided."


class Forbidden(WorkflowError):
    status_code = 403
    code = "forbidden"
    default_message = "You are not allowed to perform this action."


class ValidationError(WorkflowError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input."


class SecretMismatch(WorkflowError):
    # Same message for "wrong secret" and "no such record".
    status_code = 404
    code = "invalid_code"
    default_message = "Invalid verification code."

    def __init__(self):
        super().__init__(self.default_message)


class IssuanceFailure(WorkflowError):
    """Document generation or storage failed. Never rolls back an approval."""

    status_code = 502
    code = "document_pending"
    default_message = "Transcript approved, document generation pending."
