"""
Exception hierarchy for the approval engine and the REST layer.

Services and the engine raise these; ``create_app`` registers a single
handler that turns them into ``{"error", "message", "details"}`` JSON with
the status code declared on the class.
"""


class CampusRequestsError(Exception):
    code = 'ERR_INTERNAL'
    status_code = 500

    def __init__(self, message, details=None):
        self.details = details or {}
        super().__init__(message)

    def to_dict(self):
        return {'error': self.code, 'message': str(self), 'details': self.details}


class ValidationError(CampusRequestsError):
    """Input was well-formed but broke a business rule (e.g. reject without a comment)."""
    code = 'ERR_VALIDATION'
    status_code = 422


class Unauthorized(CampusRequestsError):
    """Actor's role does not match the role the current stage waits for."""
    code = 'ERR_FORBIDDEN'
    status_code = 403


class AlreadyFinalized(CampusRequestsError):
    """Record is Approved or Rejected and accepts no further transitions."""
    code = 'ERR_ALREADY_FINALIZED'
    status_code = 409


class UnknownType(CampusRequestsError):
    code = 'ERR_UNKNOWN_TYPE'
    status_code = 404

    def __init__(self, request_type):
        self.request_type = request_type
        super().__init__(f"Unknown request type: {request_type!r}")


class IndexOutOfRange(CampusRequestsError):
    """currentStageIndex has no descriptor; the stored record is corrupt or stale."""
    code = 'ERR_INVALID_STAGE'
    status_code = 409

    def __init__(self, request_type, index):
        self.request_type = request_type
        self.index = index
        super().__init__(f"Stage index {index} is out of range for {request_type!r} requests")


class StaleRequest(CampusRequestsError):
    """Another actor moved the request between read and commit."""
    code = 'ERR_STALE_REQUEST'
    status_code = 409


class NotFound(CampusRequestsError):
    code = 'ERR_NOT_FOUND'
    status_code = 404

    def __init__(self, resource, resource_id=None):
        self.resource = resource
        self.resource_id = resource_id
        msg = resource
        if resource_id is not None:
            msg += f" id={resource_id}"
        super().__init__(msg + " not found")


class Conflict(CampusRequestsError):
    code = 'ERR_CONFLICT'
    status_code = 409
