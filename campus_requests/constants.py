class RequestType:
    """Kinds of academic request, each with its own approval chain."""
    EXCUSE = 'excuse'
    LEAVE = 'leave'
    LETTER = 'letter'

    ALL = (EXCUSE, LEAVE, LETTER)

# URL segment used by the mobile client for each request type
URL_KIND_TO_TYPE = {
    'excuserequests': RequestType.EXCUSE,
    'leaverequests': RequestType.LEAVE,
    'letters': RequestType.LETTER,
}

class Role:
    """User roles for permissions."""
    STUDENT = 'Student'
    LECTURER = 'Lecturer'
    HOD = 'HOD'
    DEAN = 'Dean'
    VC = 'VC'
    STAFF = 'Staff'
    ADMIN = 'Admin'

    ALL = (STUDENT, LECTURER, HOD, DEAN, VC, STAFF, ADMIN)
    APPROVERS = (LECTURER, HOD, DEAN, VC, STAFF)

# Who may submit each request type
SUBMITTER_ROLES = {
    RequestType.EXCUSE: (Role.STUDENT,),
    RequestType.LETTER: (Role.STUDENT,),
    RequestType.LEAVE: (Role.LECTURER, Role.HOD, Role.DEAN, Role.VC, Role.STAFF),
}

class RequestStatus:
    """Status values that are not stage names."""
    SUBMITTED = 'Submitted'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'

    FINAL = (APPROVED, REJECTED)

class Decision:
    APPROVE = 'approve'
    REJECT = 'reject'

class ApprovalStatus:
    """Status stored on an approval-history entry."""
    APPROVED = 'approved'
    REJECTED = 'rejected'

DEFAULT_APPROVE_COMMENT = 'Approved'

class NotificationType:
    INFO = 'info'
    SUCCESS = 'success'
    WARNING = 'warning'
    ERROR = 'error'
