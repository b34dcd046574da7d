from sqlalchemy import func
from campus_requests import workflow
from campus_requests.extensions import db
from campus_requests.constants import RequestType, RequestStatus
from campus_requests.models import User, Registration, AcademicRequest


def get_dashboard_stats():
    """Calculates all statistics for the admin dashboard."""
    by_type = dict(db.session.query(AcademicRequest.request_type, func.count(AcademicRequest.id))
                   .group_by(AcademicRequest.request_type).all())
    by_status = dict(db.session.query(AcademicRequest.status, func.count(AcademicRequest.id))
                     .group_by(AcademicRequest.status).all())
    open_counts = dict(
        ((r_type, index), count) for r_type, index, count in
        db.session.query(AcademicRequest.request_type, AcademicRequest.current_stage_index, func.count(AcademicRequest.id))
        .filter(AcademicRequest.status.notin_(RequestStatus.FINAL))
        .group_by(AcademicRequest.request_type, AcademicRequest.current_stage_index).all()
    )

    # Open requests waiting on each approver stage
    bottlenecks = {}
    for r_type in RequestType.ALL:
        bottlenecks[r_type] = {
            stage.name: open_counts.get((r_type, index), 0)
            for index, stage in enumerate(workflow.stages_for(r_type))
            if stage.approver_role
        }

    users_by_role = dict(db.session.query(User.role, func.count(User.id)).group_by(User.role).all())

    return {
        'users': User.query.count(),
        'users_by_role': users_by_role,
        'pending_registrations': Registration.query.count(),
        'total': AcademicRequest.query.count(),
        'approved': by_status.get(RequestStatus.APPROVED, 0),
        'rejected': by_status.get(RequestStatus.REJECTED, 0),
        'pending': AcademicRequest.query.filter(AcademicRequest.status.notin_(RequestStatus.FINAL)).count(),
        'by_type': {r_type: by_type.get(r_type, 0) for r_type in RequestType.ALL},
        'by_status': by_status,
        'bottlenecks': bottlenecks,
    }
