import re
import logging
from datetime import datetime, date
from sqlalchemy import and_, or_
from campus_requests import workflow
from campus_requests.extensions import db
from campus_requests.constants import (
    RequestType, Role, RequestStatus, Decision, NotificationType, SUBMITTER_ROLES,
)
from campus_requests.exceptions import NotFound, StaleRequest, Unauthorized, ValidationError
from campus_requests.models import AcademicRequest, Approval, Notification
from campus_requests.services.notification_service import NotificationService
from campus_requests.utils import log_audit, notify_next_approvers, send_status_email

logger = logging.getLogger(__name__)

COURSE_CODE = re.compile(r'^[A-Za-z]{2,4}[0-9]{3,4}$')


def _action_name(label):
    # "Pending HOD Approval" -> "PENDING_HOD_APPROVAL"
    return label.replace(' ', '_').upper()


class RequestService:

    # --- SUBMISSION ---
    @staticmethod
    def submit(request_type, requester, data, attachment_path=None):
        """
        Creates a request at stage 0 and forwards it to the first approver stage.
        ``data`` must hold ``reason``, optional ``reason_details`` and the
        type-specific fields.
        """
        workflow.require_stages(request_type)
        if requester.role not in SUBMITTER_ROLES[request_type]:
            raise Unauthorized(f"{requester.role} users cannot submit {request_type} requests")

        data = dict(data)
        reason = data.pop('reason')
        reason_details = data.pop('reason_details', None)
        if request_type == RequestType.EXCUSE:
            data['absences'] = RequestService.clean_absences(data.get('absences'))

        req = AcademicRequest(
            request_type=request_type,
            requester=requester,
            reason=reason,
            reason_details=reason_details,
            details=_jsonable(data),
            attachment_path=attachment_path,
            current_stage_index=0,
            status=RequestStatus.SUBMITTED,
        )
        db.session.add(req)
        db.session.flush()  # assigns req.id
        log_audit(req.id, requester.id, 'SUBMITTED')

        state = workflow.submit(req.to_state())
        req.current_stage_index = state.current_stage_index
        req.status = state.status
        req.last_updated = datetime.utcnow()
        log_audit(req.id, requester.id, f"MOVED_TO_{_action_name(state.status)}")

        NotificationService.notify(
            requester.id, NotificationType.INFO, 'Request submitted',
            f"Your {request_type} request #{req.id} is now {state.status}.", request_id=req.id)
        db.session.commit()
        logger.info("%s request #%s submitted by user %s", request_type, req.id, requester.id)

        notify_next_approvers(req, workflow.resolve(req.request_type, req.current_stage_index))
        return req

    @staticmethod
    def clean_absences(absences):
        """Keeps complete rows only; at least one course/date pair is required."""
        cleaned = []
        for row in absences or []:
            if not isinstance(row, dict):
                continue
            code = (row.get('course_code') or '').strip().upper()
            day = (row.get('date') or '').strip().replace('/', '-')
            if not code or not day:
                continue
            if not COURSE_CODE.match(code):
                raise ValidationError("Invalid course code", details={'absences': f"{code} is not a course code (e.g. CS101)"})
            try:
                date.fromisoformat(day)
            except ValueError:
                raise ValidationError("Invalid absence date", details={'absences': f"{day} is not a YYYY-MM-DD date"})
            cleaned.append({'course_code': code, 'date': day})
        if not cleaned:
            raise ValidationError("Please add at least one absence with course code and date",
                                  details={'absences': 'required'})
        return cleaned

    # --- READS ---
    @staticmethod
    def can_view(user, req):
        return user.role == Role.ADMIN or user.role in Role.APPROVERS or req.requester_id == user.id

    @staticmethod
    def get(request_type, request_id, viewer=None):
        workflow.require_stages(request_type)
        req = db.session.get(AcademicRequest, request_id)
        if req is None or req.request_type != request_type:
            raise NotFound(f"{request_type.title()} request", request_id)
        if viewer is not None and not RequestService.can_view(viewer, req):
            raise NotFound(f"{request_type.title()} request", request_id)
        return req

    @staticmethod
    def list_requests(request_type, viewer, user_id=None):
        """Own requests for students; approvers and admins may see everyone's."""
        workflow.require_stages(request_type)
        query = AcademicRequest.query.filter_by(request_type=request_type)
        staff = viewer.role == Role.ADMIN or viewer.role in Role.APPROVERS
        if user_id is not None:
            if user_id != viewer.id and not staff:
                raise Unauthorized("You can only view your own requests")
            query = query.filter_by(requester_id=user_id)
        elif not staff:
            query = query.filter_by(requester_id=viewer.id)
        return query.order_by(AcademicRequest.submitted_at.desc(), AcademicRequest.id.desc()).all()

    @staticmethod
    def pending_for(viewer, request_type=None, status_name=None):
        """Open requests sitting at a stage the viewer's role is allowed to act on."""
        if request_type is not None:
            workflow.require_stages(request_type)
        conditions = [
            and_(AcademicRequest.request_type == r_type, AcademicRequest.current_stage_index == index)
            for r_type, index, stage in workflow.actionable_stages(viewer.role)
            if (request_type is None or r_type == request_type)
            and (status_name is None or stage.name == status_name)
        ]
        if not conditions:
            return []
        return AcademicRequest.query.filter(
            or_(*conditions),
            AcademicRequest.status.notin_(RequestStatus.FINAL),
        ).order_by(AcademicRequest.submitted_at, AcademicRequest.id).all()

    @staticmethod
    def all_pending():
        return AcademicRequest.query.filter(
            AcademicRequest.status.notin_(RequestStatus.FINAL)
        ).order_by(AcademicRequest.submitted_at, AcademicRequest.id).all()

    # --- DECISIONS ---
    @staticmethod
    def decide(request_type, request_id, decision, actor_user, comment=None, expected_index=None):
        """
        Applies an approve/reject decision and commits it only if nobody moved
        the request since it was read.
        """
        req = RequestService.get(request_type, request_id)
        if expected_index is not None and expected_index != req.current_stage_index:
            raise StaleRequest("Request has changed since it was loaded; refresh and try again",
                               details={'current_stage_index': req.current_stage_index})

        before = req.to_state()
        actor = workflow.Actor(id=actor_user.id, name=actor_user.name, role=actor_user.role)
        after = workflow.transition(before, decision, actor, comment)

        # Optimistic commit: the row must still be where we read it
        updated = AcademicRequest.query.filter_by(
            id=req.id,
            current_stage_index=before.current_stage_index,
            status=before.status,
        ).update({
            'current_stage_index': after.current_stage_index,
            'status': after.status,
            'last_updated': datetime.utcnow(),
        }, synchronize_session=False)
        if updated != 1:
            db.session.rollback()
            logger.warning("Concurrent update on %s request #%s, decision %s dropped",
                           request_type, request_id, decision)
            raise StaleRequest("Request was updated by someone else; refresh and try again")

        for entry in after.approvals[len(before.approvals):]:
            db.session.add(Approval.from_entry(req.id, entry))

        if decision == Decision.REJECT:
            log_audit(req.id, actor.id, 'REJECTED', f"Reason: {after.approvals[-1].comment}")
            NotificationService.notify(
                req.requester_id, NotificationType.ERROR, 'Request rejected',
                f"Your {request_type} request #{req.id} was rejected by the {actor.role}: {after.approvals[-1].comment}",
                request_id=req.id)
        else:
            log_audit(req.id, actor.id, f"APPROVED_{_action_name(actor.role)}")
            log_audit(req.id, actor.id, f"MOVED_TO_{_action_name(after.status)}")
            if after.status == RequestStatus.APPROVED:
                title, n_type = 'Request approved', NotificationType.SUCCESS
            else:
                title, n_type = 'Request progressed', NotificationType.INFO
            NotificationService.notify(
                req.requester_id, n_type, title,
                f"Your {request_type} request #{req.id} was approved by the {actor.role} and is now {after.status}.",
                request_id=req.id)

        db.session.commit()
        db.session.refresh(req)
        logger.info("%s request #%s: %s by %s (%s) -> stage %s, %s", request_type, req.id, decision,
                    actor.id, actor.role, after.current_stage_index, after.status)

        if after.is_final:
            send_status_email([req.requester.email], f"Your {request_type} request #{req.id} is {after.status}",
                              f"Your request '{req.reason}' is now {after.status}.")
        else:
            notify_next_approvers(req, workflow.resolve(req.request_type, req.current_stage_index))
        return req

    # --- DELETE ---
    @staticmethod
    def delete(request_type, request_id, user):
        """Requesters may withdraw a request before anyone has decided on it; admins may delete any."""
        req = RequestService.get(request_type, request_id)
        if user.role != Role.ADMIN:
            if req.requester_id != user.id:
                raise NotFound(f"{request_type.title()} request", request_id)
            if req.approvals or req.status in RequestStatus.FINAL:
                raise ValidationError("Requests cannot be withdrawn once a decision has been made")

        Notification.query.filter_by(request_id=req.id).update({'request_id': None})
        log_audit(req.id, user.id, 'DELETED')
        db.session.delete(req)
        db.session.commit()
        logger.info("%s request #%s deleted by user %s", request_type, request_id, user.id)


def _jsonable(data):
    return {k: v.isoformat() if isinstance(v, (date, datetime)) else v for k, v in data.items()}
