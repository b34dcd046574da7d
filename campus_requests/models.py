import jwt
from datetime import datetime, timedelta
from flask import current_app
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from campus_requests.extensions import db
from campus_requests.constants import RequestStatus
from campus_requests.workflow import RequestState, ApprovalEntry, progress


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    nic = db.Column(db.String(20), unique=True, nullable=False)  # login id
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), nullable=False)
    department = db.Column(db.String(100))
    index_number = db.Column(db.String(20))  # students only
    mobile = db.Column(db.String(20))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    def get_auth_token(self, expires_sec=None):
        """Signed bearer token for the mobile client."""
        if expires_sec is None:
            expires_sec = current_app.config['AUTH_TOKEN_EXPIRES_SEC']
        payload = {
            'user_id': self.id,
            'role': self.role,
            'exp': datetime.utcnow() + timedelta(seconds=expires_sec)
        }
        return jwt.encode(payload, current_app.config['SECRET_KEY'], algorithm='HS256')

    @staticmethod
    def verify_auth_token(token):
        """Returns the active user for a token, or None if it is invalid or expired."""
        try:
            payload = jwt.decode(token, current_app.config['SECRET_KEY'], algorithms=['HS256'])
        except jwt.PyJWTError:
            return None
        user = db.session.get(User, payload.get('user_id'))
        if user is None or not user.is_active:
            return None
        return user

    def to_dict(self):
        return {
            'id': self.id,
            'nic': self.nic,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'department': self.department,
            'index_number': self.index_number,
            'mobile': self.mobile,
            'is_active': self.is_active,
        }


class Registration(db.Model):
    """Self-service sign-up waiting for an Admin."""
    id = db.Column(db.Integer, primary_key=True)
    nic = db.Column(db.String(20), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120))
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False)
    department = db.Column(db.String(100))
    index_number = db.Column(db.String(20))
    mobile = db.Column(db.String(20))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'nic': self.nic,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'department': self.department,
            'index_number': self.index_number,
            'mobile': self.mobile,
            'created_at': _iso(self.created_at),
        }


class AcademicRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    request_type = db.Column(db.String(20), nullable=False, index=True)

    # Workflow
    current_stage_index = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(50), nullable=False, default=RequestStatus.SUBMITTED, index=True)

    # Requester
    requester_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    requester = db.relationship('User')

    # Common fields
    reason = db.Column(db.String(200), nullable=False)
    reason_details = db.Column(db.Text)
    # Type specific fields (absences, leave dates, letter type...)
    details = db.Column(db.JSON, default=dict)
    attachment_path = db.Column(db.String(200))

    submitted_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_updated = db.Column(db.DateTime, default=datetime.utcnow)

    approvals = db.relationship('Approval', backref='request', order_by='Approval.id',
                                cascade='all, delete-orphan')

    def to_state(self):
        return RequestState(
            type=self.request_type,
            current_stage_index=self.current_stage_index,
            status=self.status,
            approvals=tuple(a.to_entry() for a in self.approvals),
        )

    def to_dict(self, include_progress=False):
        data = {
            'id': self.id,
            'type': self.request_type,
            'current_stage_index': self.current_stage_index,
            'status': self.status,
            'requester_id': self.requester_id,
            'requester_name': self.requester.name if self.requester else None,
            'reason': self.reason,
            'reason_details': self.reason_details,
            'details': self.details or {},
            'attachment': self.attachment_path,
            'submitted_at': _iso(self.submitted_at),
            'last_updated': _iso(self.last_updated),
            'approvals': [a.to_dict() for a in self.approvals],
        }
        if include_progress:
            data['progress'] = [
                dict(row, approval=entry_to_dict(row['approval']) if row['approval'] else None)
                for row in progress(self.to_state())
            ]
        return data


class Approval(db.Model):
    """Approval-history entry; rows are only ever appended."""
    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey('academic_request.id'), nullable=False)
    stage_index = db.Column(db.Integer, nullable=False)
    approver_role = db.Column(db.String(20), nullable=False)
    approver_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    approver_name = db.Column(db.String(100))
    status = db.Column(db.String(20), nullable=False)
    comment = db.Column(db.Text)
    approved_at = db.Column(db.DateTime, default=datetime.utcnow)

    @classmethod
    def from_entry(cls, request_id, entry):
        return cls(
            request_id=request_id,
            stage_index=entry.stage_index,
            approver_role=entry.approver_role,
            approver_id=entry.approver_id,
            approver_name=entry.approver_name,
            status=entry.status,
            comment=entry.comment,
            approved_at=entry.approved_at,
        )

    def to_entry(self):
        return ApprovalEntry(
            approver_role=self.approver_role,
            approver_id=self.approver_id,
            approver_name=self.approver_name,
            status=self.status,
            comment=self.comment,
            approved_at=self.approved_at,
            stage_index=self.stage_index,
        )

    def to_dict(self):
        return entry_to_dict(self.to_entry())


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    request_id = db.Column(db.Integer, db.ForeignKey('academic_request.id', ondelete='SET NULL'))
    type = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text)
    read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'request_id': self.request_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'read': self.read,
            'created_at': _iso(self.created_at),
        }


class AuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    action = db.Column(db.String(50), nullable=False)
    details = db.Column(db.Text)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)


def entry_to_dict(entry):
    return {
        'stage_index': entry.stage_index,
        'approver_role': entry.approver_role,
        'approver_id': entry.approver_id,
        'approver_name': entry.approver_name,
        'status': entry.status,
        'comment': entry.comment,
        'approved_at': _iso(entry.approved_at),
    }


def _iso(value):
    return value.isoformat() if value else None
