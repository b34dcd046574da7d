import os
import uuid
import logging
from functools import wraps
from flask import current_app
from flask_login import current_user
from werkzeug.utils import secure_filename
from campus_requests.extensions import db
from campus_requests.exceptions import Unauthorized, ValidationError
from campus_requests.models import AuditLog, User
from campus_requests.tasks import send_async_email

logger = logging.getLogger(__name__)


def allowed_file(filename):
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']


def save_file(file, prefix):
    """Stores an uploaded attachment and returns its new file name (None if nothing was sent)."""
    if not file or file.filename == '':
        return None

    if not allowed_file(file.filename):
        raise ValidationError("Unsupported attachment type", details={'attachment': file.filename})

    # Renamed on disk so uploads never overwrite each other
    original_filename = secure_filename(file.filename)
    ext = original_filename.rsplit('.', 1)[1].lower()
    new_filename = f"{prefix}_{uuid.uuid4().hex[:8]}.{ext}"

    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    file.save(os.path.join(folder, new_filename))
    logger.info("Saved attachment %s", new_filename)
    return new_filename


def send_status_email(recipients, subject, body):
    """Queues a plain-text workflow email; addresses that are empty are skipped."""
    recipients = [r for r in recipients if r]
    if not recipients:
        return
    send_async_email.delay(subject, recipients, body, is_html=False)


def notify_next_approvers(req, stage):
    """Emails every active user holding the role the request now waits for."""
    if stage is None or stage.approver_role is None:
        return
    approvers = User.query.filter_by(role=stage.approver_role, is_active=True).all()
    subject = f"Action Required: {req.request_type.title()} Request #{req.id}"
    body = f"""
    Requester: {req.requester.name}
    Reason: {req.reason}
    Current Stage: {stage.name}

    Please log in to review and approve or reject this request.
    """
    send_status_email([u.email for u in approvers], subject, body)


def log_audit(req_id, user_id, action, details=None):
    """Records a business action; the caller commits."""
    db.session.add(AuditLog(request_id=req_id, user_id=user_id, action=action, details=details))


def role_required(*roles):
    """Restricts a login-protected view to the given roles."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_user.role not in roles:
                raise Unauthorized("You do not have access to this resource")
            return fn(*args, **kwargs)
        return wrapper
    return decorator
