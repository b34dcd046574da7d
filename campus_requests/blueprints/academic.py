import json
from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from campus_requests.constants import RequestType, Decision, URL_KIND_TO_TYPE
from campus_requests.exceptions import UnknownType, ValidationError
from campus_requests.forms import (
    ExcuseRequestForm, LeaveRequestForm, LetterRequestForm, DecisionForm, validate_form,
)
from campus_requests.services.request_service import RequestService
from campus_requests.utils import save_file

academic_bp = Blueprint('academic', __name__)

# Form and attachment field for each request type
SUBMISSION_FORMS = {
    RequestType.EXCUSE: (ExcuseRequestForm, 'medical_certificate'),
    RequestType.LEAVE: (LeaveRequestForm, 'supporting_document'),
    RequestType.LETTER: (LetterRequestForm, 'supporting_document'),
}


def _request_type(kind):
    request_type = URL_KIND_TO_TYPE.get(kind)
    if request_type is None:
        raise UnknownType(kind)
    return request_type


def _absences():
    """Absence rows come as a JSON list, or as a JSON string inside multipart forms."""
    if request.is_json:
        return (request.get_json(silent=True) or {}).get('absences')
    raw = request.form.get('absences')
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid absences", details={'absences': 'must be a JSON list'})


# --- PENDING QUEUE (all types) ---
@academic_bp.route('/requests/pending')
@login_required
def my_pending_approvals():
    reqs = RequestService.pending_for(current_user)
    return jsonify([r.to_dict() for r in reqs])


@academic_bp.route('/<kind>', methods=['POST'])
@login_required
def submit_request(kind):
    request_type = _request_type(kind)
    form_class, file_field = SUBMISSION_FORMS[request_type]
    form = validate_form(form_class)

    data = {name: value for name, value in form.data.items() if name != file_field}
    if request_type == RequestType.EXCUSE:
        data['absences'] = _absences()

    attachment = save_file(form[file_field].data, f"{request_type}_{current_user.id}")
    req = RequestService.submit(request_type, current_user, data, attachment_path=attachment)
    return jsonify(req.to_dict(include_progress=True)), 201


@academic_bp.route('/<kind>', methods=['GET'])
@login_required
def list_requests(kind):
    reqs = RequestService.list_requests(_request_type(kind), current_user)
    return jsonify([r.to_dict() for r in reqs])


@academic_bp.route('/<kind>/byUser/<int:user_id>')
@login_required
def list_user_requests(kind, user_id):
    reqs = RequestService.list_requests(_request_type(kind), current_user, user_id=user_id)
    return jsonify([r.to_dict() for r in reqs])


@academic_bp.route('/<kind>/pendingApprovals/<status_name>')
@login_required
def pending_approvals(kind, status_name):
    reqs = RequestService.pending_for(current_user, request_type=_request_type(kind), status_name=status_name)
    return jsonify([r.to_dict() for r in reqs])


@academic_bp.route('/<kind>/<int:request_id>', methods=['GET'])
@login_required
def get_request(kind, request_id):
    req = RequestService.get(_request_type(kind), request_id, viewer=current_user)
    return jsonify(req.to_dict(include_progress=True))


@academic_bp.route('/<kind>/<int:request_id>/approve', methods=['PUT'])
@login_required
def approve_request(kind, request_id):
    return _decide(kind, request_id, Decision.APPROVE)


@academic_bp.route('/<kind>/<int:request_id>/reject', methods=['PUT'])
@login_required
def reject_request(kind, request_id):
    return _decide(kind, request_id, Decision.REJECT)


def _decide(kind, request_id, decision):
    request_type = _request_type(kind)
    form = validate_form(DecisionForm)
    req = RequestService.decide(
        request_type, request_id, decision, current_user,
        comment=form.comment.data,
        expected_index=form.current_stage_index.data,
    )
    return jsonify(req.to_dict(include_progress=True))


@academic_bp.route('/<kind>/<int:request_id>', methods=['DELETE'])
@login_required
def delete_request(kind, request_id):
    RequestService.delete(_request_type(kind), request_id, current_user)
    return jsonify({'deleted': True})
