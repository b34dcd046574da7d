from flask import Blueprint, jsonify, request
from flask_login import login_required
from campus_requests.constants import Role
from campus_requests.forms import UserUpdateForm, submitted_fields, validate_form
from campus_requests.services import admin_service
from campus_requests.services.request_service import RequestService
from campus_requests.services.user_service import UserService
from campus_requests.utils import role_required

admin_bp = Blueprint('admin', __name__)

@admin_bp.route('/stats')
@login_required
@role_required(Role.ADMIN)
def dashboard_stats():
    return jsonify(admin_service.get_dashboard_stats())

@admin_bp.route('/pending-requests')
@login_required
@role_required(Role.ADMIN)
def pending_requests():
    # Admins see the whole queue but cannot act on it
    return jsonify([r.to_dict() for r in RequestService.all_pending()])

# --- USER MANAGEMENT ---
@admin_bp.route('/users')
@login_required
@role_required(Role.ADMIN)
def list_users():
    return jsonify([u.to_dict() for u in UserService.list_users(role=request.args.get('role'))])

@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@login_required
@role_required(Role.ADMIN)
def update_user(user_id):
    form = validate_form(UserUpdateForm)
    return jsonify(UserService.update_user(user_id, submitted_fields(form)).to_dict())

@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required
@role_required(Role.ADMIN)
def delete_user(user_id):
    UserService.delete_user(user_id)
    return jsonify({'deleted': True})

@admin_bp.route('/users/<int:user_id>/reset-password', methods=['PUT'])
@login_required
@role_required(Role.ADMIN)
def reset_password(user_id):
    return jsonify({'temporary_password': UserService.reset_password(user_id)})

# --- REGISTRATIONS ---
@admin_bp.route('/registrations/pending')
@login_required
@role_required(Role.ADMIN)
def pending_registrations():
    return jsonify([r.to_dict() for r in UserService.pending_registrations()])

@admin_bp.route('/registrations/<int:registration_id>/approve', methods=['POST'])
@login_required
@role_required(Role.ADMIN)
def approve_registration(registration_id):
    return jsonify(UserService.approve_registration(registration_id).to_dict()), 201

@admin_bp.route('/registrations/<int:registration_id>/reject', methods=['DELETE'])
@login_required
@role_required(Role.ADMIN)
def reject_registration(registration_id):
    UserService.reject_registration(registration_id)
    return jsonify({'deleted': True})
