from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from campus_requests.forms import (
    LoginForm, ChangePasswordForm, ProfileForm, RegistrationForm, submitted_fields, validate_form,
)
from campus_requests.services.user_service import UserService

auth_bp = Blueprint('auth', __name__)

@auth_bp.route('/users/login', methods=['POST'])
def login():
    form = validate_form(LoginForm)
    user = UserService.authenticate(form.nic.data, form.password.data)
    if not user:
        return jsonify({'error': 'ERR_UNAUTHENTICATED', 'message': 'Invalid NIC or password.'}), 401
    return jsonify({'token': user.get_auth_token(), 'user': user.to_dict()})

@auth_bp.route('/users/me')
@login_required
def me():
    return jsonify(current_user.to_dict())

@auth_bp.route('/users/me', methods=['PUT'])
@login_required
def update_me():
    form = validate_form(ProfileForm)
    return jsonify(UserService.update_profile(current_user, submitted_fields(form)).to_dict())

@auth_bp.route('/users/me/password', methods=['PUT'])
@login_required
def change_password():
    form = validate_form(ChangePasswordForm)
    UserService.change_password(current_user, form.current_password.data, form.new_password.data)
    return jsonify({'success': True})

@auth_bp.route('/registrations', methods=['POST'])
def register():
    form = validate_form(RegistrationForm)
    reg = UserService.register(form.data)
    return jsonify(reg.to_dict()), 201
