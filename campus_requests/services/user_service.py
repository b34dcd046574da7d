import logging
import secrets
from werkzeug.security import generate_password_hash
from campus_requests.extensions import db
from campus_requests.constants import Role, NotificationType
from campus_requests.exceptions import Conflict, NotFound, Unauthorized, ValidationError
from campus_requests.models import User, Registration, AcademicRequest, Approval, Notification
from campus_requests.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('name', 'email', 'department', 'mobile')


class UserService:
    @staticmethod
    def authenticate(nic, password):
        """Returns the active user matching the credentials, or None."""
        user = User.query.filter_by(nic=nic).first()
        if user and user.is_active and user.check_password(password):
            return user
        logger.info("Failed login for NIC %s", nic)
        return None

    @staticmethod
    def get(user_id):
        user = db.session.get(User, user_id)
        if not user:
            raise NotFound('User', user_id)
        return user

    @staticmethod
    def list_users(role=None):
        """All users except administrators, optionally for one role."""
        query = User.query.filter(User.role != Role.ADMIN)
        if role:
            query = query.filter_by(role=role)
        return query.order_by(User.name).all()

    @staticmethod
    def update_user(user_id, data):
        """
        Updates the given profile fields.
        Expects data dictionary with any of: name, email, role, department, mobile, is_active.
        """
        user = UserService.get(user_id)
        email = data.get('email')
        if email and email != user.email and User.query.filter_by(email=email).first():
            raise Conflict("User with this email already exists.", details={'email': email})
        if user.role == Role.ADMIN and data.get('is_active') is False:
            raise ValidationError("Cannot deactivate an Administrator.")

        for key in ('name', 'email', 'role', 'department', 'mobile', 'is_active'):
            if key in data:
                setattr(user, key, data[key])
        db.session.commit()
        return user

    @staticmethod
    def update_profile(user, data):
        """Self-service edit; role and active flag are left to admins."""
        data = {k: v for k, v in data.items() if k in PROFILE_FIELDS}
        return UserService.update_user(user.id, data)

    @staticmethod
    def delete_user(user_id):
        """Deletes a user, protecting admins."""
        user = UserService.get(user_id)
        if user.role == Role.ADMIN:
            raise ValidationError("Cannot delete an Administrator.")
        if AcademicRequest.query.filter_by(requester_id=user.id).first():
            raise Conflict("User has submitted requests; deactivate the account instead.")
        if Approval.query.filter_by(approver_id=user.id).first():
            raise Conflict("User has decided on requests; deactivate the account instead.")
        Notification.query.filter_by(user_id=user.id).delete()
        db.session.delete(user)
        db.session.commit()
        logger.info("Deleted user %s", user_id)

    @staticmethod
    def change_password(user, current_password, new_password):
        if not user.check_password(current_password):
            raise Unauthorized("Current password is incorrect")
        user.set_password(new_password)
        db.session.commit()

    @staticmethod
    def reset_password(user_id):
        """Sets a random temporary password and returns it to the admin."""
        user = UserService.get(user_id)
        temporary = secrets.token_urlsafe(9)
        user.set_password(temporary)
        NotificationService.notify(user.id, NotificationType.WARNING, 'Password reset',
                                   'Your password was reset by an administrator. Please change it after signing in.')
        db.session.commit()
        return temporary

    # --- REGISTRATIONS ---
    @staticmethod
    def register(data):
        nic = data['nic']
        if User.query.filter_by(nic=nic).first() or Registration.query.filter_by(nic=nic).first():
            raise Conflict("An account or registration with this NIC already exists.", details={'nic': nic})
        email = data.get('email') or None
        if email and (User.query.filter_by(email=email).first() or Registration.query.filter_by(email=email).first()):
            raise Conflict("An account or registration with this email already exists.", details={'email': email})

        reg = Registration(
            nic=nic,
            name=data['name'],
            email=email,
            role=data['role'],
            department=data.get('department'),
            index_number=data.get('index_number'),
            mobile=data.get('mobile'),
        )
        reg.password_hash = generate_password_hash(data['password'])
        db.session.add(reg)
        db.session.commit()
        return reg

    @staticmethod
    def pending_registrations():
        return Registration.query.order_by(Registration.created_at).all()

    @staticmethod
    def approve_registration(registration_id):
        reg = db.session.get(Registration, registration_id)
        if not reg:
            raise NotFound('Registration', registration_id)
        # Another account may have taken the NIC or email since the sign-up
        if User.query.filter_by(nic=reg.nic).first():
            raise Conflict("An account with this NIC already exists.", details={'nic': reg.nic})
        if reg.email and User.query.filter_by(email=reg.email).first():
            raise Conflict("User with this email already exists.", details={'email': reg.email})
        user = User(
            nic=reg.nic,
            name=reg.name,
            email=reg.email,
            role=reg.role,
            department=reg.department,
            index_number=reg.index_number,
            mobile=reg.mobile,
            password_hash=reg.password_hash,
        )
        db.session.add(user)
        db.session.delete(reg)
        db.session.flush()
        NotificationService.notify(user.id, NotificationType.SUCCESS, 'Welcome',
                                   'Your registration has been approved. You can now sign in.')
        db.session.commit()
        logger.info("Registration %s approved as user %s (%s)", registration_id, user.id, user.role)
        return user

    @staticmethod
    def reject_registration(registration_id):
        reg = db.session.get(Registration, registration_id)
        if not reg:
            raise NotFound('Registration', registration_id)
        db.session.delete(reg)
        db.session.commit()
