from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from campus_requests.services.notification_service import NotificationService

notifications_bp = Blueprint('notifications', __name__)

@notifications_bp.route('', methods=['GET'])
@login_required
def list_notifications():
    unread_only = request.args.get('unread') in ('1', 'true')
    notes = NotificationService.list_for_user(current_user.id, unread_only=unread_only)
    return jsonify({
        'notifications': [n.to_dict() for n in notes],
        'unread_count': NotificationService.unread_count(current_user.id),
    })

@notifications_bp.route('/<int:notification_id>/read', methods=['PUT'])
@login_required
def mark_read(notification_id):
    return jsonify(NotificationService.mark_read(current_user.id, notification_id).to_dict())

@notifications_bp.route('/read-all', methods=['PUT'])
@login_required
def mark_all_read():
    return jsonify({'updated': NotificationService.mark_all_read(current_user.id)})

@notifications_bp.route('/<int:notification_id>', methods=['DELETE'])
@login_required
def delete_notification(notification_id):
    NotificationService.delete(current_user.id, notification_id)
    return jsonify({'deleted': True})

@notifications_bp.route('', methods=['DELETE'])
@login_required
def delete_all_notifications():
    return jsonify({'deleted': NotificationService.delete_all(current_user.id)})
