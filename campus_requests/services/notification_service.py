from campus_requests.extensions import db
from campus_requests.exceptions import NotFound
from campus_requests.models import Notification


class NotificationService:

    @staticmethod
    def notify(user_id, n_type, title, message, request_id=None):
        """Adds an in-app notification; committed with the caller's transaction."""
        note = Notification(user_id=user_id, type=n_type, title=title, message=message, request_id=request_id)
        db.session.add(note)
        return note

    @staticmethod
    def list_for_user(user_id, unread_only=False):
        query = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            query = query.filter_by(read=False)
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, read=False).count()

    @staticmethod
    def _get_own(user_id, notification_id):
        note = db.session.get(Notification, notification_id)
        # Someone else's notification is reported as missing
        if note is None or note.user_id != user_id:
            raise NotFound('Notification', notification_id)
        return note

    @staticmethod
    def mark_read(user_id, notification_id):
        note = NotificationService._get_own(user_id, notification_id)
        note.read = True
        db.session.commit()
        return note

    @staticmethod
    def mark_all_read(user_id):
        count = Notification.query.filter_by(user_id=user_id, read=False).update({'read': True})
        db.session.commit()
        return count

    @staticmethod
    def delete(user_id, notification_id):
        db.session.delete(NotificationService._get_own(user_id, notification_id))
        db.session.commit()

    @staticmethod
    def delete_all(user_id):
        count = Notification.query.filter_by(user_id=user_id).delete()
        db.session.commit()
        return count
