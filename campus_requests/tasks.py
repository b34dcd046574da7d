import logging

from flask_mail import Message

from campus_requests.extensions import celery, mail

logger = logging.getLogger(__name__)


@celery.task(bind=True, max_retries=3)
def send_async_email(self, subject, recipients, body, is_html=False):
    """
    Background task to send a workflow email via Flask-Mail.
    """
    if isinstance(recipients, str):
        recipients = [recipients]
    try:
        msg = Message(subject, recipients=recipients)
        if is_html:
            msg.html = body
        else:
            msg.body = body

        mail.send(msg)
        logger.info("Email '%s' sent to %d recipient(s)", subject, len(recipients))
        return f"Email sent to {', '.join(recipients)}"
    except Exception as e:
        # SMTP/network hiccups: try again in a minute
        logger.warning("Email '%s' failed, retrying: %s", subject, e)
        raise self.retry(exc=e, countdown=60)
