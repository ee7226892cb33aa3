from flask_mail import Message

from eventflow.extensions import celery, mail


@celery.task(bind=True, max_retries=3)
def send_async_email(self, subject, recipients, body, is_html=False):
    """
    Background task to send an email via Flask-Mail.
    """
    if isinstance(recipients, str):
        recipients = [recipients]
    try:
        msg = Message(subject, recipients=list(recipients))
        if is_html:
            msg.html = body
        else:
            msg.body = body

        mail.send(msg)
        return f"Email sent to {', '.join(recipients)}"
    except Exception as e:
        # Retry in 60 seconds if it fails (e.g., Network/SMTP issues)
        raise self.retry(exc=e, countdown=60)
