import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

logger = logging.getLogger(__name__)


def build_message(sender, recipient, subject, body):
    msg = MIMEMultipart()
    msg['From'] = sender
    msg['To'] = recipient
    msg['Subject'] = subject

    msg.attach(MIMEText(body, 'html'))
    return msg


def send_email(config, recipient, subject, body):
    """Send through the configured SMTP server; returns False on failure."""
    msg = build_message(config['MAIL_DEFAULT_SENDER'], recipient, subject, body)

    if config.get('MAIL_SUPPRESS_SEND'):
        logger.info("Mail suppressed: '%s' to %s", subject, recipient)
        return True

    try:
        server = smtplib.SMTP(config['MAIL_SERVER'], config['MAIL_PORT'])
        if config.get('MAIL_USE_TLS'):
            server.starttls()
        if config.get('MAIL_USERNAME'):
            server.login(config['MAIL_USERNAME'], config['MAIL_PASSWORD'])
        server.sendmail(config['MAIL_DEFAULT_SENDER'], recipient, msg.as_string())
        server.quit()
        return True
    except (smtplib.SMTPException, OSError):
        logger.exception("Email to %s failed", recipient)
        return False
