import os
import smtplib
import traceback
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from flask import current_app
from jinja2 import Environment, FileSystemLoader, select_autoescape

from carrental.lib.logger import logger

EMAIL_TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")
jinja_env = Environment(
    loader=FileSystemLoader(EMAIL_TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
)


def render_template(template_name, context=None):
    template = jinja_env.get_template(template_name)
    return template.render(**(context or {}))


def send_email(to_email: str, subject: str, template_name: str, context: dict = None):
    config = current_app.config
    host_user = config["EMAIL_HOST_USER"]
    try:
        html_content = render_template(template_name, context)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((config["EMAIL_FROM_NAME"], host_user))
        msg["To"] = to_email
        msg.attach(MIMEText(html_content, "html"))

        if config["EMAIL_ENCRYPTION"] == "ssl":
            server = smtplib.SMTP_SSL(config["EMAIL_HOST"], config["EMAIL_PORT"])
        else:
            server = smtplib.SMTP(config["EMAIL_HOST"], config["EMAIL_PORT"])
            if config["EMAIL_ENCRYPTION"] == "tls":
                server.starttls()

        try:
            server.login(host_user, config["EMAIL_HOST_PASSWORD"])
            server.sendmail(host_user, to_email, msg.as_string())
        finally:
            server.quit()

        logger.info(f"Email sent to {to_email}: {subject}")
        return True

    except (smtplib.SMTPException, OSError) as ex:
        error_trace = traceback.format_exc()
        logger.error(f"Failed to send email to {to_email}: {ex}\n{error_trace}")
        return False
