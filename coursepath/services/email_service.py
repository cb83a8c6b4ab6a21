import logging
import emails # Library for composing and sending emails
from emails.template import JinjaTemplate # For HTML templating
from typing import Dict, Any

from coursepath.core.config import settings # For email server configuration

logger = logging.getLogger(__name__)

# --- Templates ---
# Kept inline; they are short and versioned with the code that fills them.
QUIZ_RESULT_TEMPLATE = """
<p>Hi {{ user_name }},</p>
<p>You scored <strong>{{ score }}%</strong> on the quiz for
<em>{{ module_title }}</em> in <em>{{ course_title }}</em>.</p>
{% if passed %}
<p>Well done, the module is now marked as completed.</p>
{% else %}
<p>The passing score is {{ passing_score }}%. Review the module and try again.</p>
{% endif %}
<p><a href="{{ APP_FRONTEND_URL }}/courses/{{ course_id }}">Continue learning</a></p>
<p>{{ APP_NAME }}</p>
"""

CERTIFICATE_ISSUED_TEMPLATE = """
<p>Hi {{ user_name }},</p>
<p>Congratulations on completing <em>{{ course_name }}</em>!</p>
<p>Your certificate was issued on {{ issued_date }} with credential ID
<strong>{{ credential_id }}</strong>.</p>
<p><a href="{{ APP_FRONTEND_URL }}/certificates/{{ certificate_id }}">View your certificate</a></p>
<p>{{ APP_NAME }}</p>
"""

# --- Email Sending Logic ---

def send_email(to_email: str, subject: str, html_content: str) -> bool:
    """
    Sends an email using configured SMTP settings.
    Logs instead of sending if SMTP is not configured.
    """
    if not settings.EMAIL_HOST or not settings.EMAIL_FROM_ADDRESS:
        logger.info(f"Email SKIPPED (SMTP not configured) [To: {to_email}, Subject: {subject}]")
        logger.debug(f"Body:\n{html_content[:500]}...")
        return True

    message = emails.Message(
        subject=subject,
        html=html_content,
        mail_from=(settings.EMAIL_FROM_NAME, settings.EMAIL_FROM_ADDRESS)
    )

    smtp_options = {
        "host": settings.EMAIL_HOST,
        "port": settings.EMAIL_PORT,
        "tls": settings.EMAIL_USE_TLS,
        "ssl": settings.EMAIL_USE_SSL,
        "user": settings.EMAIL_USERNAME,
        "password": settings.EMAIL_PASSWORD
    }
    smtp_options = {k: v for k, v in smtp_options.items() if v is not None}
    if not smtp_options.get("user"):
        smtp_options.pop("user", None)
        smtp_options.pop("password", None)

    logger.info(f"Attempting to send email to {to_email} via {settings.EMAIL_HOST}:{settings.EMAIL_PORT}")
    try:
        response = message.send(to=to_email, smtp=smtp_options)
        if response and response.status_code in [250, 252]: # Typical SMTP success codes
            logger.info(f"Email sent successfully to {to_email}. Subject: '{subject}'. SMTP Response: {response.status_code}")
            return True
        logger.error(f"Failed to send email to {to_email}. SMTP Response: {response.status_code if response else 'No response'}. Error: {response.error if response else 'N/A'}")
        return False
    except Exception as e:
        logger.error(f"Exception during email sending to {to_email}: {e}", exc_info=True)
        return False

def render_email_template(template_str: str, context: Dict[str, Any]) -> str:
    context.setdefault("APP_NAME", settings.PROJECT_NAME)
    context.setdefault("APP_FRONTEND_URL", settings.APP_FRONTEND_URL)
    return JinjaTemplate(template_str).render(**context)

def send_templated_email(to_email: str, subject: str, template_str: str, context: Dict[str, Any]) -> bool:
    """
    Renders an HTML template and sends it. Never raises: notification failures
    must not affect the operation that triggered them.
    """
    try:
        html_content = render_email_template(template_str, context)
    except Exception as e:
        logger.error(f"Error rendering email '{subject}' for {to_email}: {e}", exc_info=True)
        return False
    return send_email(to_email=to_email, subject=subject, html_content=html_content)


def send_quiz_result_email(user, course, module, score: float, passed: bool) -> bool:
    return send_templated_email(
        to_email=user.email,
        subject=f"Your results for the {module.title} quiz",
        template_str=QUIZ_RESULT_TEMPLATE,
        context={
            "user_name": user.display_name or user.email,
            "course_title": course.title,
            "course_id": course.id,
            "module_title": module.title,
            "score": round(score, 1),
            "passed": passed,
            "passing_score": settings.PASSING_SCORE,
        },
    )

def send_certificate_issued_email(user, certificate) -> bool:
    return send_templated_email(
        to_email=user.email,
        subject=f"Your certificate for {certificate.course_name}",
        template_str=CERTIFICATE_ISSUED_TEMPLATE,
        context={
            "user_name": user.display_name or user.email,
            "course_name": certificate.course_name,
            "issued_date": certificate.issued_date.strftime("%B %d, %Y"),
            "credential_id": certificate.credential_id,
            "certificate_id": certificate.id,
        },
    )
