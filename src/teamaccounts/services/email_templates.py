"""Transactional email templates.

Learn: Templates live in code and are rendered with Jinja2. Each entry
has a subject and an HTML message; both are templates. Unknown names
raise EmailTemplateNotFoundError rather than sending an empty email.
"""

from dataclasses import dataclass

from jinja2 import DictLoader, Environment, StrictUndefined, TemplateNotFound

_TEMPLATES = {
    "welcome/subject": "Welcome to teamaccounts",
    "welcome/message": (
        "<p>Hello {{ userName }},</p>"
        "<p>Thanks for signing up! Create your first team to get started, "
        "then invite your teammates by email.</p>"
        "<p>Kelly &amp; the team</p>"
    ),
    "login/subject": "Your login link",
    "login/message": (
        "<p>Click the link below to log in:</p>"
        '<p><a href="{{ loginURL }}">{{ loginURL }}</a></p>'
        "<p>If you didn't request this email, you can safely ignore it.</p>"
    ),
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=True,
    undefined=StrictUndefined,
)


class EmailTemplateNotFoundError(Exception):
    pass


@dataclass
class RenderedEmail:
    subject: str
    message: str


def get_email_template(name: str, params: dict) -> RenderedEmail:
    """Render the named template's subject and message with `params`."""
    try:
        subject = _env.get_template(f"{name}/subject").render(**params)
        message = _env.get_template(f"{name}/message").render(**params)
    except TemplateNotFound:
        raise EmailTemplateNotFoundError(f"{name} Email template not found")
    return RenderedEmail(subject=subject, message=message)
