"""
Alert notification channels.

Components:
    base: NotificationChannel protocol and NotificationError
    email: EmailJS REST API channel and message rendering
    console: Log-only channel for development

Example:
    >>> from safetrack.detection.channels import ConsoleChannel, EmailJSChannel
    >>>
    >>> await ConsoleChannel().send(alert)
"""

from safetrack.detection.channels.base import NotificationChannel, NotificationError
from safetrack.detection.channels.console import ConsoleChannel
from safetrack.detection.channels.email import (
    EMAILJS_SEND_URL,
    EmailJSChannel,
    build_template_params,
    render_html,
    render_subject,
    render_text,
)

__all__ = [
    # Base
    "NotificationChannel",
    "NotificationError",
    # Console
    "ConsoleChannel",
    # Email
    "EmailJSChannel",
    "EMAILJS_SEND_URL",
    "build_template_params",
    "render_html",
    "render_subject",
    "render_text",
]
