"""
Digest notifiers.

Components:
    console: ConsoleNotifier, prints digests
    email: EmailNotifier, sends digests through a mail HTTP API
    digest: Shared text/HTML rendering

Example:
    >>> from fluidwatch.notifiers import create_notifier
    >>> notifier = create_notifier(config.service.notifier)
"""

from fluidwatch.config.models import NotifierConfig, NotifierKind
from fluidwatch.interfaces.notifier import Notifier
from fluidwatch.notifiers.console import ConsoleNotifier, create_console_notifier
from fluidwatch.notifiers.email import EmailNotifier, create_email_notifier
from fluidwatch.notifiers.digest import DIGEST_SUBJECT, render_html, render_text


def create_notifier(config: NotifierConfig) -> Notifier:
    """
    Build the notifier selected in configuration.

    Args:
        config: Notifier configuration.

    Returns:
        Notifier: Console or e-mail notifier.
    """
    if config.kind == NotifierKind.EMAIL:
        return create_email_notifier(config.mail)
    return create_console_notifier()


__all__: list[str] = [
    "create_notifier",
    # Console
    "ConsoleNotifier",
    "create_console_notifier",
    # Email
    "EmailNotifier",
    "create_email_notifier",
    # Rendering
    "DIGEST_SUBJECT",
    "render_html",
    "render_text",
]
