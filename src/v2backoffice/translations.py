"""ABOUTME: gettext for messages that reach API clients, emails and job records
ABOUTME: Uses Flask-Babel inside a request and plain %-formatting in the invoice worker and the CLI"""

from typing import Any

from flask import current_app, has_app_context
from flask_babel import gettext as flask_gettext


def gettext(message: str, **kwargs: Any) -> str:
    """Translate and format a message with %(name)s placeholders."""
    if has_app_context() and "babel" in current_app.extensions:
        return str(flask_gettext(message, **kwargs))
    if not kwargs:
        return message
    # a stored job error message must never fail to format
    try:
        return message % kwargs
    except (KeyError, ValueError, TypeError):
        return message


_ = gettext
