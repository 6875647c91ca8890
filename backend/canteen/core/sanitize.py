"""Text sanitization for user-supplied strings that end up in a browser."""

import html


def sanitize_text(value: str | None) -> str | None:
    """Trim and HTML-escape user-supplied text.

    Menu names, outlet names and descriptions are rendered verbatim by the
    web client, so they are escaped once on the way in.
    """
    if value is None:
        return None
    return html.escape(value.strip(), quote=True)
