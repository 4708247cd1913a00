"""URL helpers — database conditioning and query parameter setting.

Database names may contain ``/``; CouchDB expects it escaped as ``%2F`` in
the path, so the database segment is always fully quoted.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from couchfeed.errors.couchfeed_errors import InvalidParameterError


def db_segment(name: str) -> str:
    """Escape a database name for use as one path segment."""
    return quote(name, safe="")


def set_url_parameter(url: str, key: str, value: str) -> str:
    """Set ``key=value`` in *url*'s query string, keeping other parameters."""
    parts = urlsplit(url)
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    params[key] = value
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))


def condition_url(db: str | None, url: str | None) -> str:
    """Prefix *url* with ``/<db>`` and make sure it starts with a slash.

    Raises:
        InvalidParameterError: No database is selected.
    """
    if not db:
        raise InvalidParameterError("No database specified")
    if not url:
        return f"/{db_segment(db)}"
    if not url.startswith("/"):
        url = f"/{url}"
    return f"/{db_segment(db)}{url}"


def root_url(name: str) -> str:
    """Server-level path for database *name* (``team/db`` -> ``/team%2Fdb``)."""
    return f"/{db_segment(name)}"
