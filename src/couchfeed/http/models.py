"""HTTP data models — client context and per-call response.

``ClientContext`` replaces any notion of ambient session state: the current
database and credentials live in an explicit value handed to the executor.
``CouchResponse`` is the outcome of exactly one request.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from typing import Any

# ---------------------------------------------------------------------------
# Client context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientContext:
    """Connection details shared by every request a client makes.

    Attributes:
        host: CouchDB host name.
        port: CouchDB port.
        scheme: ``http`` or ``https``.
        db: Currently selected database, if any.
        user: Basic auth user name (``None`` = no authentication).
        password: Basic auth password.
    """

    host: str = "localhost"
    port: int = 5984
    scheme: str = "http"
    db: str | None = None
    user: str | None = None
    password: str | None = field(default=None, repr=False)

    @property
    def base_url(self) -> str:
        """Scheme, host and port, without a trailing slash."""
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    def authorization_header(self) -> str | None:
        """Return the ``Authorization`` header value, or ``None`` when anonymous."""
        if self.user is None:
            return None
        token = base64.b64encode(f"{self.user}:{self.password or ''}".encode()).decode("ascii")
        return f"Basic {token}"

    def with_db(self, db: str | None) -> ClientContext:
        return replace(self, db=db)

    def with_credentials(self, user: str, password: str) -> ClientContext:
        return replace(self, user=user, password=password)


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CouchResponse:
    """Normalized result of one CouchDB request.

    Attributes:
        status_code: Raw HTTP status code.
        body: Parsed JSON body, or the raw text when it is not JSON.
        headers: Response headers (lower-cased keys).
    """

    status_code: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True for any 2xx status."""
        return 200 <= self.status_code < 300

    @property
    def json(self) -> dict[str, Any]:
        """The body as a dict (empty when the body is not a JSON object)."""
        return self.body if isinstance(self.body, dict) else {}

    @property
    def etag(self) -> str | None:
        """Document revision from the ``ETag`` header, unquoted."""
        value = self.headers.get("etag")
        return value.strip('"') if value else None
