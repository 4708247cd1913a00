"""HTTP layer — request execution against a CouchDB server."""

from couchfeed.http.executor import RequestExecutor
from couchfeed.http.models import ClientContext, CouchResponse

__all__ = ["ClientContext", "CouchResponse", "RequestExecutor"]
