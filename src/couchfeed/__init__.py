"""couchfeed — async CouchDB client with change notification."""

from __future__ import annotations

__version__ = "0.1.0"
