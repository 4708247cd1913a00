"""Couch client — document operations and change notification."""

from couchfeed.client.client import CouchClient

__all__ = ["CouchClient"]
