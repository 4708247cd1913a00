#!/usr/bin/env python3
"""CouchDB Tool — inspect a server and follow a changes feed.

A standalone CLI utility; connection settings come from ``COUCHFEED_COUCH__*``
environment variables (host, port, use_ssl, user, password):

    # List all databases
    python -m couchfeed.tools.couch_tool dbs

    # Show information about a database
    python -m couchfeed.tools.couch_tool info <database>

    # Generate server-side UUIDs
    python -m couchfeed.tools.couch_tool uuids [count]

    # Print changes as they happen (Ctrl-C to stop)
    python -m couchfeed.tools.couch_tool watch <database> [heartbeat_ms]
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import sys

from couchfeed.changes.events import ChangeEvent
from couchfeed.changes.parameters import NotificationParameters
from couchfeed.client.client import CouchClient
from couchfeed.config.settings import AppConfig
from couchfeed.errors.couchfeed_errors import CouchFeedError


def _client() -> CouchClient:
    return CouchClient.from_config(AppConfig())


def _cmd_dbs() -> None:
    """List all databases on the server."""

    async def _run() -> None:
        client = _client()
        await client.connect()
        try:
            resp = await client.get_all_dbs()
            for name in resp.body or []:
                print(f"  {name}")
        finally:
            await client.close()

    asyncio.run(_run())


def _cmd_info(database: str) -> None:
    """Show document count, update sequence and size of a database."""

    async def _run() -> None:
        client = _client()
        await client.connect()
        try:
            info = (await client.get_database_info(database)).json
            print(f"Database:     {info.get('db_name', database)}")
            print(f"Documents:    {info.get('doc_count', 0):>12,}")
            print(f"Deleted:      {info.get('doc_del_count', 0):>12,}")
            print(f"Update seq:   {info.get('update_seq')}")
        finally:
            await client.close()

    asyncio.run(_run())


def _cmd_uuids(count: int) -> None:
    """Print *count* server-generated UUIDs."""

    async def _run() -> None:
        client = _client()
        await client.connect()
        try:
            resp = await client.generate_ids(count)
            for uuid in resp.json.get("uuids", []):
                print(uuid)
        finally:
            await client.close()

    asyncio.run(_run())


def _print_event(event: ChangeEvent) -> None:
    if event.is_error:
        print(f"  ! error at since={event.sequence}: {event.error}")
        return
    print(json.dumps(event.to_dict(), default=str))


def _cmd_watch(database: str, heartbeat: int) -> None:
    """Follow the changes feed of *database* until interrupted."""

    async def _run() -> None:
        client = _client()
        await client.connect()
        try:
            client.change_notification.add_listener(_print_event)
            client.start_change_notification(NotificationParameters(heartbeat=heartbeat), database)
            print(f"Watching {database} (heartbeat {heartbeat} ms), Ctrl-C to stop")
            await asyncio.Event().wait()
        finally:
            await client.close()

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run())


def main() -> None:
    """CLI entry point."""
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    cmd = sys.argv[1].lower()

    try:
        if cmd == "dbs":
            _cmd_dbs()
        elif cmd == "info":
            if len(sys.argv) < 3:
                print("Usage: couch_tool info <database>")
                sys.exit(1)
            _cmd_info(sys.argv[2])
        elif cmd == "uuids":
            count = int(sys.argv[2]) if len(sys.argv) > 2 else 10
            _cmd_uuids(count)
        elif cmd == "watch":
            if len(sys.argv) < 3:
                print("Usage: couch_tool watch <database> [heartbeat_ms]")
                sys.exit(1)
            heartbeat = int(sys.argv[3]) if len(sys.argv) > 3 else 1000
            _cmd_watch(sys.argv[2], heartbeat)
        else:
            print(f"Unknown command: {cmd}")
            print(__doc__)
            sys.exit(1)
    except CouchFeedError as exc:
        print(f"Error: {exc.message}")
        sys.exit(2)


if __name__ == "__main__":
    main()
