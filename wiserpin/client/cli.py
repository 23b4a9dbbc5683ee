from __future__ import annotations

import argparse
import json
import logging
import sys
import time

from wiserpin.client.capture import capture_pin
from wiserpin.client.context import SyncContext
from wiserpin.client.errors import WiserPinError
from wiserpin.client.records import LocalCollection
from wiserpin.client.tokens import CredentialsSession
from wiserpin.config import ClientConfig


def _on_off(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="wiserpin-sync")
    p.add_argument("--api-url", default=ClientConfig.API_URL)
    p.add_argument("--db-path", default=ClientConfig.DB_PATH)
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="sign in and cache a session token")
    login.add_argument("--username", default=ClientConfig.USERNAME)
    login.add_argument("--password", default=ClientConfig.PASSWORD)
    sub.add_parser("logout", help="clear the cached session token")
    sub.add_parser("enable", help="enable cloud sync and run a pass")
    sub.add_parser("disable", help="disable cloud sync")
    sub.add_parser("sync", help="run one sync pass now")
    sub.add_parser("status", help="show the sync status")

    settings = sub.add_parser("settings", help="show or change sync settings")
    settings.add_argument("--auto-sync", type=_on_off)
    settings.add_argument("--interval", type=int, help="minutes between syncs")
    settings.add_argument("--wifi-only", type=_on_off)

    collections = sub.add_parser("collections", help="manage local collections")
    collections_sub = collections.add_subparsers(dest="action", required=True)
    add_collection = collections_sub.add_parser("add")
    add_collection.add_argument("name")
    add_collection.add_argument("--goal", default="")
    add_collection.add_argument("--color")
    collections_sub.add_parser("list")

    pins = sub.add_parser("pins", help="manage local pins")
    pins_sub = pins.add_subparsers(dest="action", required=True)
    add_pin = pins_sub.add_parser("add")
    add_pin.add_argument("url")
    add_pin.add_argument("--collection", required=True)
    add_pin.add_argument("--note")
    list_pins = pins_sub.add_parser("list")
    list_pins.add_argument("--collection")

    sub.add_parser("daemon", help="keep syncing in the background until interrupted")
    return p


def _config_for(args):
    class RuntimeConfig(ClientConfig):
        API_URL = args.api_url
        DB_PATH = args.db_path
        SCHEDULER_ENABLED = args.command == "daemon"

    return RuntimeConfig


def run_command(args, context: SyncContext) -> int:
    orchestrator = context.orchestrator

    if args.command == "login":
        if not args.username or not args.password:
            print("username and password are required", file=sys.stderr)
            return 2
        session = CredentialsSession(
            context.config.API_URL,
            args.username,
            args.password,
            timeout=context.config.REQUEST_TIMEOUT,
        )
        if not context.tokens.sign_in(session):
            print("sign in failed", file=sys.stderr)
            return 1
        print(f"Signed in as {args.username}")
    elif args.command == "logout":
        context.tokens.sign_out()
        print("Signed out")
    elif args.command == "enable":
        orchestrator.enable()
        _print(orchestrator.get_status().to_dict())
    elif args.command == "disable":
        orchestrator.disable()
        _print(orchestrator.get_settings().to_dict())
    elif args.command == "sync":
        report = orchestrator.sync()
        if report is not None:
            _print(
                {
                    "pulledCollections": len(report.pulled.collection_ids),
                    "pulledPins": len(report.pulled.pin_ids),
                    "pushed": [outcome.__dict__ for outcome in report.pushed],
                }
            )
    elif args.command == "status":
        _print(orchestrator.get_status().to_dict())
    elif args.command == "settings":
        settings = orchestrator.update_settings(
            auto_sync=args.auto_sync,
            sync_interval=args.interval,
            wifi_only=args.wifi_only,
        )
        _print(settings.to_dict())
    elif args.command == "collections" and args.action == "add":
        collection = LocalCollection(name=args.name, goal=args.goal, color=args.color)
        context.store.add_collection(collection)
        print(collection.id)
    elif args.command == "collections":
        for collection in context.store.list_collections():
            print(f"{collection.id}\t{collection.name}")
    elif args.command == "pins" and args.action == "add":
        pin = capture_pin(
            context.store,
            args.url,
            args.collection,
            note=args.note,
            timeout=context.config.CONTENT_FETCH_TIMEOUT,
            max_bytes=context.config.CONTENT_MAX_BYTES,
        )
        print(pin.id)
    elif args.command == "pins":
        for pin in context.store.query_pins(collection_id=args.collection):
            print(f"{pin.id}\t{pin.page.url}\t{pin.page.title or ''}")
    elif args.command == "daemon":
        context.bus.subscribe(lambda message: _print(message["status"]))
        context.start()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    context = SyncContext(config=_config_for(args))
    try:
        return run_command(args, context)
    except WiserPinError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        context.close()


if __name__ == "__main__":
    sys.exit(main())
