"""CLI for cali - manage Google Calendar events from the terminal.

Usage:
    cali init                              # Create config directory, show setup instructions
    cali status                            # Show credential status
    cali add --summary "Standup"           # Create an event (default: next hour, 1h long)
    cali update EVENT_ID --location "Room 2"
    cali get EVENT_ID
    cali delete EVENT_ID
    cali list --future --limit 10          # One page; prints the next anchor on stderr
    cali list --all --after 2026-01-01T00:00:00Z
    cali auth login                        # Interactive OAuth login
    cali auth status                       # Show OAuth token status
    cali auth refresh                      # Refresh OAuth token
    cali auth revoke                       # Revoke OAuth token
    cali auth import <path>                # Import OAuth credentials
    cali auth import-key <path>            # Import service account key

Global options (before the command): --format json|yaml|ical, --calendar ID,
--endpoint URL, --config PATH, --verbose.
"""

from __future__ import annotations

import argparse
import json
import logging
import shutil
import sys
import threading
import webbrowser
from datetime import datetime
from pathlib import Path

from cali.calendar.mapper import parse_rfc3339

logger = logging.getLogger(__name__)


def rfc3339(value: str) -> datetime:
    """argparse type for strict RFC3339 timestamps."""
    parsed = parse_rfc3339(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(
            f"invalid timestamp {value!r} (expected RFC3339, e.g. 2026-01-25T10:00:00Z)"
        )
    return parsed


def cmd_init() -> int:
    """Initialize the cali config directory."""
    from cali.config import (
        CONFIG_DIR,
        CONFIG_FILE,
        ENV_FILE,
        GOOGLE_CREDENTIALS,
        GOOGLE_SERVICE_ACCOUNT,
        GOOGLE_TOKEN,
        ensure_config_dir,
        get_credential_status,
    )

    print("=" * 60)
    print("CALI SETUP")
    print("=" * 60)
    print()

    ensure_config_dir()
    print(f"Created: {CONFIG_DIR}/")
    print()

    print("Configuration locations:")
    print()
    print(f"  {CONFIG_FILE}")
    print("    Settings: api_endpoint, calendar_id, output_format, auth")
    print()
    print(f"  {ENV_FILE}")
    print("    Overrides: CALI_CALENDAR_ID, CALI_API_ENDPOINT, CALI_OUTPUT_FORMAT")
    print()
    print(f"  {GOOGLE_CREDENTIALS}")
    print("    OAuth client credentials from Google Cloud Console")
    print()
    print(f"  {GOOGLE_TOKEN}")
    print("    OAuth tokens (created by 'cali auth login')")
    print()
    print(f"  {GOOGLE_SERVICE_ACCOUNT}")
    print("    Service account key from Google Cloud Console")
    print()
    print("-" * 60)
    print()

    status = get_credential_status()
    if status["google"]["service_account"]:
        print("Service account key exists")
    elif status["google"]["credentials"]:
        print("OAuth credentials.json exists")
    else:
        print("For Google credentials, visit:")
        print("  https://console.cloud.google.com/apis/credentials")
        print("Then run 'cali auth import <path>' or 'cali auth import-key <path>'")
        print()

    return 0


def cmd_status() -> int:
    """Show status of all configured credentials."""
    from cali.config import get_credential_status

    status = get_credential_status()

    print("=" * 60)
    print("CALI CREDENTIAL STATUS")
    print("=" * 60)
    print()
    print(f"Config directory: {status['config_dir']}")
    print()
    print(f"  config.yaml:            {'[x]' if status['config_file'] else '[ ]'}")
    print(f"  .env:                   {'[x]' if status['env_file'] else '[ ]'}")
    print(f"  credentials.json:       {'[x]' if status['google']['credentials'] else '[ ]'}")
    print(f"  token.json:             {'[x]' if status['google']['token'] else '[ ]'}")
    print(f"  service-account.json:   {'[x]' if status['google']['service_account'] else '[ ]'}")
    if status["api_endpoint"]:
        print(f"  API endpoint override:  {status['api_endpoint']}")
    print()

    return 0


# =========================================================================
# Auth
# =========================================================================


def _oauth(config, scopes: list[str]):
    from cali.google import GoogleOAuth

    client = config.oauth_client or {}
    return GoogleOAuth(
        scopes=scopes,
        client_id=client.get("client_id"),
        client_secret=client.get("client_secret"),
        token_path=config.oauth_token_path,
        credentials_path=config.credentials_path,
    )


def auth_login(config, scopes: list[str], no_browser: bool = False) -> int:
    """Interactive Google OAuth login."""
    from cali.google import CredentialsNotFoundError

    print("=" * 60)
    print("CALI GOOGLE LOGIN")
    print("=" * 60)

    try:
        auth = _oauth(config, scopes)
    except CredentialsNotFoundError as e:
        print(f"\nError: {e}")
        print("Run 'cali init' for setup instructions")
        return 1

    info = auth.get_token_info()
    if auth.is_authorized() and info["status"] == "valid":
        print("\nAlready authorized with valid token")
        return auth_status(config, scopes)

    if info["status"] == "expired":
        print("\nToken expired, attempting refresh...")
        try:
            auth.get_credentials()  # Triggers refresh
            if auth.get_token_info()["status"] == "valid":
                print("Token refreshed successfully!")
                return auth_status(config, scopes)
        except Exception as e:
            print(f"Refresh failed: {e}")
            print("Starting new authorization flow...")

    print(f"\nScopes: {', '.join(scopes)}")
    print("\nA browser window will open for Google consent.")
    print("After granting access, copy the redirect URL back here.\n")

    url = auth.get_authorization_url()
    print(f"Authorization URL:\n{url}\n")

    if not no_browser:
        webbrowser.open(url)

    redirect_url = input("Paste redirect URL: ").strip()
    if not redirect_url:
        print("No URL provided; aborting.")
        return 1

    try:
        auth.fetch_token(redirect_url)
        print("\nToken saved successfully!")
        return auth_status(config, scopes)
    except Exception as e:
        print(f"\nError: {e}")
        return 1


def auth_status(config, scopes: list[str]) -> int:
    """Show Google OAuth token status."""
    from cali.google import CredentialsNotFoundError

    try:
        auth = _oauth(config, scopes)
    except CredentialsNotFoundError as e:
        print(f"Error: {e}")
        print("Run 'cali init' for setup instructions")
        return 1

    info = auth.get_token_info()

    if info["status"] == "no_token":
        print("No token found - run 'cali auth login'")
        return 1

    print(f"Status     : {info['status']}")
    print(f"Scopes     : {', '.join(info.get('scopes', []))}")
    print(f"Expires in : {info.get('expires_in', 'unknown')}")
    print(f"Refreshed  : {info.get('last_refresh') or 'never'}")
    return 0


def auth_refresh(config, scopes: list[str]) -> int:
    """Refresh Google OAuth token."""
    from cali.google import CredentialsNotFoundError, TokenError

    try:
        auth = _oauth(config, scopes)
    except CredentialsNotFoundError as e:
        print(f"Error: {e}")
        print("Run 'cali init' for setup instructions")
        return 1

    if not auth.is_authorized():
        print("No valid token - run 'cali auth login'")
        return 1

    try:
        auth.get_credentials()  # Triggers refresh if expired
        print("Token refreshed successfully!")
        return auth_status(config, scopes)
    except TokenError as e:
        print(f"Refresh failed: {e}")
        print("You may need to re-authenticate: cali auth login")
        return 1


def auth_revoke(config, scopes: list[str]) -> int:
    """Revoke Google OAuth token."""
    from cali.google import CredentialsNotFoundError

    try:
        auth = _oauth(config, scopes)
    except CredentialsNotFoundError:
        print("No credentials to revoke")
        return 0

    auth.revoke_token()
    print("Token revoked and local cache cleared")
    return 0


def auth_import(source_path: str) -> int:
    """Import OAuth credentials from a file."""
    from cali.config import GOOGLE_CREDENTIALS, ensure_config_dir

    source = Path(source_path).expanduser()

    if not source.exists():
        print(f"Error: File not found: {source}")
        return 1

    try:
        with open(source) as f:
            data = json.load(f)

        if "installed" not in data and "web" not in data:
            print("Error: Invalid OAuth credentials format")
            print("Expected 'installed' or 'web' key in JSON")
            return 1

        key = "installed" if "installed" in data else "web"
        client_id = data[key].get("client_id", "unknown")

    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON: {e}")
        return 1

    ensure_config_dir()
    shutil.copy2(source, GOOGLE_CREDENTIALS)

    print("Imported OAuth credentials")
    print(f"  From: {source}")
    print(f"  To:   {GOOGLE_CREDENTIALS}")
    print(f"  Client ID: {client_id[:40]}...")
    print()
    print("Next: Run 'cali auth login' to authorize")
    return 0


def auth_import_key(source_path: str) -> int:
    """Import service account key from a file."""
    from cali.config import GOOGLE_SERVICE_ACCOUNT, ensure_config_dir

    source = Path(source_path).expanduser()

    if not source.exists():
        print(f"Error: File not found: {source}")
        return 1

    try:
        with open(source) as f:
            data = json.load(f)

        if data.get("type") != "service_account":
            print("Error: Invalid service account key format")
            print(f"Expected type 'service_account', got '{data.get('type')}'")
            return 1

        email = data.get("client_email", "unknown")
        project = data.get("project_id", "unknown")

    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON: {e}")
        return 1

    ensure_config_dir()
    shutil.copy2(source, GOOGLE_SERVICE_ACCOUNT)
    GOOGLE_SERVICE_ACCOUNT.chmod(0o600)

    print("Imported service account key")
    print(f"  From: {source}")
    print(f"  To:   {GOOGLE_SERVICE_ACCOUNT}")
    print(f"  Email: {email}")
    print(f"  Project: {project}")
    print()
    print("Remember to share your calendar with the service account email!")
    return 0


def parse_scopes(scope_str: str | None) -> list[str]:
    """Parse comma-separated scopes."""
    if not scope_str:
        return ["calendar"]
    return [s.strip() for s in scope_str.split(",")]


# =========================================================================
# Events
# =========================================================================


def _emit(items: list, fmt: str, many: bool = False) -> None:
    from cali.output import render

    sys.stdout.write(render(items, fmt, many=many))
    if fmt != "ical":
        sys.stdout.write("\n")


def cmd_add(service, args, fmt: str) -> int:
    from cali.calendar import AddEventRequest

    request = AddEventRequest(
        summary=args.summary,
        description=args.description,
        location=args.location,
        start_time=args.start,
        end_time=args.end,
        guests_can_see_other_guests=args.guests_can_see_other_guests,
        guests_can_modify=args.guests_can_modify,
        guests_can_invite_others=args.guests_can_invite_others,
        idempotency_key=args.idempotency_key,
        source_title=args.source_title,
        source_url=args.source_url,
        blocks_time=args.blocks_time,
        calendar_id=args.calendar,
    )
    _emit([service.add_event(request)], fmt)
    return 0


def cmd_update(service, args, fmt: str) -> int:
    from cali.calendar import UpdateEventRequest

    request = UpdateEventRequest(
        event_id=args.event_id,
        summary=args.summary,
        description=args.description,
        location=args.location,
        start_time=args.start,
        end_time=args.end,
        guests_can_see_other_guests=args.guests_can_see_other_guests,
        guests_can_modify=args.guests_can_modify,
        guests_can_invite_others=args.guests_can_invite_others,
        source_title=args.source_title,
        source_url=args.source_url,
        blocks_time=args.blocks_time,
        calendar_id=args.calendar,
    )
    _emit([service.update_event(request)], fmt)
    return 0


def cmd_get(service, args, fmt: str) -> int:
    from cali.calendar import GetEventRequest

    request = GetEventRequest(event_id=args.event_id, calendar_id=args.calendar)
    _emit([service.get_event(request)], fmt)
    return 0


def cmd_delete(service, args, fmt: str) -> int:
    from cali.calendar import DeleteEventRequest

    request = DeleteEventRequest(event_id=args.event_id, calendar_id=args.calendar)
    _emit([service.delete_event(request)], fmt)
    return 0


def cmd_list(service, args, fmt: str) -> int:
    from cali.calendar import ListEventsRequest

    request = ListEventsRequest(
        calendar_id=args.calendar,
        after=args.after,
        before=args.before,
        future=args.future,
        past=args.past,
        limit=args.limit,
        anchor=args.anchor,
    )
    cancel = threading.Event()

    try:
        if args.all:
            events = list(service.list_all_events(request, cancel=cancel))
            next_anchor = None
        else:
            events = []
            next_anchor = None
            for item in service.list_events(request, cancel=cancel):
                if item.event is not None:
                    events.append(item.event)
                else:
                    next_anchor = item.next_anchor
    except KeyboardInterrupt:
        cancel.set()
        raise

    _emit(events, fmt, many=True)
    if next_anchor:
        print(f"More events available: --anchor {next_anchor}", file=sys.stderr)
    return 0


def _add_event_fields(parser: argparse.ArgumentParser, summary_required: bool) -> None:
    parser.add_argument("--summary", "--title", required=summary_required, help="Event title")
    parser.add_argument("--description", help="Event description (HTML allowed)")
    parser.add_argument("--location", help="Event location")
    parser.add_argument("--start", type=rfc3339, help="Start time (RFC3339)")
    parser.add_argument("--end", type=rfc3339, help="End time (RFC3339)")
    parser.add_argument(
        "--guests-can-see-other-guests", action=argparse.BooleanOptionalAction, default=None
    )
    parser.add_argument("--guests-can-modify", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument(
        "--guests-can-invite-others", action=argparse.BooleanOptionalAction, default=None
    )
    parser.add_argument("--source-title", help="Title of the event's origin")
    parser.add_argument("--source-url", help="URL of the event's origin")
    parser.add_argument(
        "--blocks-time",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Mark the event as busy (opaque) or free (transparent)",
    )


def build_parser() -> tuple[argparse.ArgumentParser, argparse.ArgumentParser]:
    parser = argparse.ArgumentParser(
        prog="cali",
        description="Manage Google Calendar events from the command line",
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--format", choices=["json", "yaml", "ical"], help="Output format")
    parser.add_argument("--calendar", help="Calendar ID (default: primary)")
    parser.add_argument("--endpoint", help="Calendar API endpoint override")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command")

    subparsers.add_parser("init", help="Initialize config directory")
    subparsers.add_parser("status", help="Show credential status")

    add_parser = subparsers.add_parser("add", help="Create an event")
    _add_event_fields(add_parser, summary_required=True)
    add_parser.add_argument("--idempotency-key", help="Event ID to use, making retries safe")

    update_parser = subparsers.add_parser("update", help="Change fields of an event")
    update_parser.add_argument("event_id", help="Event ID")
    _add_event_fields(update_parser, summary_required=False)

    get_parser = subparsers.add_parser("get", help="Show one event")
    get_parser.add_argument("event_id", help="Event ID")

    delete_parser = subparsers.add_parser("delete", help="Delete an event")
    delete_parser.add_argument("event_id", help="Event ID")

    list_parser = subparsers.add_parser("list", help="List events")
    list_parser.add_argument("--after", type=rfc3339, help="Only events starting after (RFC3339)")
    list_parser.add_argument("--before", type=rfc3339, help="Only events starting before (RFC3339)")
    list_parser.add_argument("--future", action="store_true", default=None, help="Upcoming events")
    list_parser.add_argument("--past", action="store_true", default=None, help="Past events")
    list_parser.add_argument("--limit", type=int, help="Page size")
    list_parser.add_argument("--anchor", help="Continue from a previous page")
    list_parser.add_argument("--all", action="store_true", help="Follow anchors to the last page")

    auth_parser = subparsers.add_parser("auth", help="Google credential management")
    auth_subparsers = auth_parser.add_subparsers(dest="auth_command", help="Command")

    login_parser = auth_subparsers.add_parser("login", help="Interactive OAuth login")
    login_parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open browser automatically",
    )
    for name, help_text in (
        ("status", "Show token status"),
        ("refresh", "Refresh token"),
        ("revoke", "Revoke token"),
    ):
        auth_subparsers.add_parser(name, help=help_text)

    for sub in auth_subparsers.choices.values():
        sub.add_argument(
            "--scopes",
            type=str,
            default="calendar",
            help="Comma-separated scopes (default: calendar)",
        )

    import_parser = auth_subparsers.add_parser("import", help="Import OAuth credentials")
    import_parser.add_argument("path", help="Path to credentials.json file")

    import_key_parser = auth_subparsers.add_parser("import-key", help="Import service account key")
    import_key_parser.add_argument("path", help="Path to service account JSON key file")

    return parser, auth_parser


EVENT_COMMANDS = {
    "add": cmd_add,
    "update": cmd_update,
    "get": cmd_get,
    "delete": cmd_delete,
    "list": cmd_list,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    from cali.calendar import CalendarError
    from cali.config import ConfigError, load_config
    from cali.google import GoogleAuthError
    from cali.service import CalendarService, NotConfiguredError

    parser, auth_parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.endpoint:
        config.api_endpoint = args.endpoint
    fmt = args.format or config.output_format

    if args.command == "init":
        return cmd_init()

    if args.command == "status":
        return cmd_status()

    if args.command == "auth":
        scopes = parse_scopes(getattr(args, "scopes", None))

        if args.auth_command == "login":
            return auth_login(config, scopes, args.no_browser)
        elif args.auth_command == "status":
            return auth_status(config, scopes)
        elif args.auth_command == "refresh":
            return auth_refresh(config, scopes)
        elif args.auth_command == "revoke":
            return auth_revoke(config, scopes)
        elif args.auth_command == "import":
            return auth_import(args.path)
        elif args.auth_command == "import-key":
            return auth_import_key(args.path)
        else:
            auth_parser.print_help()
            return 0

    service = CalendarService(config)
    try:
        return EVENT_COMMANDS[args.command](service, args, fmt)
    except (CalendarError, NotConfiguredError, GoogleAuthError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
