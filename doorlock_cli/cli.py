"""
Doorlock CLI - Main entry point.

One-shot operator actions against the door lock: sign in, open/close the
door, read the access log and manage the door password and RFID tags.
"""

import argparse
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from doorlock_control import DashboardConfig, DashboardSession
from doorlock_mqtt.schemas import AccessLogEntry, DeliveryState
from doorlock_store.errors import DoorlockError, ValidationError


def load_config(config_path: Optional[Path]) -> DashboardConfig:
    """
    Load dashboard configuration, or defaults when no file is given.

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    if config_path is None:
        return DashboardConfig()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    return DashboardConfig.from_yaml(config_path)


def sign_in(session: DashboardSession, email: Optional[str], password: Optional[str]):
    """Sign in with the given credentials (or DOORLOCK_EMAIL / DOORLOCK_PASSWORD)."""
    email = email or os.getenv("DOORLOCK_EMAIL")
    password = password or os.getenv("DOORLOCK_PASSWORD")
    if not email or not password:
        raise ValidationError(
            "Credentials required: use --email/--password or set DOORLOCK_EMAIL and DOORLOCK_PASSWORD"
        )
    return session.auth.sign_in_with_password(email, password)


def print_entries(entries: List[AccessLogEntry]) -> None:
    if not entries:
        print("No access logs.")
        return
    for entry in entries:
        when = entry.created_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        print(f"{when}  {entry.method:<14} {entry.status:<10} user={entry.user_id}")


def wait_for_ack(session: DashboardSession, command_id: str, timeout: float) -> DeliveryState:
    """Poll until the device confirms the command or timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        command = session.reconciler.get_command(command_id)
        if command is not None and not command.is_pending:
            return command.delivery_state
        time.sleep(0.1)
    return DeliveryState.PENDING


def run_door_command(session: DashboardSession, action: str, device_id: Optional[str], wait: float) -> None:
    command = session.open_door(device_id) if action == "open" else session.close_door(device_id)
    for notification in session.notifier.history():
        print(notification.message)

    if wait <= 0:
        return
    state = wait_for_ack(session, command.command_id, wait)
    if state is DeliveryState.ACKED:
        device = session.reconciler.get_device_state(command.device_id)
        print(f"✅ Device confirmed: {device.last_known_status}")
    else:
        print(f"⚠️ No confirmation from {command.device_id} within {wait:.0f}s")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Doorlock CLI - Control the door lock and its settings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Verify credentials
  doorlock-cli --email me@example.com --password secret login

  # Open / close the door and wait up to 5s for the device
  doorlock-cli open --wait 5
  doorlock-cli close

  # Current door status (listens on the status topic for a few seconds)
  doorlock-cli status --wait 3

  # Access log
  doorlock-cli logs --limit 20
  doorlock-cli alerts

  # Settings
  doorlock-cli set-password 2468
  doorlock-cli list-rfid
  doorlock-cli add-rfid A1B2C3D4
  doorlock-cli remove-rfid A1B2C3D4

Credentials default to DOORLOCK_EMAIL / DOORLOCK_PASSWORD.
"""
    )

    # Global arguments
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to dashboard configuration YAML (default: built-in defaults)"
    )
    parser.add_argument("--email", default=None, help="Account email")
    parser.add_argument("--password", default=None, help="Account password")

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Account
    subparsers.add_parser('login', help='Sign in and show the current user')

    magic_link = subparsers.add_parser('magic-link', help='Email a one-time login link')
    magic_link.add_argument('address', help='Email address')

    signup = subparsers.add_parser('signup', help='Create an account')
    signup.add_argument('address', help='Email address')
    signup.add_argument('new_password', help='Account password')
    signup.add_argument('--full-name', default="", help='Full name shown on the dashboard')

    subparsers.add_parser('logout', help='Sign out')

    # Door
    for action in ('open', 'close'):
        door = subparsers.add_parser(action, help=f'{action.capitalize()} the door')
        door.add_argument('--device', default=None, help='Device ID (default: first configured)')
        door.add_argument('--wait', type=float, default=0.0,
                          help='Seconds to wait for the device to confirm (default: 0)')

    status = subparsers.add_parser('status', help='Show door status')
    status.add_argument('--device', default=None, help='Device ID (default: first configured)')
    status.add_argument('--wait', type=float, default=3.0,
                        help='Seconds to listen for a status report (default: 3)')

    # Access log
    logs = subparsers.add_parser('logs', help='Show recent access logs')
    logs.add_argument('--limit', type=int, default=10, help='Number of entries (default: 10)')

    subparsers.add_parser('alerts', help='Show emergency access events')

    # Settings
    set_password = subparsers.add_parser('set-password', help='Change the door keypad password')
    set_password.add_argument('door_password', help='New door password')

    subparsers.add_parser('list-rfid', help='List allowed RFID tags')

    add_rfid = subparsers.add_parser('add-rfid', help='Allow an RFID tag')
    add_rfid.add_argument('tag', help='RFID tag')

    remove_rfid = subparsers.add_parser('remove-rfid', help='Remove an RFID tag')
    remove_rfid.add_argument('tag', help='RFID tag')

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    session = None
    try:
        config = load_config(args.config)
        session = DashboardSession.from_config(config, with_realtime=False)

        # Commands that need no session
        if args.command == 'magic-link':
            session.auth.sign_in_with_magic_link(args.address)
            print("📧 Magic link sent! Check your email.")
            return

        if args.command == 'signup':
            session.auth.sign_up(args.address, args.new_password, {"full_name": args.full_name})
            print("✅ Signup successful! Please check your email to confirm your account.")
            return

        user = sign_in(session, args.email, args.password)

        if args.command == 'login':
            print(f"✅ Welcome, {user.display_name}")

        elif args.command == 'logout':
            session.sign_out()
            print("👋 Signed out")

        elif args.command in ('open', 'close'):
            session.start(user)
            run_door_command(session, args.command, args.device, args.wait)

        elif args.command == 'status':
            session.start(user)
            time.sleep(max(args.wait, 0))
            snapshot = session.snapshot(args.device)
            device = snapshot['device']
            if device['last_updated_at'] is None:
                print(f"Door status: {snapshot['door_status']} (no report received)")
            else:
                print(f"Door status: {snapshot['door_status']} (reported {device['last_updated_at']})")

        elif args.command == 'logs':
            print_entries(session.store.fetch_recent_access_logs(args.limit))

        elif args.command == 'alerts':
            alerts = [e for e in session.store.fetch_access_history() if e.is_emergency_success]
            print(f"🚨 {len(alerts)} emergency event(s)")
            print_entries(alerts)

        elif args.command == 'set-password':
            session.change_door_password(args.door_password)
            print("✅ Password updated successfully!")

        elif args.command == 'list-rfid':
            tags = session.settings.list_rfid_tags()
            if not tags:
                print("No RFID tags.")
            for tag in tags:
                print(tag)

        elif args.command == 'add-rfid':
            session.settings.list_rfid_tags()
            tags = session.add_rfid_tag(args.tag)
            print(f"✅ RFID tag added successfully! ({len(tags)} total)")

        elif args.command == 'remove-rfid':
            tags = session.remove_rfid_tag(args.tag)
            print(f"✅ RFID tag removed successfully! ({len(tags)} total)")

    except (DoorlockError, FileNotFoundError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        if session is not None:
            session.stop()


if __name__ == '__main__':
    main()
