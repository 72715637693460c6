#!/usr/bin/env python3
"""
Door Dashboard Monitor - Entry Point
====================================

This script runs the door dashboard headless, which:
- Signs in to Supabase with the operator's credentials
- Loads the access log history and follows new entries in realtime
- Tracks the lock's status from the MQTT status topic
- Raises alerts for emergency-open events
- Times out unconfirmed commands (when command_timeout_seconds is set)

Usage:
    python run_dashboard.py --config config/dashboard_config.yaml

Architecture:
    - DashboardSession: Owning context (doorlock_control)
    - DeviceCommandReconciler: Commands, device state, audit views
    - MQTTTransport: Broker connection (doorlock_mqtt)
    - SupabaseStore / SupabaseAuth / RealtimeListener (doorlock_store)

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Create session and sign in
    4. Start session (non-blocking)
    5. Wait for stop signal (Ctrl+C or SIGTERM), ticking the command timeout
    6. Graceful shutdown

Signals:
    - SIGTERM: Graceful shutdown
    - SIGINT (Ctrl+C): Graceful shutdown

Logs:
    - Console: INFO level
    - File: logs/dashboard.log (INFO level)
"""

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from doorlock_control import DashboardConfig, DashboardSession, Notification, NotificationLevel


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the dashboard monitor.

    Args:
        log_file: Optional path to log file (default: logs/dashboard.log)

    Returns:
        Logger instance for the monitor
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class DashboardApp:
    """
    Main application wrapper for DashboardSession.

    Handles:
    - Configuration loading
    - Sign in
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown
    """

    TICK_INTERVAL = 1.0

    def __init__(
        self,
        config_path: Path,
        email: Optional[str] = None,
        password: Optional[str] = None,
        log_file: Optional[Path] = None,
    ):
        self.config_path = config_path
        self.email = email or os.getenv("DOORLOCK_EMAIL")
        self.password = password or os.getenv("DOORLOCK_PASSWORD")
        self.log_file = log_file
        self.logger = setup_logging(log_file)

        self.config: Optional[DashboardConfig] = None
        self.session: Optional[DashboardSession] = None

        self._stop_event = threading.Event()
        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML
        2. Create session (transport, store, auth, realtime)
        3. Route notifications to the log
        4. Sign in
        """
        self.logger.info("=" * 80)
        self.logger.info("🚀 Door Dashboard - Starting")
        self.logger.info("=" * 80)

        self.logger.info(f"📄 Loading configuration: {self.config_path}")
        self.config = DashboardConfig.from_yaml(self.config_path)
        devices = ", ".join(d.device_id for d in self.config.devices)
        self.logger.info(f"✅ Configuration loaded (devices={devices})")

        self.logger.info("🏗️  Creating dashboard session")
        self.session = DashboardSession.from_config(self.config)
        self.session.notifier.subscribe(self._log_notification)
        self.logger.info(f"  - Broker: {self.config.mqtt_config.broker}:{self.config.mqtt_config.port}")
        for device in self.config.devices:
            self.logger.info(f"  - {device.device_id}: control={device.control_topic} status={device.status_topic}")

        if not self.email or not self.password:
            raise RuntimeError("Credentials required: --email/--password or DOORLOCK_EMAIL/DOORLOCK_PASSWORD")
        user = self.session.auth.sign_in_with_password(self.email, self.password)
        self.logger.info(f"✅ Signed in as {user.display_name}")

        self.logger.info("=" * 80)

    def run(self):
        """
        Run the dashboard.

        Blocks until shutdown is requested (via signal or sign-out).
        """
        if not self.session:
            raise RuntimeError("Session not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            self.session.start()

            self.logger.info("✅ Dashboard started successfully")
            snapshot = self.session.snapshot()
            self.logger.info(
                f"📊 Door: {snapshot['door_status']} | "
                f"history: {len(snapshot['history'])} | alerts: {snapshot['alert_count']}"
            )
            self.logger.info("Press Ctrl+C to stop")
            self.logger.info("=" * 80)

            while not self._stop_event.wait(self.TICK_INTERVAL):
                if not self.session.is_running:
                    self.logger.info("👋 Session ended")
                    break
                self.session.tick()

        except KeyboardInterrupt:
            self.logger.info("\n⚠️  KeyboardInterrupt received")

        except Exception as e:
            self.logger.error(f"❌ Dashboard error: {e}", exc_info=True)
            self.shutdown()
            sys.exit(1)

        self.shutdown()

    def shutdown(self):
        """Graceful shutdown of the session."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        self._stop_event.set()

        self.logger.info("=" * 80)
        self.logger.info("🛑 Shutting down dashboard")
        self.logger.info("=" * 80)

        if self.session:
            try:
                self.session.stop()
                self.logger.info("✅ Session stopped")
            except Exception as e:
                self.logger.error(f"❌ Error stopping session: {e}")

        self.logger.info("✅ Shutdown complete")

    def _log_notification(self, notification: Notification):
        if notification.level in (NotificationLevel.ERROR, NotificationLevel.ALERT):
            self.logger.warning(notification.message)
        else:
            self.logger.info(notification.message)

    def _signal_handler(self, signum, frame):
        signal_name = signal.Signals(signum).name
        self.logger.info(f"\n⚠️  Received signal {signal_name} ({signum})")
        self._stop_event.set()


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    parser = argparse.ArgumentParser(
        description="Door Dashboard - Supabase access log + MQTT door lock monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default config
  python run_dashboard.py --config config/dashboard_config.yaml

  # Start with custom log file
  python run_dashboard.py --config config/dashboard_config.yaml --log-file logs/custom.log

  # Start without file logging (console only)
  python run_dashboard.py --config config/dashboard_config.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to dashboard configuration YAML file'
    )
    parser.add_argument('--email', default=None, help='Account email (default: DOORLOCK_EMAIL)')
    parser.add_argument('--password', default=None, help='Account password (default: DOORLOCK_PASSWORD)')
    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/dashboard.log'),
        help='Path to log file (default: logs/dashboard.log)'
    )
    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    return parser.parse_args()


def main():
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"❌ Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = DashboardApp(
        config_path=args.config,
        email=args.email,
        password=args.password,
        log_file=log_file,
    )

    try:
        app.setup()
        app.run()
    except Exception as e:
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
