"""
Doorlock CLI - Command-line interface for the door lock dashboard.

Usage:
    doorlock-cli login
    doorlock-cli open --wait 5
    doorlock-cli close
    doorlock-cli logs --limit 20
    doorlock-cli add-rfid A1B2C3D4
"""

__version__ = "1.0.0"
