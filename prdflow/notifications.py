"""
Desktop notifications at human checkpoints.

Uses notify-send (freedesktop compliant). Missing notify-send is not an
error: the CLI output already tells the user what to do next.
"""

import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)

APP_NAME = "prdflow"
VALID_URGENCIES = ("low", "normal", "critical")
MAX_NOTIFICATION_LENGTH = 200


def notify(title: str, message: str, urgency: str = "normal"):
    """Send a desktop notification; failures are logged, never raised."""
    if urgency not in VALID_URGENCIES:
        logger.warning(f"Invalid urgency '{urgency}', using 'normal'")
        urgency = "normal"

    if not shutil.which("notify-send"):
        logger.debug("notify-send not found, skipping notification")
        return

    if len(message) > MAX_NOTIFICATION_LENGTH:
        message = message[:MAX_NOTIFICATION_LENGTH] + "..."

    try:
        result = subprocess.run(
            ["notify-send", "--urgency", urgency, "--app-name", APP_NAME, title, message],
            capture_output=True, text=True, timeout=5,
        )
        if result.returncode != 0:
            logger.warning(f"notify-send failed (exit {result.returncode}): {result.stderr}")
    except subprocess.TimeoutExpired:
        logger.warning("notify-send timed out")
    except OSError as e:
        logger.warning(f"Failed to run notify-send: {e}")


def notify_go_required(tasklist: str):
    notify(f"prdflow: {tasklist}", "Parent tasks ready. Reply 'Go' to generate sub-tasks.")


def notify_awaiting_approval(tasklist: str, subtask: str):
    notify(f"prdflow: {tasklist}", f"Sub-task {subtask} complete, awaiting approval")


def notify_verification_failed(tasklist: str, parent: str, summary: str):
    notify(f"prdflow: {tasklist}", f"Task {parent} halted: {summary}", "critical")


def notify_parent_committed(tasklist: str, parent: str):
    notify(f"prdflow: {tasklist}", f"Task {parent} verified and committed", "low")
