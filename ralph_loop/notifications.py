"""
Desktop notifications for Ralph.

Uses notify-send (freedesktop compliant) for notifications. Silently
skipped where notify-send is not installed.
"""

import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)


VALID_URGENCIES = ("low", "normal", "critical")
MAX_NOTIFICATION_LENGTH = 200


def notify(title: str, message: str, urgency: str = "normal"):
    """
    Send desktop notification.

    Args:
        title: Notification title
        message: Notification body
        urgency: One of "low", "normal", "critical"
    """
    if urgency not in VALID_URGENCIES:
        logger.warning(f"Invalid urgency '{urgency}', using 'normal'")
        urgency = "normal"

    if not shutil.which("notify-send"):
        logger.debug("notify-send not found, skipping notification")
        return

    if len(message) > MAX_NOTIFICATION_LENGTH:
        message = message[:MAX_NOTIFICATION_LENGTH] + "..."

    try:
        result = subprocess.run([
            "notify-send",
            "--urgency", urgency,
            "--app-name", "Ralph",
            title,
            message
        ], capture_output=True, text=True, timeout=5)

        if result.returncode != 0:
            logger.warning(f"notify-send failed (exit {result.returncode}): {result.stderr}")
    except subprocess.TimeoutExpired:
        logger.warning("notify-send timed out")
    except OSError as e:
        logger.warning(f"Failed to run notify-send: {e}")


def notify_failed(story_id: str, reason: str):
    """Notify that a story failed."""
    notify(f"Ralph: {story_id}", f"Failed: {reason}", "critical")


def notify_pending_merge(story_id: str, pr_url: str):
    """Notify that a story's PR is waiting to merge."""
    notify(f"Ralph: {story_id}", f"PR pending merge: {pr_url}" if pr_url else "PR pending", "normal")


def notify_all_complete(total: int):
    """Notify that the backlog is done."""
    notify("Ralph", f"All {total} stories complete", "low")
