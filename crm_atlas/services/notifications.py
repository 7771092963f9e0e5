"""
Notifications — Slack webhook digest for channel-health recomputes.

Notification failure never affects the recompute result.
"""
import logging
import requests

from crm_atlas.config import SLACK_WEBHOOK_URL

logger = logging.getLogger('services.notifications')

MAX_LISTED_FLAGS = 10


def notify_red_flags(result, start_date, end_date):
    """Post a summary of red health flags produced by a recompute batch."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        red_flags = result.red_flags or []
        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"Channel Health — {len(red_flags)} red flag(s)",
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Period:* {start_date} → {end_date}"},
                    {"type": "mrkdwn", "text": f"*Processed:* {result.processed}"},
                    {"type": "mrkdwn", "text": f"*Errors:* {result.errors}"},
                ]
            },
        ]

        lines = [
            f"• `{f['workflow_id']}` {f['channel']} ({f['period_start_date']}): {f['reason']}"
            for f in red_flags[:MAX_LISTED_FLAGS]
        ]
        if len(red_flags) > MAX_LISTED_FLAGS:
            lines.append(f"_…and {len(red_flags) - MAX_LISTED_FLAGS} more_")
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": "\n".join(lines)}
        })

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Red flag digest sent (%d flags)", len(red_flags))

    except Exception:
        logger.error("Failed to send red flag digest", exc_info=True)
