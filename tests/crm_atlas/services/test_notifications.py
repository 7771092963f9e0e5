"""Tests for crm_atlas.services.notifications — Slack red-flag digest."""
from datetime import date
from unittest.mock import patch

import requests

from crm_atlas.services.health import RecomputeResult
from crm_atlas.services.notifications import MAX_LISTED_FLAGS, notify_red_flags

WEBHOOK = 'https://hooks.slack.example/T000/B000'


def _result(n_red):
    return RecomputeResult(
        processed=5,
        errors=1,
        red_flags=[
            {'workflow_id': f'wf-{i}', 'channel': 'email', 'period_start_date': '2026-01-12',
             'metric_name': 'unsub_rate', 'reason': 'unsub_rate 0.90% exceeds critical threshold 0.50%'}
            for i in range(n_red)
        ],
    )


class TestNotifyRedFlags:

    def test_skipped_without_webhook(self):
        with patch('crm_atlas.services.notifications.requests.post') as mock_post:
            notify_red_flags(_result(1), date(2026, 1, 1), date(2026, 1, 31))
        mock_post.assert_not_called()

    def test_posts_blocks(self):
        with patch('crm_atlas.services.notifications.SLACK_WEBHOOK_URL', WEBHOOK), \
             patch('crm_atlas.services.notifications.requests.post') as mock_post:
            notify_red_flags(_result(2), date(2026, 1, 1), date(2026, 1, 31))

        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == WEBHOOK
        assert kwargs['timeout'] == 10
        blocks = kwargs['json']['blocks']
        assert blocks[0]['text']['text'].endswith('2 red flag(s)')
        assert '`wf-0`' in blocks[-1]['text']['text']

    def test_long_lists_truncated(self):
        with patch('crm_atlas.services.notifications.SLACK_WEBHOOK_URL', WEBHOOK), \
             patch('crm_atlas.services.notifications.requests.post') as mock_post:
            notify_red_flags(_result(MAX_LISTED_FLAGS + 3), date(2026, 1, 1), date(2026, 1, 31))

        text = mock_post.call_args.kwargs['json']['blocks'][-1]['text']['text']
        assert text.count('• ') == MAX_LISTED_FLAGS
        assert '3 more' in text

    def test_failure_swallowed(self):
        with patch('crm_atlas.services.notifications.SLACK_WEBHOOK_URL', WEBHOOK), \
             patch('crm_atlas.services.notifications.requests.post',
                   side_effect=requests.ConnectionError('down')):
            notify_red_flags(_result(1), date(2026, 1, 1), date(2026, 1, 31))
