"""
Tests for the SQS email delivery Lambda handler.
"""

import json
import pytest
from unittest.mock import Mock, patch
import requests
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Import the handler
import email_worker_handler
from conftest import TEST_API_KEY


def _record(message_id, recipient="a@b.com", subject="hi", body_html="<p>hi</p>"):
    return {
        "messageId": message_id,
        "receiptHandle": f"handle-{message_id}",
        "body": json.dumps({"recipient": recipient, "subject": subject, "bodyHtml": body_html}),
        "attributes": {"ApproximateReceiveCount": "1"},
        "messageAttributes": {},
        "eventSource": "aws:sqs",
    }


@pytest.fixture
def mock_context():
    """Mock Lambda context."""
    context = Mock()
    context.aws_request_id = "test-request-id"
    context.function_name = "email-verification-worker-test"
    context.get_remaining_time_in_millis.return_value = 30000
    return context


class TestLambdaHandler:
    """Test the main Lambda handler function."""

    @patch('integrations.email_api.http_session')
    def test_lambda_handler_success(self, mock_session, mock_context, mock_response):
        mock_session.post.return_value = mock_response(200, {"id": "x"})

        result = email_worker_handler.lambda_handler({"Records": [_record("m1")]}, mock_context)

        assert result == {"batchItemFailures": []}
        mock_session.post.assert_called_once()

    @patch('integrations.email_api.http_session')
    def test_retryable_failure_reported(self, mock_session, mock_context, mock_response):
        """5xx records go back to SQS via batchItemFailures."""
        mock_session.post.return_value = mock_response(503, text='unavailable')

        result = email_worker_handler.lambda_handler({"Records": [_record("m1")]}, mock_context)

        assert result == {"batchItemFailures": [{"itemIdentifier": "m1"}]}

    @patch('integrations.email_api.http_session')
    def test_permanent_failure_consumed(self, mock_session, mock_context, mock_response):
        """4xx records are not redelivered."""
        mock_session.post.return_value = mock_response(400, {"message": "bad"})

        result = email_worker_handler.lambda_handler({"Records": [_record("m1")]}, mock_context)

        assert result == {"batchItemFailures": []}

    @patch('integrations.email_api.http_session')
    def test_mixed_batch(self, mock_session, mock_context, mock_response):
        mock_session.post.side_effect = [
            mock_response(200, {"id": "ok"}),
            requests.ReadTimeout("timed out"),
            mock_response(422, {"message": "invalid"}),
        ]
        event = {"Records": [
            _record("ok-1"),
            _record("slow-2"),
            _record("bad-3"),
            _record("invalid-4", recipient=""),
            {"messageId": "garbage-5", "body": "not json"},
        ]}

        result = email_worker_handler.lambda_handler(event, mock_context)

        assert result == {"batchItemFailures": [{"itemIdentifier": "slow-2"}]}
        # Invalid recipient and malformed body never reach the network
        assert mock_session.post.call_count == 3

    @patch('integrations.email_api.http_session')
    def test_deadline_from_context(self, mock_session, mock_context, mock_response):
        mock_session.post.return_value = mock_response(200, {"id": "x"})
        mock_context.get_remaining_time_in_millis.return_value = 2500

        email_worker_handler.lambda_handler({"Records": [_record("m1")]}, mock_context)

        assert mock_session.post.call_args[1]['timeout'] == (2.0, 2.0)

    @patch('integrations.email_api.http_session')
    def test_deadline_exhausted(self, mock_session, mock_context):
        mock_context.get_remaining_time_in_millis.return_value = 100

        result = email_worker_handler.lambda_handler({"Records": [_record("m1")]}, mock_context)

        assert result == {"batchItemFailures": [{"itemIdentifier": "m1"}]}
        mock_session.post.assert_not_called()

    @patch('integrations.email_api.http_session')
    def test_context_without_deadline(self, mock_session, mock_response):
        mock_session.post.return_value = mock_response(200, {"id": "x"})

        result = email_worker_handler.lambda_handler({"Records": [_record("m1")]}, object())

        assert result == {"batchItemFailures": []}
        assert mock_session.post.call_args[1]['timeout'] == (10.0, 10.0)

    def test_empty_event(self, mock_context):
        assert email_worker_handler.lambda_handler({}, mock_context) == {"batchItemFailures": []}

    @patch('integrations.email_api.http_session')
    def test_api_key_never_logged(self, mock_session, mock_context, mock_response, caplog):
        caplog.set_level('DEBUG')
        mock_session.post.return_value = mock_response(403, text=f'forbidden for {TEST_API_KEY}')

        email_worker_handler.lambda_handler({"Records": [_record("m1")]}, mock_context)

        assert TEST_API_KEY not in caplog.text


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
