"""
Pytest configuration and fixtures for all tests.
"""

import json
import os
import socket
import sys
import threading
import time
import pytest
from unittest.mock import MagicMock

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('SENDER_IDENTITY', 'Toggle Labs <onboarding@togglelabs.net>')
os.environ.setdefault('EMAIL_API_KEY', 're_test_secret_key_123')
os.environ.setdefault('EMAIL_API_ENDPOINT_URL', 'https://api.resend.com/emails')
os.environ.setdefault('EMAIL_API_TIMEOUT_MS', '10000')
os.environ.setdefault('EMAIL_QUEUE_URL', 'https://sqs.us-west-2.amazonaws.com/123456789012/email-queue')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-west-2')
os.environ.setdefault('LOG_LEVEL', 'INFO')

TEST_API_KEY = 're_test_secret_key_123'


@pytest.fixture
def worker_config():
    """Worker configuration with a recognizable API key."""
    from services.config import WorkerConfig

    return WorkerConfig(
        sender_identity='Toggle Labs <onboarding@togglelabs.net>',
        api_key=TEST_API_KEY,
        endpoint_url='https://api.resend.com/emails',
        timeout_ms=10000
    )


@pytest.fixture
def mock_response():
    """Factory for fake requests.Response objects."""
    def _make(status_code, json_body=None, text=''):
        response = MagicMock()
        response.status_code = status_code
        if json_body is not None:
            response.json.return_value = json_body
            response.text = json.dumps(json_body)
        else:
            response.json.side_effect = ValueError("No JSON")
            response.text = text
        return response

    return _make


@pytest.fixture
def slow_drip_server():
    """
    HTTP server that answers 200 {"id": "abc"} one byte every 50ms.

    Each byte arrives well inside any per-read socket timeout, so only an
    overall deadline stops the client.
    """
    body = b'{"id": "abc"}'
    response = (
        b"HTTP/1.1 200 OK\r\n"
        b"Content-Type: application/json\r\n"
        b"Content-Length: " + str(len(body)).encode() + b"\r\n"
        b"Connection: close\r\n"
        b"\r\n" + body
    )
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind(('127.0.0.1', 0))
    server.listen(1)
    server.settimeout(5)
    stop = threading.Event()

    def serve():
        try:
            conn, _ = server.accept()
        except OSError:
            return
        with conn:
            try:
                conn.recv(65536)
                for i in range(len(response)):
                    if stop.is_set():
                        return
                    conn.sendall(response[i:i + 1])
                    time.sleep(0.05)
            except OSError:
                return

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()

    yield f"http://127.0.0.1:{server.getsockname()[1]}/emails"

    stop.set()
    server.close()
    thread.join(timeout=2)
