"""Shared pytest fixtures."""

import pytest


@pytest.fixture
def sample_source() -> bytes:
    """A minimal multipart/alternative RFC 822 source for use in tests."""
    return (
        b"Message-ID: <q2-budget@example.com>\r\n"
        b"Subject: Q2 budget review\r\n"
        b"From: Alice <alice@example.com>\r\n"
        b"Date: Fri, 27 Feb 2026 09:00:00 +0000\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/alternative; boundary="alt"\r\n'
        b"\r\n"
        b"--alt\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Please review the budget figures and respond by Friday.\r\n"
        b"--alt\r\n"
        b"Content-Type: text/html; charset=utf-8\r\n"
        b"\r\n"
        b"<p>Please review the budget figures and respond by <b>Friday</b>.</p>\r\n"
        b"--alt--\r\n"
    )
