"""Tests for httpx utility functions."""

import httpx

from salvager.shared.httpx_utils import create_http_client


class TestCreateHttpClient:
    """Test create_http_client function."""

    def test_default_settings(self):
        """Test that default settings are applied correctly."""
        client = create_http_client()

        assert client.follow_redirects is True
        assert client.timeout.connect == 30.0
        assert client.timeout.read == 30.0

    def test_float_timeout(self):
        """A bare number becomes a uniform httpx.Timeout."""
        client = create_http_client(timeout=5)

        assert client.timeout.connect == 5.0
        assert client.timeout.pool == 5.0

    def test_custom_timeout(self):
        """Test a custom httpx.Timeout is kept as given."""
        timeout = httpx.Timeout(connect=5.0, read=10.0, write=15.0, pool=20.0)

        client = create_http_client(timeout=timeout)

        assert client.timeout.read == 10.0
        assert client.timeout.pool == 20.0

    def test_follow_redirects_enforced(self):
        """Test follow_redirects is always True even if False is passed."""
        client = create_http_client(follow_redirects=False)

        assert client.follow_redirects is True
