"""
JETDASH Core Tests
===================

Tests for the liveness and readiness probes.
"""

from unittest.mock import patch

from django.test import TestCase


class TestHealthEndpoints(TestCase):
    """Tests for /health/ and /health/ready/."""

    def test_liveness_returns_ok(self):
        """Liveness probe answers without touching dependencies."""
        response = self.client.get('/health/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')

    def test_liveness_rejects_post(self):
        response = self.client.post('/health/')
        self.assertEqual(response.status_code, 405)

    def test_readiness_healthy(self):
        """Database, cache and channel layer are all up in tests."""
        response = self.client.get('/health/ready/')

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'healthy')
        self.assertEqual(
            set(data['checks']),
            {'database', 'cache', 'channel_layer'}
        )

    @patch('core.health._check_cache', side_effect=RuntimeError('cache down'))
    def test_readiness_unhealthy_dependency(self, mock_cache):
        """A failing dependency turns the probe into a 503."""
        response = self.client.get('/health/ready/')

        self.assertEqual(response.status_code, 503)
        data = response.json()
        self.assertEqual(data['status'], 'unhealthy')
        self.assertEqual(data['checks']['cache']['error'], 'cache down')
        self.assertEqual(data['checks']['database']['status'], 'healthy')
