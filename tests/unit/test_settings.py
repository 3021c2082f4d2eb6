"""
Unit tests for the production settings module.
"""
import importlib

import pytest


@pytest.fixture
def production_settings(monkeypatch):
    monkeypatch.setenv('ALLOWED_HOSTS', 'api.policydesk.example')
    monkeypatch.setenv('CORS_ALLOWED_ORIGINS', 'https://app.policydesk.example')
    module = importlib.import_module('config.settings.production')
    return importlib.reload(module)


class TestProductionSettings:

    def test_hosts_and_origins_come_from_environment(self, production_settings):
        assert production_settings.DEBUG is False
        assert production_settings.ALLOWED_HOSTS == ['api.policydesk.example']
        assert production_settings.CORS_ALLOWED_ORIGINS == ['https://app.policydesk.example']
        assert production_settings.CORS_ALLOW_ALL_ORIGINS is False

    def test_cookies_are_https_only(self, production_settings):
        assert production_settings.SESSION_COOKIE_SECURE is True
        assert production_settings.CSRF_COOKIE_SECURE is True

    def test_security_headers(self, production_settings):
        assert production_settings.SECURE_BROWSER_XSS_FILTER is True
        assert production_settings.SECURE_CONTENT_TYPE_NOSNIFF is True
        assert production_settings.X_FRAME_OPTIONS == 'DENY'
        assert production_settings.SECURE_HSTS_SECONDS == 31536000
        assert production_settings.SECURE_HSTS_INCLUDE_SUBDOMAINS is True
        assert production_settings.SECURE_HSTS_PRELOAD is True
