"""
Tests for application assembly.
"""
import runpy
from pathlib import Path

import pytest

from cellarclub import create_app
from cellarclub.crm.factory import EXTENSION_KEY, ProviderFactory


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json() == {'status': 'healthy', 'service': 'cellarclub'}


def test_injected_factory_is_registered(app):
    assert isinstance(app.extensions[EXTENSION_KEY], ProviderFactory)


def test_default_factory_from_config():
    app = create_app('testing')
    assert app.extensions[EXTENSION_KEY].crm_types == ['commerce7', 'shopify']


def test_unknown_route_is_json(client):
    response = client.get('/api/nothing-here')
    assert response.status_code == 404
    assert response.get_json()['error']['code'] == 'NOT_FOUND'


def test_production_requires_secret_key(monkeypatch):
    from cellarclub.config import ProductionConfig
    monkeypatch.setattr(ProductionConfig, '_secret_key', '')
    with pytest.raises(RuntimeError):
        create_app('production')


def test_gunicorn_timeout_follows_crm_timeout(monkeypatch):
    monkeypatch.setenv('CRM_TIMEOUT_SECONDS', '10')
    monkeypatch.delenv('GUNICORN_TIMEOUT', raising=False)

    settings = runpy.run_path(str(Path(__file__).resolve().parent.parent / 'gunicorn.conf.py'))

    assert settings['timeout'] == 40
    assert settings['graceful_timeout'] == 10
    assert settings['proc_name'] == 'cellarclub'
