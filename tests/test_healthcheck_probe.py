"""Tests for the container health probe."""

import httpx

from profile_api.devtools import healthcheck


def _fake_get(status_code: int):
    def fake_get(url, timeout):
        return httpx.Response(status_code, request=httpx.Request("GET", url))

    return fake_get


def test_probe_passes_on_200(monkeypatch, capsys):
    monkeypatch.setattr(healthcheck.httpx, "get", _fake_get(200))

    assert healthcheck.probe("http://localhost:5000/health") == 0
    assert "passed" in capsys.readouterr().out


def test_probe_fails_on_other_status(monkeypatch):
    monkeypatch.setattr(healthcheck.httpx, "get", _fake_get(503))

    assert healthcheck.probe("http://localhost:5000/health") == 1


def test_probe_fails_when_unreachable(monkeypatch):
    def refuse(url, timeout):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(healthcheck.httpx, "get", refuse)

    assert healthcheck.probe("http://localhost:5000/health") == 1
