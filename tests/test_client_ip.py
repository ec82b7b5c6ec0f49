"""Tests for clinic/security/utils.py: client identity resolution."""

from __future__ import annotations

from clinic.security.utils import UNKNOWN_CLIENT, resolve_client_ip


def test_first_public_forwarded_address():
    headers = {"X-Forwarded-For": "10.0.0.5, 8.8.8.8, 1.1.1.1"}
    assert resolve_client_ip(headers, "127.0.0.1") == "8.8.8.8"


def test_client_ip_header_checked_first():
    headers = {"Client-IP": "1.1.1.1", "X-Forwarded-For": "8.8.8.8"}
    assert resolve_client_ip(headers, None) == "1.1.1.1"


def test_private_forwarded_falls_back_to_remote():
    headers = {"X-Forwarded-For": "192.168.1.10, 10.1.2.3"}
    assert resolve_client_ip(headers, "172.16.0.9") == "172.16.0.9"


def test_garbage_forwarded_value_ignored():
    headers = {"X-Forwarded-For": "not-an-ip"}
    assert resolve_client_ip(headers, "9.9.9.9") == "9.9.9.9"


def test_rfc7239_forwarded_header():
    headers = {"Forwarded": 'for="[2001:4860:4860::8888]";proto=https'}
    assert resolve_client_ip(headers, None) == "2001:4860:4860::8888"


def test_unknown_when_nothing_usable():
    assert resolve_client_ip({}, None) == UNKNOWN_CLIENT
    assert resolve_client_ip({}, "testclient") == UNKNOWN_CLIENT
