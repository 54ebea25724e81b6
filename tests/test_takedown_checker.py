import asyncio
import base64
import json
import re
import socket

import httpx
import pytest

from cloakwatch.analyzer import takedown_checker
from cloakwatch.analyzer.takedown_checker import DnsStatus, TakedownChecker, compile_netcraft_pattern


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _mock_clients(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def _factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(takedown_checker.httpx, "AsyncClient", _factory)


def test_netcraft_pattern_inline_flags():
    regex = compile_netcraft_pattern(_b64("(?i)scam\\.example/ALERT"))
    assert regex.flags & re.IGNORECASE
    assert regex.search("https://SCAM.example/alert")

    multi = compile_netcraft_pattern(_b64("(?im)^https://x\\.example/"))
    assert multi.flags & re.MULTILINE
    assert multi.flags & re.IGNORECASE


def test_netcraft_pattern_without_flags_is_case_sensitive():
    regex = compile_netcraft_pattern(_b64("scam\\.example"))
    assert regex.search("https://SCAM.EXAMPLE/") is None


@pytest.mark.parametrize("encoded", [_b64("(?i)"), _b64(""), _b64("([bad"), "!!!not-base64!!!"])
def test_netcraft_pattern_rejects_unusable_input(encoded):
    with pytest.raises(ValueError):
        compile_netcraft_pattern(encoded)


@pytest.mark.asyncio
async def test_netcraft_skips_bad_patterns_and_matches_good_ones(monkeypatch):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(
            200,
            json={
                "patterns": [
                    {"pattern": _b64("(?i)"), "type": "broken"},
                    {"pattern": _b64("scam\\.example/alert"), "type": "phishing", "message_override": "blocked"},
                ]
            },
        )

    _mock_clients(monkeypatch, handler)
    verdict = await TakedownChecker().check_netcraft("https://scam.example/alert?x=1")

    assert verdict.flagged is True
    assert verdict.pattern_type == "phishing"
    assert verdict.message == "blocked"
    encoded_origin = base64.urlsafe_b64encode(b"https://scam.example/").decode("ascii")
    assert encoded_origin in str(seen[0])


@pytest.mark.asyncio
async def test_netcraft_without_patterns_is_not_flagged(monkeypatch):
    _mock_clients(monkeypatch, lambda request: httpx.Response(200, json={}))
    verdict = await TakedownChecker().check_netcraft("https://scam.example/")
    assert verdict.flagged is False


@pytest.mark.asyncio
async def test_safebrowsing_returns_matched_subset(monkeypatch):
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append((request.url.params["key"], body))
        return httpx.Response(
            200,
            json={"matches": [{"threat": {"url": "https://bad.example/"}}, {"threat": {"url": "https://other/"}}]},
        )

    _mock_clients(monkeypatch, handler)
    checker = TakedownChecker(safebrowsing_api_key="k")
    matched = await checker.check_safebrowsing(["https://bad.example/", "https://fine.example/", "https://bad.example/"])

    assert matched == {"https://bad.example/"}
    key, body = bodies[0]
    assert key == "k"
    assert len(body["threatInfo"]["threatEntries"]) == 2


@pytest.mark.asyncio
async def test_safebrowsing_without_key_does_nothing():
    assert await TakedownChecker().check_safebrowsing(["https://bad.example/"]) == set()


@pytest.mark.asyncio
async def test_smartscreen_verdict(monkeypatch):
    headers = []

    def handler(request: httpx.Request) -> httpx.Response:
        headers.append(request.headers)
        return httpx.Response(200, json={"allow": False, "responseCategory": "Phishing"})

    _mock_clients(monkeypatch, handler)
    verdict = await TakedownChecker(user_agent="UA/1").check_smartscreen("https://scam.example/alert")

    assert verdict.flagged is True
    assert verdict.category == "Phishing"
    assert headers[0]["Authorization"].startswith("SmartScreenHash ")
    assert headers[0]["User-Agent"] == "UA/1"


@pytest.mark.asyncio
async def test_dns_distinguishes_nxdomain_from_transient_errors(monkeypatch):
    loop = asyncio.get_running_loop()
    outcomes = {
        "gone.example": socket.gaierror(socket.EAI_NONAME, "Name or service not known"),
        "flaky.example": socket.gaierror(socket.EAI_AGAIN, "Temporary failure"),
    }

    async def fake_getaddrinfo(host, port, *args, **kwargs):
        if host in outcomes:
            raise outcomes[host]
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("203.0.113.5", port))]

    monkeypatch.setattr(loop, "getaddrinfo", fake_getaddrinfo)
    checker = TakedownChecker()

    assert await checker.check_dns("https://gone.example/") == DnsStatus.NXDOMAIN
    assert await checker.check_dns("https://flaky.example/") == DnsStatus.ERROR
    assert await checker.check_dns("https://alive.example/") == DnsStatus.RESOLVES
    assert await checker.check_dns("not a url") == DnsStatus.ERROR
