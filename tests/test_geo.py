import json

import httpx
import pytest

from travel_diary.geo import GeoResolver, is_local_ip
from travel_diary.models import GeoLocation

SUCCESS_BODY = {
    "status": "success",
    "country": "China",
    "countryCode": "CN",
    "region": "JS",
    "regionName": "Jiangsu",
    "city": "Nanjing",
    "isp": "China Telecom",
    "query": "8.8.8.8",
}


def _resolver(handler) -> tuple[GeoResolver, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _wrapped(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.Client(transport=httpx.MockTransport(_wrapped))
    return GeoResolver(client=client), seen


@pytest.mark.parametrize("ip", ["127.0.0.1", "192.168.1.5", "10.1.2.3", "172.16.0.1", "172.31.255.1", "::1", "testclient"])
def test_local_ips(ip):
    assert is_local_ip(ip)


@pytest.mark.parametrize("ip", ["8.8.8.8", "1.1.1.1", "172.32.0.1", "2606:4700:4700::1111"])
def test_public_ips(ip):
    assert not is_local_ip(ip)


def test_private_ip_never_calls_service():
    resolver, seen = _resolver(lambda r: httpx.Response(200, json=SUCCESS_BODY))
    assert resolver.resolve("192.168.1.5") == GeoLocation.local()
    assert seen == []


def test_success_maps_fields():
    resolver, seen = _resolver(lambda r: httpx.Response(200, json=SUCCESS_BODY))
    geo = resolver.resolve("8.8.8.8")
    assert geo == GeoLocation(country="China", region="Jiangsu", city="Nanjing", isp="China Telecom")
    assert len(seen) == 1
    assert seen[0].url.path == "/json/8.8.8.8"
    assert "regionName" in seen[0].url.params["fields"]


def test_fail_status_is_unknown():
    body = {"status": "fail", "message": "reserved range"}
    resolver, _ = _resolver(lambda r: httpx.Response(200, json=body))
    assert resolver.resolve("8.8.8.8") == GeoLocation.unknown()


def test_malformed_body_is_unknown():
    resolver, _ = _resolver(lambda r: httpx.Response(200, content=b"<html>oops"))
    assert resolver.resolve("8.8.8.8") == GeoLocation.unknown()


def test_server_error_is_unknown():
    resolver, _ = _resolver(lambda r: httpx.Response(500, content=json.dumps({"error": "boom"}).encode()))
    assert resolver.resolve("8.8.8.8") == GeoLocation.unknown()


def test_network_error_is_unknown():
    def _fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    resolver, _ = _resolver(_fail)
    assert resolver.resolve("8.8.8.8") == GeoLocation.unknown()
