#!/usr/bin/env python3
"""Tests for SSDP discovery of webOS TVs"""
# pylint: disable=redefined-outer-name

import asyncio
import unittest.mock

import pytest

from lgtvswitcher.webos.discovery import (
    SsdpDiscoveryService,
    SsdpResponseParser,
    aggregate_by_address,
    build_msearch,
)
from lgtvswitcher.webos.types import SSDP_SEARCH_TARGETS, DiscoveryResult

LG_RESPONSE = (
    "HTTP/1.1 200 OK\r\n"
    "CACHE-CONTROL: max-age=1800\r\n"
    "DATE: Tue, 10 Dec 2024 12:00:00 GMT\r\n"
    "EXT:\r\n"
    "LOCATION: http://192.168.0.20:3001/ssdp/device-desc.xml\r\n"
    "SERVER: Linux/3.14.0 UPnP/1.0 LGE WebOS\r\n"
    "ST: urn:lge-com:service:webos-second-screen:1\r\n"
    "USN: uuid:abcd::urn:lge-com:service:webos-second-screen:1\r\n"
    "\r\n"
)

LG_ROOTDEVICE_RESPONSE = (
    "HTTP/1.1 200 OK\r\n"
    "LOCATION: http://192.168.0.20:1628/description.xml\r\n"
    "SERVER: WebOS/4.1.0 UPnP/1.0\r\n"
    "ST: upnp:rootdevice\r\n"
    "USN: uuid:abcd::upnp:rootdevice\r\n"
    "\r\n"
)

OTHER_RESPONSE = (
    "HTTP/1.1 200 OK\n"
    "LOCATION: http://192.168.0.30/desc.xml\n"
    "SERVER: Microsoft-Windows/10.0 UPnP/1.0\n"
    "ST: urn:schemas-upnp-org:device:Basic:1\n"
    "USN: uuid:foo::urn:schemas-upnp-org:device:Basic:1\n"
    "\n"
)


@pytest.fixture
def parser():
    """plain parser"""
    return SsdpResponseParser()


def test_parse_lg_response(parser):
    """a webOS second screen answer is kept"""
    result = parser.parse(LG_RESPONSE, "192.168.0.20")
    assert result is not None
    assert result.address == "192.168.0.20"
    assert result.location == "http://192.168.0.20:3001/ssdp/device-desc.xml"
    assert result.st == "urn:lge-com:service:webos-second-screen:1"
    assert result.usn == "uuid:abcd::urn:lge-com:service:webos-second-screen:1"
    assert "webos" in result.server.lower()


def test_parse_non_lg_response(parser):
    """a Windows box is not a TV"""
    assert parser.parse(OTHER_RESPONSE, "192.168.0.30") is None


def test_parse_invalid_status_line(parser):
    """NOTIFY is not a search answer"""
    text = "NOTIFY * HTTP/1.1\r\nLOCATION: http://127.0.0.1/desc.xml\r\n\r\n"
    assert parser.parse(text, "127.0.0.1") is None


@pytest.mark.parametrize("text", [None, "", "   \r\n"])
def test_parse_empty(parser, text):
    """nothing to parse"""
    assert parser.parse(text, "127.0.0.1") is None


def test_parse_needs_identifying_headers(parser):
    """SERVER alone is not enough"""
    text = "HTTP/1.1 200 OK\r\nSERVER: LGE WebOS\r\n\r\n"
    assert parser.parse(text, "192.168.0.20") is None


def test_parse_marker_in_usn(parser):
    """LG markers may only show up in the USN"""
    text = (
        "HTTP/1.1 200 OK\r\n"
        "SERVER: Linux UPnP/1.0\r\n"
        "ST: urn:dial-multiscreen-org:service:dial:1\r\n"
        "USN: uuid:1234::urn:dial-multiscreen-org:service:dial:1\r\n"
        "\r\n"
    )
    result = parser.parse(text, "192.168.0.21")
    assert result is not None
    assert result.st == "urn:dial-multiscreen-org:service:dial:1"


def test_parse_headers_first_wins_case_insensitive():
    """duplicate headers keep the first value"""
    status, headers = SsdpResponseParser.parse_headers(
        "HTTP/1.1 200 OK\nst: first\nST: second\nLocation: http://x/\nbroken line\n"
    )
    assert status == "HTTP/1.1 200 OK"
    assert headers["ST"] == "first"
    assert headers["LOCATION"] == "http://x/"
    assert "BROKEN LINE" not in headers


@pytest.mark.parametrize(
    "st,expected",
    [
        ("urn:lge-com:service:webos-second-screen:1", 2),
        ("URN:LGE-COM:SERVICE:WEBOS-SECOND-SCREEN:1", 2),
        ("upnp:rootdevice", 1),
        ("urn:schemas-upnp-org:device:Basic:1", 0),
        (None, 0),
    ],
)
def test_priority(st, expected):
    """webOS service beats root device beats the rest"""
    assert SsdpResponseParser.priority(st) == expected


def test_aggregate_by_address(parser):
    """one entry per responder, the webOS service answer wins"""
    rootdevice = parser.parse(LG_ROOTDEVICE_RESPONSE, "192.168.0.20")
    webos = parser.parse(LG_RESPONSE, "192.168.0.20")
    other = DiscoveryResult(address="192.168.0.40", usn="uuid:lge-1", st="upnp:rootdevice")

    results = aggregate_by_address([rootdevice, other, webos], parser)
    assert [result.address for result in results] == ["192.168.0.20", "192.168.0.40"]
    assert results[0].st == "urn:lge-com:service:webos-second-screen:1"
    assert results[0].location == "http://192.168.0.20:3001/ssdp/device-desc.xml"


def test_aggregate_keeps_earliest_of_equal_priority(parser):
    """ties go to the first answer"""
    first = DiscoveryResult(address="10.0.0.2", usn="uuid:a", st="urn:dial-multiscreen-org:service:dial:1")
    second = DiscoveryResult(address="10.0.0.2", usn="uuid:b", st="urn:lge-com:service:lge:1")
    results = aggregate_by_address([first, second], parser)
    assert len(results) == 1
    assert results[0].usn == "uuid:a"


def test_build_msearch():
    """well formed M-SEARCH"""
    request = build_msearch("upnp:rootdevice").decode("utf-8")
    assert request.startswith("M-SEARCH * HTTP/1.1\r\n")
    assert "HOST: 239.255.255.250:1900\r\n" in request
    assert 'MAN: "ssdp:discover"\r\n' in request
    assert "MX: 1\r\n" in request
    assert "ST: upnp:rootdevice\r\n" in request
    assert "USER-AGENT: LGTVSwitcher/1.0\r\n" in request
    assert request.endswith("\r\n\r\n")


@pytest.mark.asyncio
async def test_discover_collects_and_dedups():
    """answers are filtered, de-duplicated and aggregated"""
    loop = asyncio.get_running_loop()
    transport = unittest.mock.MagicMock()
    transport.get_extra_info.return_value = None

    async def fake_endpoint(protocol_factory, **kwargs):  # pylint: disable=unused-argument
        protocol = protocol_factory()
        protocol.datagram_received(LG_RESPONSE.encode(), ("192.168.0.20", 1900))
        protocol.datagram_received(LG_RESPONSE.encode(), ("192.168.0.20", 1900))
        protocol.datagram_received(LG_ROOTDEVICE_RESPONSE.encode(), ("192.168.0.20", 1900))
        protocol.datagram_received(OTHER_RESPONSE.encode(), ("192.168.0.30", 1900))
        protocol.datagram_received(b"\xff\xfe garbage", ("192.168.0.31", 1900))
        return transport, protocol

    service = SsdpDiscoveryService(timeout=0.01)
    with unittest.mock.patch.object(loop, "create_datagram_endpoint", side_effect=fake_endpoint):
        results = await service.discover()

    assert len(results) == 1
    assert results[0].address == "192.168.0.20"
    assert results[0].st == "urn:lge-com:service:webos-second-screen:1"
    assert transport.sendto.call_count == len(SSDP_SEARCH_TARGETS)
    transport.close.assert_called_once()


@pytest.mark.asyncio
async def test_discover_socket_failure():
    """no network means no candidates, not an exception"""
    loop = asyncio.get_running_loop()
    service = SsdpDiscoveryService(timeout=0.01)
    with unittest.mock.patch.object(
        loop, "create_datagram_endpoint", side_effect=OSError("network unreachable")
    ):
        assert await service.discover() == []
