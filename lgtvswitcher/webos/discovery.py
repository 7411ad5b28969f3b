#!/usr/bin/env python3
"""
SSDP discovery of webOS TVs

Sends M-SEARCH requests to the SSDP multicast group, collects the unicast
answers for a short window, and keeps the ones that look like LG webOS TVs.
"""

import asyncio
import logging
import socket

from .types import (
    SSDP_DISCOVERY_TIMEOUT,
    SSDP_MULTICAST_ADDRESS,
    SSDP_MULTICAST_PORT,
    SSDP_SEARCH_TARGETS,
    SSDP_WEBOS_ST,
    DiscoveryResult,
)

LG_SERVER_MARKERS = ("webos", "lg")
LG_TARGET_MARKERS = ("lge", "webos", "dial", "multiscreen", "mediarenderer")


class SsdpResponseParser:
    """Parse and classify SSDP search responses"""

    @staticmethod
    def parse_headers(text: str) -> tuple[str, dict[str, str]] | None:
        """status line + case-insensitive headers, first occurrence wins"""
        lines = [line for line in text.replace("\r\n", "\n").split("\n") if line]
        if not lines:
            return None

        headers: dict[str, str] = {}
        for line in lines[1:]:
            index = line.find(":")
            if index <= 0:
                continue
            key = line[:index].strip().upper()
            if key not in headers:
                headers[key] = line[index + 1 :].strip()
        return lines[0], headers

    @staticmethod
    def looks_like_lgtv(result: DiscoveryResult) -> bool:
        """LG/webOS markers in SERVER, ST or USN"""
        server = (result.server or "").lower()
        if any(marker in server for marker in LG_SERVER_MARKERS):
            return True

        st = (result.st or "").lower()
        usn = (result.usn or "").lower()
        return any(marker in st or marker in usn for marker in LG_TARGET_MARKERS)

    def parse(self, text: str | None, address: str) -> DiscoveryResult | None:
        """DiscoveryResult for an LG TV answer, None for anything else"""
        if not text or not text.strip():
            return None

        parsed = self.parse_headers(text)
        if not parsed:
            return None
        status, headers = parsed
        if not status.upper().startswith("HTTP/1.1 200"):
            return None

        st = headers.get("ST") or None
        usn = headers.get("USN") or None
        location = headers.get("LOCATION") or None
        if not st and not usn and not location:
            return None

        result = DiscoveryResult(
            address=address, location=location, usn=usn, server=headers.get("SERVER"), st=st
        )
        if not self.looks_like_lgtv(result):
            return None
        return result

    @staticmethod
    def priority(st: str | None) -> int:
        """prefer the webOS second screen service, then root devices"""
        if not st:
            return 0
        if st.lower() == SSDP_WEBOS_ST:
            return 2
        if st.lower() == "upnp:rootdevice":
            return 1
        return 0


def build_msearch(st: str) -> bytes:
    """M-SEARCH request for a single search target"""
    lines = [
        "M-SEARCH * HTTP/1.1",
        f"HOST: {SSDP_MULTICAST_ADDRESS}:{SSDP_MULTICAST_PORT}",
        'MAN: "ssdp:discover"',
        "MX: 1",
        f"ST: {st}",
        "USER-AGENT: LGTVSwitcher/1.0",
        "",
        "",
    ]
    return "\r\n".join(lines).encode("utf-8")


def aggregate_by_address(
    responses: list[DiscoveryResult], parser: SsdpResponseParser
) -> list[DiscoveryResult]:
    """one result per responder, best search target first, then arrival order"""
    grouped: dict[str, list[DiscoveryResult]] = {}
    for response in responses:
        grouped.setdefault(response.address, []).append(response)

    results = []
    for address, group in grouped.items():
        # max() keeps the first of equal priorities, i.e. the earliest answer
        best = max(group, key=lambda item: parser.priority(item.st))
        results.append(
            DiscoveryResult(
                address=address,
                location=best.location,
                usn=best.usn,
                server=best.server,
                st=best.st,
            )
        )
    return results


class SsdpDiscoveryService:
    """Discover LG TVs on the local network"""

    def __init__(
        self, timeout: float = SSDP_DISCOVERY_TIMEOUT, parser: SsdpResponseParser | None = None
    ):
        self.timeout = timeout
        self.parser = parser or SsdpResponseParser()

    async def discover(self) -> list[DiscoveryResult]:
        """best-effort, never raises for network trouble"""
        collected: list[DiscoveryResult] = []
        seen: set[str] = set()
        parser = self.parser
        loop = asyncio.get_running_loop()

        class DiscoveryProtocol(asyncio.DatagramProtocol):
            """Protocol class for SSDP answers"""

            def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
                try:
                    text = data.decode("utf-8", errors="replace")
                    result = parser.parse(text, addr[0])
                except Exception as err:  # pylint: disable=broad-exception-caught
                    logging.debug("Failed to parse SSDP message from %s: %s", addr, err)
                    return

                if not result:
                    logging.debug("SSDP rejected from %s:%s", addr[0], addr[1])
                    return

                dedupkey = f"{result.address}|{result.usn or ''}".lower()
                if dedupkey in seen:
                    return
                seen.add(dedupkey)
                collected.append(result)
                logging.debug(
                    "Discovered LG TV candidate: USN=%s, IP=%s, ST=%s, LOCATION=%s",
                    result.usn,
                    result.address,
                    result.st,
                    result.location,
                )

            def error_received(self, exc: Exception) -> None:
                logging.debug("SSDP receive failed: %s", exc)

        try:
            transport, _protocol = await loop.create_datagram_endpoint(
                DiscoveryProtocol, local_addr=("0.0.0.0", 0), family=socket.AF_INET
            )
        except OSError as err:
            logging.warning("SSDP discovery failed: %s", err)
            return []

        try:
            sock = transport.get_extra_info("socket")
            if sock is not None:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            for st in SSDP_SEARCH_TARGETS:
                transport.sendto(build_msearch(st), (SSDP_MULTICAST_ADDRESS, SSDP_MULTICAST_PORT))

            await asyncio.sleep(self.timeout)
        except OSError as err:
            logging.warning("SSDP discovery failed: %s", err)
        finally:
            transport.close()

        results = aggregate_by_address(collected, self.parser)
        logging.info("SSDP final result: %d TV candidates after aggregation.", len(results))
        return results
