#!/usr/bin/env python3
"""Tests for the command line layer"""
# pylint: disable=redefined-outer-name

import unittest.mock

import pytest

import lgtvswitcher.daemon
from lgtvswitcher.webos.types import DiscoveryResult

TV_A = DiscoveryResult(
    address="192.168.0.20",
    location="http://192.168.0.20:3001/ssdp/device-desc.xml",
    usn="uuid:tv-a",
    st="urn:lge-com:service:webos-second-screen:1",
)
TV_B = DiscoveryResult(address="192.168.0.21", usn="uuid:tv-b", st="upnp:rootdevice")
TV_NO_USN = DiscoveryResult(address="192.168.0.22", st="upnp:rootdevice")


@pytest.mark.parametrize(
    "argv,expected",
    [
        (None, ["run"]),
        ([], ["run"]),
        (["--run"], ["run"]),
        (["--discover"], ["discover"]),
        (["--discover", "--pair"], ["discover", "--pair"]),
        (["--pair"], ["discover", "--pair"]),
        (["--pair-usn", "uuid:x"], ["discover", "--pair-usn", "uuid:x"]),
        (["discover", "--pair-ip", "10.0.0.2"], ["discover", "--pair-ip", "10.0.0.2"]),
        (["--debug", "run"], ["--debug", "run"]),
    ],
)
def test_normalize_args(argv, expected):
    """legacy flags become subcommands"""
    assert lgtvswitcher.daemon.normalize_args(argv) == expected


def test_parser():
    """both subcommands parse"""
    parser = lgtvswitcher.daemon.build_parser()
    args = parser.parse_args(lgtvswitcher.daemon.normalize_args(["--pair-usn", "uuid:x"]))
    assert args.command == "discover"
    assert args.pair_usn == "uuid:x"
    assert not args.pair

    args = parser.parse_args(["--debug"])
    assert args.command == "run"
    assert args.debug

    args = parser.parse_args(["run"])
    assert args.command == "run"


@pytest.mark.parametrize(
    "results,kwargs,expected",
    [
        ([], {"pair": True}, None),
        ([TV_A, TV_B], {"pair_usn": "UUID:TV-B"}, TV_B),
        ([TV_A, TV_B], {"pair_usn": "uuid:missing"}, None),
        ([TV_A, TV_B], {"pair_ip": "192.168.0.20"}, TV_A),
        ([TV_A, TV_B], {"pair_ip": "10.0.0.1"}, None),
        ([TV_A, TV_B], {"pair_usn": "uuid:tv-b", "pair_ip": "192.168.0.20"}, TV_B),
        ([TV_A], {"pair": True}, TV_A),
        ([TV_A, TV_B], {"pair": True}, None),
        ([TV_A], {}, None),
    ],
)
def test_select_pair_target(results, kwargs, expected):
    """USN beats IP beats a lone --pair"""
    assert lgtvswitcher.daemon.select_pair_target(results, **kwargs) == expected


def fake_discovery(*results):
    """discovery double"""
    discovery = unittest.mock.MagicMock()
    discovery.discover = unittest.mock.AsyncMock(return_value=list(results))
    return discovery


def fake_keystore():
    """key store double"""
    keystore = unittest.mock.MagicMock()
    keystore.persist_preferred_tv_usn = unittest.mock.AsyncMock()
    return keystore


@pytest.mark.asyncio
async def test_discover_pairs_single_tv(capsys):
    """--pair with one TV remembers its USN"""
    keystore = fake_keystore()
    target = await lgtvswitcher.daemon.discover(
        unittest.mock.MagicMock(), pair=True, discovery=fake_discovery(TV_A), keystore=keystore
    )
    assert target == TV_A
    keystore.persist_preferred_tv_usn.assert_awaited_once_with("uuid:tv-a")
    output = capsys.readouterr().out
    assert "candidates found via SSDP: 1" in output
    assert "IP=192.168.0.20" in output
    assert "uuid:tv-a" in output


@pytest.mark.asyncio
async def test_discover_lists_only(capsys):
    """without pairing flags nothing is stored"""
    keystore = fake_keystore()
    target = await lgtvswitcher.daemon.discover(
        unittest.mock.MagicMock(), discovery=fake_discovery(TV_A, TV_B), keystore=keystore
    )
    assert target is None
    keystore.persist_preferred_tv_usn.assert_not_awaited()
    assert "candidates found via SSDP: 2" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_discover_target_without_usn(capsys):
    """a TV without USN cannot be remembered"""
    keystore = fake_keystore()
    target = await lgtvswitcher.daemon.discover(
        unittest.mock.MagicMock(),
        pair_ip="192.168.0.22",
        discovery=fake_discovery(TV_NO_USN),
        keystore=keystore,
    )
    assert target is None
    keystore.persist_preferred_tv_usn.assert_not_awaited()
    assert "(none)" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_discover_persists_into_config(bootstrap):
    """the default key store writes the config"""
    await lgtvswitcher.daemon.discover(bootstrap, pair=True, discovery=fake_discovery(TV_A))
    assert bootstrap.preferred_tv_usn == "uuid:tv-a"
    assert bootstrap.cparser.value("webos/preferredusn") == "uuid:tv-a"


def test_instance_lock_refuses_second(qapp):  # pylint: disable=unused-argument
    """a second switcher is refused until the first one exits"""
    with lgtvswitcher.daemon.instance_lock("lgtv_test_basic") as lockfile:
        assert lockfile.isLocked()
        with pytest.raises(lgtvswitcher.daemon.AlreadyRunningError) as exc_info:
            with lgtvswitcher.daemon.instance_lock("lgtv_test_basic"):
                pass
        assert "already running" in str(exc_info.value)

    with lgtvswitcher.daemon.instance_lock("lgtv_test_basic") as lockfile:
        assert lockfile.isLocked()


def test_instance_lock_names_are_independent(qapp):  # pylint: disable=unused-argument
    """separate lock names do not conflict"""
    with lgtvswitcher.daemon.instance_lock("lgtv_app1") as first:
        with lgtvswitcher.daemon.instance_lock("lgtv_app2") as second:
            assert first.isLocked()
            assert second.isLocked()


def test_instance_lock_released_on_error(qapp):  # pylint: disable=unused-argument
    """exceptions inside the block still release the lock"""
    with pytest.raises(ValueError):
        with lgtvswitcher.daemon.instance_lock("lgtv_test_exception"):
            raise ValueError("boom")

    with lgtvswitcher.daemon.instance_lock("lgtv_test_exception") as lockfile:
        assert lockfile.isLocked()


def test_lock_path_default(qapp):  # pylint: disable=unused-argument
    """the default lock is named after the project"""
    assert lgtvswitcher.daemon.lock_path().name == "lgtvswitcher.lock"
