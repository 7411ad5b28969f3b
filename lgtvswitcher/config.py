#!/usr/bin/env python3
"""
config file parsing/handling
"""

import contextlib
import logging
import pathlib
import sys
import time

from PySide6.QtCore import (  # pylint: disable=no-name-in-module
    QCoreApplication,
    QSettings,
    QStandardPaths,
)

import lgtvswitcher
from lgtvswitcher.display.types import MonitorConnectionKind
from lgtvswitcher.options import SwitcherOptions
from lgtvswitcher.webos.types import DEFAULT_TV_PORT


class ConfigFile:  # pylint: disable=too-many-instance-attributes
    """read and write the QSettings backed configuration"""

    def __init__(
        self,
        logpath: str | pathlib.Path | None = None,
        reset: bool = False,
        testmode: bool = False,
    ):
        self.version: str = lgtvswitcher.__version__
        self.testmode: bool = testmode
        self.basedir: pathlib.Path = pathlib.Path(
            QStandardPaths.standardLocations(QStandardPaths.DocumentsLocation)[0],
            QCoreApplication.applicationName(),
        )
        self.logpath: pathlib.Path = self.basedir.joinpath("logs", "debug.log")
        if logpath:
            self.logpath = pathlib.Path(logpath)

        logging.info("Logpath: %s", self.logpath)

        self.qsettingsformat: QSettings.Format = QSettings.NativeFormat
        if sys.platform == "win32":
            self.qsettingsformat = QSettings.IniFormat

        self.cparser: QSettings = QSettings(
            self.qsettingsformat,
            QSettings.UserScope,
            QCoreApplication.organizationName(),
            QCoreApplication.applicationName(),
        )
        logging.info("configuration: %s", self.cparser.fileName())

        self.tv_host: str = "lgwebostv.local"
        self.tv_port: int = DEFAULT_TV_PORT
        self.client_key: str = ""
        self.preferred_tv_usn: str = ""
        self.target_input_id: str = "HDMI_1"
        self.fallback_input_id: str = ""
        self.preferred_monitor_name: str = ""
        self.monitor_connection: str = "auto"
        self.loglevel: str = "DEBUG"

        self._force_set_statics()

        self.defaults()
        if reset:
            self.cparser.clear()
            self._force_set_statics()
            self.save()
        else:
            self.get()

    def _force_set_statics(self) -> None:
        """make sure these are always set"""
        if self.testmode:
            self.cparser.setValue("testmode/enabled", True)

    def reset(self) -> None:
        """forcibly go back to defaults"""
        logging.debug("config reset")
        self.__init__(logpath=self.logpath, reset=True, testmode=self.testmode)  # pylint: disable=unnecessary-dunder-call

    def _string(self, key: str, default: str) -> str:
        value = self.cparser.value(key, defaultValue=default)
        if value is None:
            return default
        return str(value).strip()

    def get(self) -> None:
        """refresh values"""

        self.cparser.sync()
        self.tv_host = self._string("webos/host", self.tv_host)
        with contextlib.suppress(TypeError, ValueError):
            self.tv_port = int(self.cparser.value("webos/port", defaultValue=self.tv_port))
        self.client_key = self._string("webos/clientkey", self.client_key)
        self.preferred_tv_usn = self._string("webos/preferredusn", self.preferred_tv_usn)
        self.target_input_id = self._string("switcher/targetinput", self.target_input_id)
        self.fallback_input_id = self._string("switcher/fallbackinput", self.fallback_input_id)
        self.preferred_monitor_name = self._string(
            "monitor/preferred", self.preferred_monitor_name
        )
        self.monitor_connection = self._string("monitor/connection", self.monitor_connection)
        self.loglevel = self._string("settings/loglevel", self.loglevel)

    def defaults(self) -> None:
        """default values for things"""
        logging.debug("set defaults")

        settings = QSettings(
            self.qsettingsformat,
            QSettings.SystemScope,
            QCoreApplication.organizationName(),
            QCoreApplication.applicationName(),
        )

        settings.setValue("webos/host", self.tv_host)
        settings.setValue("webos/port", self.tv_port)
        settings.setValue("webos/clientkey", "")
        settings.setValue("webos/preferredusn", "")
        settings.setValue("switcher/targetinput", self.target_input_id)
        settings.setValue("switcher/fallbackinput", "")
        settings.setValue("monitor/preferred", "")
        settings.setValue("monitor/connection", self.monitor_connection)
        settings.setValue("settings/loglevel", self.loglevel)

    def save(self) -> None:
        """save the current set"""

        self.cparser.setValue("webos/host", self.tv_host)
        self.cparser.setValue("webos/port", self.tv_port)
        self.cparser.setValue("webos/clientkey", self.client_key)
        self.cparser.setValue("webos/preferredusn", self.preferred_tv_usn)
        self.cparser.setValue("switcher/targetinput", self.target_input_id)
        self.cparser.setValue("switcher/fallbackinput", self.fallback_input_id)
        self.cparser.setValue("monitor/preferred", self.preferred_monitor_name)
        self.cparser.setValue("monitor/connection", self.monitor_connection)
        self.cparser.setValue("settings/loglevel", self.loglevel)
        self.cparser.setValue("settings/lastsavedate", time.strftime("%Y%m%d%H%M%S"))

        self.cparser.sync()

    def connection_override(self) -> MonitorConnectionKind | None:
        """forced connection kind for the Qt detector, None for auto"""
        return MonitorConnectionKind.from_setting(self.monitor_connection)

    def options(self) -> SwitcherOptions:
        """runtime options built from the current values"""
        return SwitcherOptions(
            tv_host=self.tv_host,
            tv_port=self.tv_port,
            client_key=self.client_key or None,
            preferred_tv_usn=self.preferred_tv_usn or None,
            target_input_id=self.target_input_id,
            fallback_input_id=self.fallback_input_id or None,
            preferred_monitor_name=self.preferred_monitor_name,
        )
