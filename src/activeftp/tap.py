# -*- test-case-name: activeftp.test.test_tap -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
I am the support module for making an active mode ftp server.
"""

import sys

from twisted.application import internet
from twisted.logger import (
    FilteringLogObserver,
    InvalidLogLevelError,
    LogLevel,
    LogLevelFilterPredicate,
    globalLogBeginner,
    textFileLogObserver,
)
from twisted.python import usage
from twisted.python.filepath import FilePath

from activeftp.server import FTPFactory


class Options(usage.Options):
    synopsis = "[options]"
    longdesc = "Serves a directory over FTP, using active mode data connections."

    optParameters = [
        ["port", "p", 8080, "Port for control connections.", usage.portCoerce],
        ["root", "r", ".", "Directory served to clients."],
        ["timeout", "t", 600, "Idle timeout of control connections.", int],
        ["data-timeout", "", 10, "Seconds allowed to open a data connection.", int],
        ["transfer-timeout", "", 60, "Seconds a data connection may idle.", int],
        ["max-connections", "", None, "Limit on control connections.", int],
        ["log-level", "", "info", "Minimum level of logged events."],
    ]

    compData = usage.Completions(
        optActions={
            "root": usage.CompleteDirs(),
            "log-level": usage.CompleteList(
                [level.name for level in LogLevel.iterconstants()]
            ),
        }
    )

    def postOptions(self):
        root = FilePath(self["root"])
        if not root.isdir():
            raise usage.UsageError(f"{self['root']!r} is not a directory")
        self["root"] = root

        try:
            self["log-level"] = LogLevel.levelWithName(self["log-level"])
        except InvalidLogLevelError:
            raise usage.UsageError(f"Invalid log level: {self['log-level']!r}")


def startLogging(config, logFile=None) -> None:
    """
    Send log events at or above the configured level to C{logFile}, or to
    standard output.
    """
    if logFile is None:
        logFile = sys.stdout
    observer = FilteringLogObserver(
        textFileLogObserver(logFile),
        [LogLevelFilterPredicate(defaultLogLevel=config["log-level"])],
    )
    globalLogBeginner.beginLoggingTo([observer])


def makeFactory(config, reactor=None) -> FTPFactory:
    f = FTPFactory(config["root"], reactor)
    f.timeOut = config["timeout"]
    f.dtpTimeout = config["data-timeout"]
    f.transferTimeout = config["transfer-timeout"]
    f.connectionLimit = config["max-connections"]
    return f


def makeService(config):
    return internet.TCPServer(config["port"], makeFactory(config))
