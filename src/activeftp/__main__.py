# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Run the server: C{python -m activeftp --port 8080 --root /srv/ftp}.
"""

import sys

from twisted.internet import defer, task
from twisted.logger import Logger
from twisted.python import usage

from activeftp import tap

log = Logger()


def main(reactor, *argv):
    config = tap.Options()
    try:
        config.parseOptions(argv)
    except usage.UsageError as e:
        raise SystemExit(f"{sys.argv[0]}: {e}\n{config}")

    tap.startLogging(config)
    service = tap.makeService(config)
    service.startService()
    reactor.addSystemEventTrigger("before", "shutdown", service.stopService)
    log.info(
        "Running FTP server on port {port}, serving {root}",
        port=config["port"],
        root=config["root"].path,
    )
    return defer.Deferred()


def run():
    task.react(main, sys.argv[1:])


if __name__ == "__main__":
    run()
