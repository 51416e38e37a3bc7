# -*- test-case-name: activeftp.test.test_channel -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Ordered delivery of reply lines to a control connection.
"""

from __future__ import annotations

from twisted.internet.interfaces import ITransport
from twisted.logger import Logger

from activeftp.replies import Reply, reply


class ReplyChannel:
    """
    The single writer of status lines on one control connection.

    Every producer of replies for a connection (the greeting, the command
    dispatcher, and a data transfer emitting a preliminary and a terminal
    reply) goes through the same channel.  All of them run on the reactor
    thread, so writes reach the transport in the order they were submitted
    and a line is never split by another.

    Replies are advisory: once the channel is closed, or if the transport
    raises while writing, the reply is dropped and only logged.

    @ivar delimiter: The line ending appended to every reply.
    """

    log = Logger()

    delimiter = b"\r\n"
    # Paths round-trip through the same codec the filesystem uses.
    _encoding = "utf-8"
    _errors = "surrogateescape"

    def __init__(self, transport: ITransport) -> None:
        self._transport = transport
        self.closed = False

    def send(self, line: Reply | str) -> None:
        """
        Write C{line} to the control connection.

        @param line: A L{Reply}, or an already formatted status line.
        """
        if isinstance(line, Reply):
            line = line.render()
        if self.closed:
            self.log.debug("Dropping reply on closed channel: {line}", line=line)
            return
        data = line.encode(self._encoding, self._errors) + self.delimiter
        try:
            self._transport.write(data)
        except Exception:
            self.log.failure("Failed writing reply {line!r}", line=line)

    def reply(self, key: str, *args: object) -> None:
        """
        Send the reply registered under C{key}.
        """
        self.send(reply(key, *args))

    def close(self) -> None:
        """
        Stop delivering replies.  Further replies are discarded.
        """
        self.closed = True
