# -*- test-case-name: activeftp.test.test_parser -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Parsing of control connection lines and I{PORT} host-port arguments.
"""

from __future__ import annotations

from typing import Optional, Tuple

import attr


@attr.s(frozen=True)
class Command:
    """
    One command line from the client.

    @ivar verb: The command name, exactly as sent.
    @ivar args: The whitespace separated arguments.
    """

    verb: str = attr.ib()
    args: Tuple[str, ...] = attr.ib(converter=tuple, default=())


def parseCommand(line: str) -> Optional[Command]:
    """
    Split C{line} on runs of whitespace into a L{Command}.

    There is no quoting or escaping; verbs are case-sensitive.

    @return: The command, or L{None} for a line with no tokens.
    """
    fields = line.split()
    if not fields:
        return None
    return Command(fields[0], fields[1:])


def decodeHostPort(line: str) -> Tuple[str, int]:
    """
    Decode a I{PORT} argument of the form C{h1,h2,h3,h4,p1,p2}.

    @return: a 2-tuple of (host, port).

    @raise ValueError: Unless C{line} holds exactly six decimal numbers,
        each between 0 and 255.
    """
    parts = line.split(",")
    if len(parts) != 6:
        raise ValueError("Expected six fields", line)
    parsed = []
    for p in parts:
        if not p.isdigit():
            raise ValueError("Not a number", line, p)
        x = int(p)
        if x > 255:
            raise ValueError("Out of range", line, x)
        parsed.append(x)
    a, b, c, d, e, f = parsed
    host = f"{a}.{b}.{c}.{d}"
    port = (e << 8) + f
    return host, port


def encodeHostPort(host: str, port: int) -> str:
    numbers = host.split(".") + [str(port >> 8), str(port % 256)]
    return ",".join(numbers)
