# -*- test-case-name: activeftp.test.test_session -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Per-connection state: working directory, representation type and the
client's data address.
"""

from __future__ import annotations

from typing import List, Tuple

import attr
from constantly import ValueConstant, Values

from twisted.python.filepath import FilePath

from activeftp.replies import (
    CmdNotImplementedForArgError,
    FileNotFoundError,
    PortConnectionError,
)


class Representation(Values):
    """
    Representation types selectable with I{TYPE}.  The value of each is the
    line ending used for line-oriented output on the data connection.
    """

    ASCII = ValueConstant(b"\r\n")
    IMAGE = ValueConstant(b"\n")


_TYPE_CODES = {
    "A": Representation.ASCII,
    "I": Representation.IMAGE,
}


def representationForCode(code: str) -> ValueConstant:
    """
    Map a I{TYPE} argument to a L{Representation}.

    @raise CmdNotImplementedForArgError: If C{code} is neither C{A} nor C{I}.
    """
    try:
        return _TYPE_CODES[code]
    except KeyError:
        raise CmdNotImplementedForArgError(code)


class InvalidPath(Exception):
    """
    Internal exception used to signify an error during parsing a path.
    """


def toSegments(cwd: List[str], path: str) -> List[str]:
    """
    Normalize a path, as represented by a list of strings each
    representing one segment of the path.

    Absolute paths are taken relative to the served root.  A path which
    would climb above the root raises L{InvalidPath}.
    """
    if path.startswith("/"):
        segs = []
    else:
        segs = cwd[:]

    for s in path.split("/"):
        if s == "." or s == "":
            continue
        elif s == "..":
            if segs:
                segs.pop()
            else:
                raise InvalidPath(cwd, path)
        elif "\0" in s or "\\" in s:
            raise InvalidPath(cwd, path)
        else:
            segs.append(s)
    return segs


@attr.s
class Session:
    """
    State owned by a single control connection.

    @ivar root: The directory served to the client.
    @ivar workingDirectory: The working directory, as segments below
        C{root}.
    @ivar representation: The current L{Representation}.
    @ivar peerDataAddress: C{"host:port"} registered by the last I{PORT}
        command, or the empty string.
    """

    root: FilePath = attr.ib()
    workingDirectory: List[str] = attr.ib(factory=list)
    representation = attr.ib(default=Representation.ASCII)
    peerDataAddress: str = attr.ib(default="")

    @property
    def rootRelative(self) -> str:
        """
        The working directory relative to the served root.
        """
        return "/".join(["."] + self.workingDirectory)

    @property
    def rootAbsolute(self) -> str:
        """
        The filesystem path of the working directory.
        """
        return self.root.descendant(self.workingDirectory).path

    @property
    def lineEnding(self) -> bytes:
        return self.representation.value

    def resolve(self, path: str = "") -> FilePath:
        """
        Resolve C{path} against the working directory.

        @raise FileNotFoundError: If C{path} leaves the served root.
        """
        try:
            segments = toSegments(self.workingDirectory, path)
        except InvalidPath:
            raise FileNotFoundError(path)
        return self.root.descendant(segments)

    def changeDirectory(self, path: str) -> None:
        """
        Make C{path} the working directory.

        The session is only updated once the target is known to be an
        existing directory.

        @raise FileNotFoundError: If the target is not a directory.
        """
        try:
            segments = toSegments(self.workingDirectory, path)
        except InvalidPath:
            raise FileNotFoundError(path)
        if not self.root.descendant(segments).isdir():
            raise FileNotFoundError(path)
        self.workingDirectory = segments

    def setPeerAddress(self, host: str, port: int) -> None:
        self.peerDataAddress = "%s:%d" % (host, port)

    def peerHostPort(self) -> Tuple[str, int]:
        """
        Split L{peerDataAddress} for connecting.

        @raise PortConnectionError: If no address has been registered.
        """
        if not self.peerDataAddress:
            raise PortConnectionError("no data address registered")
        host, _, port = self.peerDataAddress.rpartition(":")
        return host, int(port)
