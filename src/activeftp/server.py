# -*- test-case-name: activeftp.test.test_server -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
The FTP protocol interpreter: command dispatch for one control connection.
"""

from twisted.internet import defer
from twisted.logger import Logger
from twisted.protocols import basic, policies

from activeftp import __version__
from activeftp.channel import ReplyChannel
from activeftp.dtp import DataTransfer
from activeftp.parser import decodeHostPort, parseCommand
from activeftp.replies import (
    CMD_OK,
    ENTERING_PORT_MODE,
    PWD_REPLY,
    REQ_ACTN_NOT_TAKEN,
    SVC_CLOSING_CTRL_CNX,
    TOO_MANY_CONNECTIONS,
    TYPE_SET_OK,
    USR_LOGGED_IN_PROCEED,
    WELCOME_MSG,
    CmdArgSyntaxError,
    CmdNotImplementedError,
    FTPCmdError,
    reply,
)
from activeftp.session import Session, representationForCode

log = Logger()


class FTPOverflowProtocol(basic.LineReceiver):
    """FTP mini-protocol for when there are too many connections."""

    _encoding = "utf-8"

    def connectionMade(self):
        self.sendLine(reply(TOO_MANY_CONNECTIONS).render().encode(self._encoding))
        self.transport.loseConnection()


class FTP(basic.LineReceiver, policies.TimeoutMixin):
    """
    Protocol Interpreter for the File Transfer Protocol, active mode only.

    Each line is one command.  While a command is being handled the control
    connection is paused, so commands are processed strictly in the order
    received and a data transfer holds back the commands after it.

    @ivar session: The L{Session} of this connection.
    @ivar replies: The L{ReplyChannel} every reply is written through.
    @ivar dataTransfer: Runs I{LIST}, I{RETR} and I{STOR}.
    @ivar disconnected: Set once I{QUIT} was received or the connection
        was lost; no further commands are processed.
    """

    # Accept bare LF as well as CRLF; a trailing CR is stripped.
    delimiter = b"\n"

    disconnected = False

    # idle timeout of the control connection
    timeOut = 600
    # how long the DTP waits for a connection
    dtpTimeout = 10
    # how long an open data connection may sit idle
    transferTimeout = 60

    # Flags common clients pass to LIST; all of them mean "no argument".
    LIST_FLAGS = ("-a", "-l", "-la", "-al")

    # Arguments are decoded the way LIST encodes names and the filesystem
    # encodes paths, so a listed name can be sent back unchanged.
    _encoding = "utf-8"
    _errors = "surrogateescape"
    _peer = None

    def connectionMade(self):
        self._peer = self.transport.getPeer()
        self.session = Session(self.factory.root)
        self.replies = ReplyChannel(self.transport)
        self.dataTransfer = DataTransfer(
            self.session,
            self.replies,
            self.factory.reactor,
            self.dtpTimeout,
            self.transferTimeout,
        )
        log.info("Client connected: {peer}", peer=self._peer)
        self.setTimeout(self.timeOut)
        self.reply(WELCOME_MSG, self.factory.welcomeMessage)

    def connectionLost(self, reason):
        self.disconnected = True
        self.setTimeout(None)
        self.replies.close()
        self.dataTransfer.cancel()
        log.info("Client disconnected: {peer}", peer=self._peer)

    def timeoutConnection(self):
        log.info("Control connection from {peer} timed out", peer=self._peer)
        self.transport.loseConnection()

    def reply(self, key, *args):
        self.replies.reply(key, *args)

    def lineReceived(self, line):
        self.resetTimeout()
        line = line.decode(self._encoding, self._errors).rstrip("\r")
        command = parseCommand(line)
        if command is None:
            return
        log.debug(
            "{peer} sent {verb} {args}",
            peer=self._peer,
            verb=command.verb,
            args=command.args,
        )
        self.pauseProducing()

        def processFailed(err):
            if err.check(FTPCmdError):
                self.replies.send(err.value.response())
            else:
                log.failure("Unexpected error handling {verb}", err, verb=command.verb)
                self.reply(REQ_ACTN_NOT_TAKEN, "internal server error")

        def processSucceeded(result):
            if isinstance(result, tuple):
                self.reply(*result)
            elif result is not None:
                self.reply(result)

        def allDone(ignored):
            # LineReceiver tolerates resuming from inside lineReceived.
            if not self.disconnected:
                self.resumeProducing()

        d = defer.maybeDeferred(self.processCommand, command.verb, *command.args)
        d.addCallbacks(processSucceeded, processFailed)
        d.addErrback(lambda f: log.failure("Failed to send reply", f))
        d.addBoth(allDone)

    def processCommand(self, verb, *args):
        """
        Run the handler for C{verb}.

        @return: A reply key, a tuple of a reply key and its arguments,
            L{None} if the handler replied itself, or a L{defer.Deferred}
            firing with one of those.
        """
        method = getattr(self, "ftp_" + verb, None)
        if method is None:
            raise CmdNotImplementedError(verb)
        return method(*args)

    def _requireOne(self, verb, args):
        if len(args) != 1:
            raise CmdArgSyntaxError(f"{verb} requires exactly one argument")
        return args[0]

    def _transfer(self, method, *args):
        # The idle timer would otherwise fire in the middle of a long transfer.
        self.setTimeout(None)

        def enableTimeout(result):
            if not self.disconnected:
                self.setTimeout(self.timeOut)
            return result

        d = defer.maybeDeferred(method, *args)
        d.addBoth(enableTimeout)
        return d

    def ftp_USER(self, *args):
        return (USR_LOGGED_IN_PROCEED, " ".join(args))

    def ftp_CWD(self, *args):
        path = self._requireOne("CWD", args)
        self.session.changeDirectory(path)
        return (CMD_OK,)

    def ftp_PWD(self, *args):
        return (PWD_REPLY, self.session.rootAbsolute)

    def ftp_PORT(self, *args):
        address = self._requireOne("PORT", args)
        try:
            host, port = decodeHostPort(address)
        except ValueError:
            raise CmdArgSyntaxError(address)
        self.session.setPeerAddress(host, port)
        return (ENTERING_PORT_MODE,)

    def ftp_LPRT(self, *args):
        # Some clients try LPRT before PORT; accept and ignore it.
        return (CMD_OK,)

    def ftp_TYPE(self, *args):
        if not args:
            raise CmdArgSyntaxError("TYPE requires an argument")
        self.session.representation = representationForCode(args[0])
        return (TYPE_SET_OK, args[0])

    def ftp_LIST(self, *args):
        if args and args[0] in self.LIST_FLAGS:
            args = args[1:]
        if len(args) > 1:
            raise CmdArgSyntaxError("LIST takes at most one argument")
        return self._transfer(self.dataTransfer.listDirectory, *args)

    def ftp_RETR(self, *args):
        path = self._requireOne("RETR", args)
        return self._transfer(self.dataTransfer.retrieveFile, path)

    def ftp_STOR(self, *args):
        path = self._requireOne("STOR", args)
        return self._transfer(self.dataTransfer.storeFile, path)

    def ftp_QUIT(self, *args):
        self.reply(SVC_CLOSING_CTRL_CNX)
        self.transport.loseConnection()
        self.disconnected = True


class FTPFactory(policies.LimitTotalConnectionsFactory):
    """
    A factory for producing ftp protocol instances

    @ivar root: L{twisted.python.filepath.FilePath} of the served directory.
    @ivar timeOut: the protocol interpreter's idle timeout time in seconds,
        default is 600 seconds.
    @ivar dtpTimeout: seconds allowed for opening a data connection.
    @ivar transferTimeout: seconds a data connection may stay idle.
    @ivar connectionLimit: maximum number of concurrent control connections,
        or L{None} for no limit.
    """

    protocol = FTP
    overflowProtocol = FTPOverflowProtocol
    timeOut = 600
    dtpTimeout = 10
    transferTimeout = 60

    welcomeMessage = f"activeftp {__version__} FTP Server"

    def __init__(self, root, reactor=None):
        self.root = root
        if reactor is None:
            from twisted.internet import reactor
        self.reactor = reactor

    def buildProtocol(self, addr):
        p = policies.LimitTotalConnectionsFactory.buildProtocol(self, addr)
        if p is not None:
            p.wrappedProtocol.timeOut = self.timeOut
            p.wrappedProtocol.dtpTimeout = self.dtpTimeout
            p.wrappedProtocol.transferTimeout = self.transferTimeout
            p.wrappedProtocol.callLater = self.reactor.callLater
        return p
