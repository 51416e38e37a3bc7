# -*- test-case-name: activeftp.test.test_dtp,activeftp.test.test_server -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Active mode data connections, and the sequence shared by every command
which moves data over one.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from zope.interface import implementer

from twisted.internet import defer, error, interfaces, protocol
from twisted.logger import Logger
from twisted.protocols import basic, policies
from twisted.python import failure

from activeftp.channel import ReplyChannel
from activeftp.replies import (
    CANT_OPEN_DATA_CNX,
    CNX_CLOSED_TXFR_ABORTED,
    FILE_STATUS_OK_OPEN_DATA_CNX,
    TXFR_COMPLETE_OK,
    FileNotFoundError,
    PortConnectionError,
    TransferAbortedError,
)
from activeftp.session import Session

log = Logger()


@implementer(interfaces.IConsumer)
class DTP(protocol.Protocol, policies.TimeoutMixin):
    """
    The server side of one data connection.

    Outgoing payloads are written through this protocol, which proxies
    L{interfaces.IConsumer} to its transport so that every write counts as
    activity for the idle timeout.  Incoming bytes are handed to the
    consumer registered with L{registerConsumer}.

    @ivar isConnected: Whether the connection is currently open.
    """

    isConnected = False

    _consumer = None
    _failure = None
    _lost = None

    def __init__(self):
        self._waiting: List[defer.Deferred] = []

    def connectionMade(self):
        self.isConnected = True
        self.setTimeout(self.factory.transferTimeout)
        self.factory.deferred.callback(self)

    def connectionLost(self, reason):
        self.isConnected = False
        self.setTimeout(None)
        if self._failure is not None:
            reason = self._failure
        elif reason.check(error.ConnectionDone):
            reason = None
        self._lost = (reason,)
        waiting, self._waiting = self._waiting, []
        for d in waiting:
            self._fire(d)

    def timeoutConnection(self):
        log.info("Data connection idle for {timeout} seconds", timeout=self.timeOut)
        self._abort(failure.Failure(TransferAbortedError("data connection timed out")))

    def stopTransfer(self):
        """
        Abort the connection.  The disconnection is reported as
        L{TransferAbortedError}.
        """
        if self.isConnected:
            self._abort(failure.Failure(TransferAbortedError("transfer cancelled")))

    def _abort(self, reason):
        if self._failure is None:
            self._failure = reason
        self.transport.abortConnection()

    def _fire(self, d):
        (reason,) = self._lost
        if reason is None:
            d.callback(None)
        else:
            d.errback(reason)

    def whenDisconnected(self) -> defer.Deferred:
        """
        @return: A L{defer.Deferred} which fires with L{None} once the data
            connection has been closed cleanly, or fails if it was lost,
            timed out, or the local consumer failed.
        """
        d = defer.Deferred()
        if self._lost is None:
            self._waiting.append(d)
        else:
            self._fire(d)
        return d

    # Proxy IConsumer to our transport
    def registerProducer(self, producer, streaming):
        self.transport.registerProducer(producer, streaming)

    def unregisterProducer(self):
        self.transport.unregisterProducer()

    def write(self, data):
        self.resetTimeout()
        self.transport.write(data)

    def registerConsumer(self, consumer):
        """
        Deliver received bytes to C{consumer}, anything with a C{write}
        method.  A failing write aborts the connection.
        """
        self._consumer = consumer

    def dataReceived(self, data):
        self.resetTimeout()
        if self._consumer is None:
            return
        try:
            self._consumer.write(data)
        except OSError:
            self._abort(failure.Failure())


class DTPFactory(protocol.ClientFactory):
    """
    Client factory for I{data transfer process} protocols.

    @ivar deferred: Fires with the connected L{DTP}, or fails with
        L{PortConnectionError} if the connection cannot be made in time.
    @ivar transferTimeout: Idle timeout, in seconds, given to the L{DTP}.

    @ivar _state: Indicates the current state of the DTPFactory.  Initially,
        this is L{_IN_PROGRESS}.  If the connection fails or times out, it is
        L{_FAILED}.  If the connection succeeds before the timeout, it is
        L{_FINISHED}.
    """

    _IN_PROGRESS = object()
    _FAILED = object()
    _FINISHED = object()

    _state = _IN_PROGRESS

    noisy = False

    def __init__(self, transferTimeout=None, reactor=None):
        self.transferTimeout = transferTimeout
        # deferred will fire when instance is connected
        self.deferred = defer.Deferred(self._cancelConnect)
        self.delayedCall = None
        if reactor is None:
            from twisted.internet import reactor
        self._reactor = reactor

    def buildProtocol(self, addr):
        if self._state is not self._IN_PROGRESS:
            return None
        self._state = self._FINISHED

        self.cancelTimeout()
        p = DTP()
        p.factory = self
        p.callLater = self._reactor.callLater
        return p

    def stopFactory(self):
        self.cancelTimeout()

    def timeoutFactory(self):
        log.info("Timed out waiting for data connection")
        if self._state is not self._IN_PROGRESS:
            return
        self._state = self._FAILED

        d = self.deferred
        self.deferred = None
        d.errback(PortConnectionError(defer.TimeoutError("DTPFactory timeout")))

    def cancelTimeout(self):
        if self.delayedCall is not None and self.delayedCall.active():
            self.delayedCall.cancel()

    def setTimeout(self, seconds):
        self.delayedCall = self._reactor.callLater(seconds, self.timeoutFactory)

    def _cancelConnect(self, d):
        if self._state is not self._IN_PROGRESS:
            return
        self._state = self._FAILED
        self.cancelTimeout()
        self.deferred = None
        d.errback(PortConnectionError(defer.CancelledError()))

    def clientConnectionFailed(self, connector, reason):
        if self._state is not self._IN_PROGRESS:
            return
        self._state = self._FAILED
        self.cancelTimeout()
        d = self.deferred
        self.deferred = None
        d.errback(PortConnectionError(reason))


class DataTransfer:
    """
    The sequence shared by I{LIST}, I{RETR} and I{STOR}.

    Each command first acquires its local resource, failing with
    L{FileNotFoundError} before anything is sent.  Then a preliminary 150
    reply is sent, the data connection is opened to the session's
    registered address (425 if that fails), the payload is streamed, and
    the terminal 226 or 426 reply is sent.  The data connection and the
    local resource are released on every path.

    @ivar connectTimeout: Seconds allowed for opening the data connection.
    @ivar transferTimeout: Seconds a data connection may stay idle.
    """

    connectTimeout = 10
    transferTimeout = 60

    _connecting = None
    _dtp = None

    def __init__(
        self,
        session: Session,
        channel: ReplyChannel,
        reactor=None,
        connectTimeout: Optional[float] = None,
        transferTimeout: Optional[float] = None,
    ) -> None:
        self.session = session
        self.channel = channel
        if reactor is None:
            from twisted.internet import reactor
        self._reactor = reactor
        if connectTimeout is not None:
            self.connectTimeout = connectTimeout
        if transferTimeout is not None:
            self.transferTimeout = transferTimeout

    def listDirectory(self, path: str = "") -> defer.Deferred:
        """
        Send the names in the directory C{path}, one per line, followed by
        an empty line.  Lines end as the session's representation demands.
        """
        directory = self.session.resolve(path)
        try:
            names = sorted(directory.listdir())
        except OSError as e:
            log.info("Cannot list {path}: {error}", path=directory.path, error=e)
            raise FileNotFoundError(path or ".")

        def send(dtp):
            eol = self.session.lineEnding
            for name in names:
                dtp.write(name.encode("utf-8", "surrogateescape") + eol)
            dtp.write(eol)

        return self._transfer(send)

    def retrieveFile(self, path: str) -> defer.Deferred:
        """
        Send the content of the file C{path}, followed by one line ending.
        """
        filePath = self.session.resolve(path)
        if filePath.isdir():
            raise FileNotFoundError(path)
        try:
            fObj = filePath.open("r")
        except OSError as e:
            log.info("Cannot read {path}: {error}", path=filePath.path, error=e)
            raise FileNotFoundError(path)

        def send(dtp):
            d = basic.FileSender().beginFileTransfer(fObj, dtp)
            d.addCallback(lambda ignored: dtp.write(self.session.lineEnding))
            return d

        return self._transfer(send, fObj.close)

    def storeFile(self, path: str) -> defer.Deferred:
        """
        Replace the file C{path} with everything received until the client
        closes the data connection.
        """
        filePath = self.session.resolve(path)
        if filePath.isdir():
            raise FileNotFoundError(path)
        try:
            fObj = filePath.open("w")
        except OSError as e:
            log.info("Cannot create {path}: {error}", path=filePath.path, error=e)
            raise FileNotFoundError(path)
        log.info("Storing {path}", path=filePath.path)

        def receive(dtp):
            dtp.registerConsumer(fObj)
            return dtp.whenDisconnected()

        return self._transfer(receive, fObj.close)

    def cancel(self) -> None:
        """
        Stop the transfer in progress, if any: abort its data connection,
        or give up on opening one.  The transfer then finishes as it does
        on any other failure, releasing its file.
        """
        if self._dtp is not None:
            self._dtp.stopTransfer()
        elif self._connecting is not None:
            self._connecting.cancel()

    def _connect(self) -> defer.Deferred:
        try:
            host, port = self.session.peerHostPort()
        except PortConnectionError:
            return defer.fail()

        factory = DTPFactory(self.transferTimeout, self._reactor)
        factory.setTimeout(self.connectTimeout)
        connector = self._reactor.connectTCP(host, port, factory)

        def connectFailed(err):
            connector.disconnect()
            return err

        self._connecting = factory.deferred
        return factory.deferred.addErrback(connectFailed)

    def _transfer(
        self,
        stream: Callable[[DTP], object],
        release: Optional[Callable[[], object]] = None,
    ) -> defer.Deferred:
        address = self.session.peerDataAddress

        def connected(dtp):
            self._connecting = None
            self._dtp = dtp
            d = defer.maybeDeferred(stream, dtp)
            d.addBoth(closeData, dtp)
            d.addCallbacks(lambda ignored: TXFR_COMPLETE_OK, transferFailed)
            return d

        def closeData(result, dtp):
            dtp.transport.loseConnection()
            d = dtp.whenDisconnected()
            if isinstance(result, failure.Failure):
                d.addBoth(lambda ignored: result)
            return d

        def connectFailed(err):
            err.trap(PortConnectionError)
            log.info(
                "Can't open data connection to {address!r}: {reason}",
                address=address,
                reason=err.value,
            )
            return CANT_OPEN_DATA_CNX

        def transferFailed(err):
            log.info(
                "Transfer to {address} aborted: {reason}",
                address=address,
                reason=err.value,
            )
            return CNX_CLOSED_TXFR_ABORTED

        def releaseResource(result):
            self._connecting = self._dtp = None
            if release is not None:
                release()
            return result

        self.channel.reply(FILE_STATUS_OK_OPEN_DATA_CNX)
        d = self._connect()
        d.addCallbacks(connected, connectFailed)
        d.addBoth(releaseResource)
        d.addCallback(self.channel.reply)
        return d
