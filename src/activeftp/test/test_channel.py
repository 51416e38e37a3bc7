# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Tests for L{activeftp.channel}.
"""

from twisted.internet.testing import StringTransport
from twisted.trial import unittest

from activeftp import replies
from activeftp.channel import ReplyChannel


class BrokenTransport(StringTransport):
    def write(self, data):
        raise RuntimeError("write failed")


class ReplyChannelTests(unittest.TestCase):
    def setUp(self):
        self.transport = StringTransport()
        self.channel = ReplyChannel(self.transport)

    def test_sendReply(self):
        """
        A L{replies.Reply} is written as one CRLF terminated line.
        """
        self.channel.send(replies.Reply(200, "Command okay."))
        self.assertEqual(self.transport.value(), b"200 Command okay.\r\n")

    def test_sendString(self):
        self.channel.send("226 Transfer complete.")
        self.assertEqual(self.transport.value(), b"226 Transfer complete.\r\n")

    def test_replyByKey(self):
        self.channel.reply(replies.USR_LOGGED_IN_PROCEED, "bob")
        self.assertEqual(self.transport.value(), b"230 User bob logged in.\r\n")

    def test_order(self):
        """
        Replies reach the transport in the order they were submitted.
        """
        self.channel.reply(replies.FILE_STATUS_OK_OPEN_DATA_CNX)
        self.channel.reply(replies.TXFR_COMPLETE_OK)
        lines = self.transport.value().split(b"\r\n")
        self.assertEqual([line[:3] for line in lines], [b"150", b"226", b""])

    def test_closed(self):
        """
        Replies sent after L{ReplyChannel.close} are dropped.
        """
        self.channel.close()
        self.channel.reply(replies.TXFR_COMPLETE_OK)
        self.assertEqual(self.transport.value(), b"")
        self.assertTrue(self.channel.closed)

    def test_writeFailureSwallowed(self):
        """
        A transport raising while writing does not propagate to the sender;
        the failure is logged.
        """
        channel = ReplyChannel(BrokenTransport())
        channel.reply(replies.CMD_OK)
        self.assertEqual(len(self.flushLoggedErrors(RuntimeError)), 1)

    def test_nonLatin1Reply(self):
        """
        Replies are encoded as UTF-8, and undecodable filesystem bytes carried
        as surrogates are written back unchanged.
        """
        self.channel.reply(replies.PWD_REPLY, "/srv/日本/caf\udce9")
        self.assertEqual(
            self.transport.value(),
            b'257 "/srv/\xe6\x97\xa5\xe6\x9c\xac/caf\xe9"'
            b" is the current directory.\r\n",
        )
