# -*- test-case-name: activeftp.test.test_replies -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Reply lines sent on the control connection, and the command errors which
map onto them.
"""

from __future__ import annotations

import attr

# response codes

FILE_STATUS_OK_OPEN_DATA_CNX = "150"

CMD_OK = "200.1"
TYPE_SET_OK = "200.2"
ENTERING_PORT_MODE = "200.3"
WELCOME_MSG = "220"
SVC_CLOSING_CTRL_CNX = "221"
TXFR_COMPLETE_OK = "226"
USR_LOGGED_IN_PROCEED = "230"
PWD_REPLY = "257"

TOO_MANY_CONNECTIONS = "421"
CANT_OPEN_DATA_CNX = "425"
CNX_CLOSED_TXFR_ABORTED = "426"

SYNTAX_ERR_IN_ARGS = "501"
CMD_NOT_IMPLMNTD = "502"
CMD_NOT_IMPLMNTD_FOR_PARAM = "504"
FILE_NOT_FOUND = "550.1"
REQ_ACTN_NOT_TAKEN = "550.2"


RESPONSE = {
    # -- 100's --
    FILE_STATUS_OK_OPEN_DATA_CNX: "150 File status okay; about to open "
    "data connection.",
    # -- 200's --
    CMD_OK: "200 Command okay.",
    TYPE_SET_OK: "200 Type set to %s.",
    ENTERING_PORT_MODE: "200 PORT command successful.",
    WELCOME_MSG: "220 %s",
    SVC_CLOSING_CTRL_CNX: "221 Service closing control connection.",
    TXFR_COMPLETE_OK: "226 Transfer complete.",
    USR_LOGGED_IN_PROCEED: "230 User %s logged in.",
    PWD_REPLY: '257 "%s" is the current directory.',
    # -- 400's --
    TOO_MANY_CONNECTIONS: "421 Too many users right now, try "
    "again in a few minutes.",
    CANT_OPEN_DATA_CNX: "425 Can't open data connection.",
    CNX_CLOSED_TXFR_ABORTED: "426 Connection closed; transfer aborted.",
    # -- 500's --
    SYNTAX_ERR_IN_ARGS: "501 Syntax error in parameters or arguments: %s",
    CMD_NOT_IMPLMNTD: "502 Command '%s' not implemented.",
    CMD_NOT_IMPLMNTD_FOR_PARAM: "504 Command not implemented for "
    "parameter '%s'.",
    FILE_NOT_FOUND: "550 %s: File unavailable.",
    REQ_ACTN_NOT_TAKEN: "550 Requested action not taken: %s",
}


@attr.s(frozen=True)
class Reply:
    """
    A single status line for the control connection.

    @ivar code: The three digit reply code.
    @ivar message: The human readable text following the code.
    """

    code: int = attr.ib()
    message: str = attr.ib()

    def render(self) -> str:
        """
        Format this reply as it appears on the wire, without a line ending.
        """
        return "%03d %s" % (self.code, self.message)

    def __str__(self) -> str:
        return self.render()


def reply(key: str, *args: object) -> Reply:
    """
    Build the L{Reply} registered in L{RESPONSE} under C{key}.

    @param args: Values interpolated into the reply text.
    """
    code, message = (RESPONSE[key] % args).split(" ", 1)
    return Reply(int(code), message)


class FTPCmdError(Exception):
    """
    Generic exception for FTP commands.
    """

    errorCode = REQ_ACTN_NOT_TAKEN

    def __init__(self, *msg):
        Exception.__init__(self, *msg)
        self.errorMessage = msg

    def response(self) -> Reply:
        """
        Generate a FTP response message for this error.
        """
        return reply(self.errorCode, *self.errorMessage)


class FileNotFoundError(FTPCmdError):
    """
    Raised when a file or directory does not exist, cannot be opened, or
    lies outside the served root.
    """

    errorCode = FILE_NOT_FOUND


class CmdArgSyntaxError(FTPCmdError):
    """
    Raised when a command is called with a wrong value or a wrong number of
    arguments.
    """

    errorCode = SYNTAX_ERR_IN_ARGS


class CmdNotImplementedError(FTPCmdError):
    """
    Raised when an unimplemented command is given to the server.
    """

    errorCode = CMD_NOT_IMPLMNTD


class CmdNotImplementedForArgError(FTPCmdError):
    """
    Raised when the handling of a parameter for a command is not implemented by
    the server.
    """

    errorCode = CMD_NOT_IMPLMNTD_FOR_PARAM


class PortConnectionError(Exception):
    """
    The data connection to the client could not be opened.
    """


class TransferAbortedError(Exception):
    """
    The data connection was lost, or local I/O failed, before a transfer
    completed.
    """
