# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
An active mode FTP server built on Twisted.
"""

__version__ = "1.0.0"
