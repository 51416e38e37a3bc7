#!/usr/bin/env python

# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Setuptools installer for activeftp.
"""

import pathlib

import setuptools

setuptools.setup(
    name="activeftp",
    version="1.0.0",
    description="A minimal active mode FTP server built on Twisted.",
    long_description=pathlib.Path("README.rst").read_text(encoding="utf8"),
    long_description_content_type="text/x-rst",
    license="MIT",
    package_dir={"": "src"},
    packages=setuptools.find_packages("src"),
    python_requires=">=3.8",
    install_requires=[
        "Twisted >= 22.8.0",
        "zope.interface >= 5",
        "attrs >= 19.2.0",
        "constantly >= 15.1",
    ],
    entry_points={
        "console_scripts": ["activeftp = activeftp.__main__:run"],
    },
    classifiers=[
        "Framework :: Twisted",
        "Programming Language :: Python :: 3",
        "Topic :: Internet :: File Transfer Protocol (FTP)",
    ],
    zip_safe=False,
)
