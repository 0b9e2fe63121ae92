#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

import os

from setuptools import find_namespace_packages, setup

SESSION_SRC_DIR = os.path.join("src", "snowflake", "session")

VERSION = (1, 0, 0, None)  # Default
with open(os.path.join(SESSION_SRC_DIR, "version.py"), encoding="utf-8") as f:
    exec(f.read())
version = ".".join([str(v) for v in VERSION if v is not None])

setup(
    name="snowflake-session",
    version=version,
    description="Session layer for Snowflake clients: login, renewal, heartbeat and query status",
    license="Apache-2.0",
    python_requires=">=3.8",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["snowflake.*"]),
    install_requires=[
        "cryptography>=3.1.0",
        "platformdirs>=2.6.0,<4.8.0",
        "pyjwt<3.0.0",
        "requests<3.0.0",
        "tomlkit>=0.11.0",
    ],
    extras_require={
        "development": [
            "pytest<7.5.0",
        ],
        "test": [
            "pytest<7.5.0",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Database",
    ],
)
