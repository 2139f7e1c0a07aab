# This file is part of clusternet. See LICENSE file for license information.

# Distutils magic for clusternet

import os
import sys
from glob import glob

import setuptools

# Python-path here is a little unpredictable as setup.py could be run
# from a directory other than the root of the repo, so ensure we can find
# our utils
sys.path.insert(0, os.path.dirname(os.path.realpath(__file__)))
# isort: off
from setup_utils import get_version, is_f, read_requires  # noqa: E402

# isort: on
del sys.path[0]

requirements = read_requires()
test_requirements = read_requires("test-requirements.txt")

setuptools.setup(
    name="clusternet",
    version=get_version(),
    description="Compile cluster network profiles into networkd units",
    packages=setuptools.find_packages(exclude=["tests.*", "tests"]),
    license="Dual-licensed under GPLv3 or Apache 2.0",
    data_files=[
        (
            "share/doc/clusternet/examples",
            [f for f in glob("doc/examples/*") if is_f(f)],
        ),
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={"test": test_requirements},
    entry_points={
        "console_scripts": [
            "clusternet = clusternet.cmd.main:main",
        ],
    },
)
