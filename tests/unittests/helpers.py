# This file is part of clusternet. See LICENSE file for license information.

import os

NODES = ("server-1", "server-2", "agent-1", "agent-2")

EXAMPLES_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "doc",
    "examples",
)


def example_path(name):
    return os.path.join(EXAMPLES_DIR, name)
