import os
import re
from typing import List

TOPDIR = os.path.dirname(os.path.realpath(__file__))


def is_f(p: str) -> bool:
    return os.path.isfile(p)


def get_version() -> str:
    with open(os.path.join(TOPDIR, "clusternet", "version.py")) as fp:
        match = re.search(r'^__VERSION__ = "([^"]+)"', fp.read(), re.M)
    if not match:
        raise RuntimeError("Unable to find __VERSION__ in version.py")
    return match.group(1)


def read_requires(fname="requirements.txt") -> List[str]:
    requires = []
    with open(os.path.join(TOPDIR, fname)) as fp:
        for line in fp:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            requires.append(line)
    return requires
