# This file is part of clusternet. See LICENSE file for license information.

import collections.abc
import io
import logging
import logging.config
import os
import sys
from contextlib import suppress

DEFAULT_LOG_FORMAT = "%(asctime)s - %(filename)s[%(levelname)s]: %(message)s"


def setup_basic_logging(level=logging.DEBUG, formatter=None):
    formatter = formatter or logging.Formatter(DEFAULT_LOG_FORMAT)
    root = logging.getLogger()
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(level)
    root.addHandler(console)
    root.setLevel(level)


def reset_logging():
    """Remove all current handlers and unset log level."""
    log = logging.getLogger()
    handlers = list(log.handlers)
    for h in handlers:
        h.flush()
        h.close()
        log.removeHandler(h)
    log.setLevel(logging.NOTSET)


def _collect_log_cfgs(cfg):
    log_cfgs = []
    log_cfg = cfg.get("logcfg")
    if log_cfg and isinstance(log_cfg, str):
        # 'logcfg' is the single-entry spelling of 'log_cfgs'
        log_cfgs.append(str(log_cfg))
    elif "log_cfgs" in cfg:
        for a_cfg in cfg["log_cfgs"]:
            if isinstance(a_cfg, str):
                log_cfgs.append(a_cfg)
            elif isinstance(a_cfg, collections.abc.Iterable):
                log_cfgs.append("\n".join(str(c) for c in a_cfg))
            else:
                log_cfgs.append(str(a_cfg))
    return log_cfgs


def setup_logging(cfg=None, level=logging.WARNING):
    """Configure logging from the 'log_cfgs' entries of a config.

    Each entry is either a path to a logging.config.fileConfig file or
    the text of one. The first entry that loads wins; without any usable
    entry basic stderr logging is set up at ``level``.
    """
    if not cfg:
        cfg = {}

    for log_cfg in _collect_log_cfgs(cfg):
        with suppress(FileNotFoundError):
            # If the value is not a filename, assume that it is a config.
            if not (log_cfg.startswith("/") and os.path.isfile(log_cfg)):
                log_cfg = io.StringIO(log_cfg)
            logging.config.fileConfig(log_cfg, disable_existing_loggers=False)
            return True

    if cfg.get("log_basic", True):
        setup_basic_logging(level)
    return False
