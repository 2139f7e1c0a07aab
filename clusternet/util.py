# This file is part of clusternet. See LICENSE file for license information.

import copy
import json
import logging
import os
from typing import Dict, Mapping, Sequence, Union

import yaml

LOG = logging.getLogger(__name__)


def decode_binary(blob: Union[str, bytes], encoding="utf-8") -> str:
    # Converts a binary type into a text type using given encoding.
    return blob if isinstance(blob, str) else blob.decode(encoding=encoding)


def encode_text(text: Union[str, bytes], encoding="utf-8") -> bytes:
    # Converts a text string into a binary type using given encoding.
    return text if isinstance(text, bytes) else text.encode(encoding=encoding)


def obj_name(obj):
    if isinstance(obj, type):
        return obj.__name__
    return type(obj).__name__


def load_text_file(fname: Union[str, os.PathLike]) -> str:
    LOG.debug("Reading from %s", fname)
    with open(fname, "rb") as fh:
        return decode_binary(fh.read())


def load_yaml(blob, default=None, allowed=(dict,)):
    loaded = default
    blob = decode_binary(blob)
    try:
        LOG.debug(
            "Attempting to load yaml from string "
            "of length %s with allowed root types %s",
            len(blob),
            allowed,
        )
        converted = yaml.safe_load(blob)
        if converted is None:
            LOG.debug("loaded blob returned None, returning default.")
            converted = default
        elif not isinstance(converted, allowed):
            raise TypeError(
                "Yaml load allows %s root types, but got %s instead"
                % (allowed, obj_name(converted))
            )
        loaded = converted
    except (yaml.YAMLError, TypeError, ValueError) as e:
        msg = "Failed loading yaml blob"
        mark = getattr(e, "context_mark", None) or getattr(
            e, "problem_mark", None
        )
        if mark:
            msg += (
                '. Invalid format at line {line} column {col}: "{err}"'.format(
                    line=mark.line + 1, col=mark.column + 1, err=e
                )
            )
        else:
            msg += ". {err}".format(err=e)
        LOG.warning(msg)
    return loaded


def load_json(text, root_types=(dict,)):
    decoded = json.loads(decode_binary(text))
    if not isinstance(decoded, tuple(root_types)):
        expected_types = ", ".join([str(t) for t in root_types])
        raise TypeError(
            "(%s) root types expected, got %s instead"
            % (expected_types, type(decoded))
        )
    return decoded


def read_conf(fname) -> Dict:
    """Read a yaml config and convert to dict"""
    try:
        config_file = load_text_file(fname)
    except FileNotFoundError:
        return {}
    return load_yaml(config_file, default={})


def mergemanydict(sources: Sequence[Mapping], reverse=False) -> dict:
    """Merge multiple dicts, the first source taking precedence.

    Keys missing from the result are recursively added from each later
    source, but no value gets replaced once set. Functionally, this means
    that the highest priority source must be specified first.

    Example:
    mergemanydict([{"a": 1, "d": {"a": 1}}, {"a": 10, "d": {"f": 10}}])
    results in {"a": 1, "d": {"a": 1, "f": 10}}
    """
    if reverse:
        sources = list(reversed(sources))
    merged_cfg: dict = {}
    for cfg in sources:
        if cfg:
            merged_cfg = _merge_missing(merged_cfg, cfg)
    return merged_cfg


def _merge_missing(base: dict, extra: Mapping) -> dict:
    merged = dict(base)
    for key, value in extra.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(merged[key], dict) and isinstance(value, Mapping):
            merged[key] = _merge_missing(merged[key], value)
    return merged


def ensure_dir(path, mode=None):
    if not os.path.isdir(path):
        os.makedirs(path)
    if mode is not None:
        os.chmod(path, mode)


def write_file(
    filename,
    content,
    mode=0o644,
    omode="wb",
    *,
    ensure_dir_exists=True,
):
    """
    Writes a file with the given content and sets the file mode as specified.

    @param filename: The full path of the file to write.
    @param content: The content to write to the file.
    @param mode: The filesystem mode to set on the file.
    @param omode: The open mode used when opening the file (w, wb, a, etc.)
    @param ensure_dir_exists: If True (the default), ensure that the directory
                              containing `filename` exists before writing to
                              the file.
    """
    if ensure_dir_exists:
        ensure_dir(os.path.dirname(filename))
    if "b" in omode.lower():
        content = encode_text(content)
        write_type = "bytes"
    else:
        content = decode_binary(content)
        write_type = "characters"
    LOG.debug(
        "Writing to %s - %s: [%o] %s %s",
        filename,
        omode,
        mode,
        len(content),
        write_type,
    )
    with open(filename, omode) as fh:
        fh.write(content)
        fh.flush()
    os.chmod(filename, mode)


def target_path(target=None, path=None):
    # return 'path' inside target, accepting target as None
    if target in (None, ""):
        target = "/"
    elif not isinstance(target, str):
        raise ValueError("Unexpected input for target: %s" % target)
    else:
        target = os.path.abspath(target)
        # abspath("//") returns "//" specifically for 2 slashes.
        if target.startswith("//"):
            target = target[1:]

    if not path:
        return target

    # os.path.join("/etc", "/foo") returns "/foo". Chomp all leading /.
    while len(path) and path[0] == "/":
        path = path[1:]

    return os.path.join(target, path)
