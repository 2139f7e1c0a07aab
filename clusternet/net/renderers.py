# This file is part of clusternet. See LICENSE file for license information.

from typing import Tuple, Type

from clusternet.net import (
    RendererNotFoundError,
    declarative,
    networkd,
    renderer,
)

NAME_TO_RENDERER = {
    "declarative": declarative,
    "networkd": networkd,
}

DEFAULT_RENDERER = "networkd"


def select(name=None) -> Tuple[str, Type[renderer.Renderer]]:
    if name is None:
        name = DEFAULT_RENDERER
    try:
        render_mod = NAME_TO_RENDERER[name]
    except KeyError:
        raise RendererNotFoundError(
            "Unknown network renderer '%s'. Available renderers: %s"
            % (name, sorted(NAME_TO_RENDERER))
        ) from None
    return name, render_mod.Renderer
