# -*- Mode:Python; indent-tabs-mode:nil; tab-width:4 -*-
#
# Copyright 2022 Canonical Ltd.
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU Lesser General Public
# License version 3 as published by the Free Software Foundation.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""Layer cache configuration."""

import os
from pathlib import Path
from typing import Any

import pydantic

from craft_layer_cache import errors

DEFAULT_CONCURRENCY = 4


def default_images_dir() -> Path:
    """Return the default root of the local working directories.

    This is ``.adlc`` next to the installed package. If the install
    location is not writable, as is usual for a system ``site-packages``,
    ``craft-layer-cache`` under the user cache directory is used instead
    (``$XDG_CACHE_HOME``, or ``~/.cache``).
    """
    install_root = Path(__file__).resolve().parent.parent
    if os.access(install_root, os.W_OK):
        return install_root / ".adlc"

    cache_home = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(cache_home) / "craft-layer-cache"


class LayerCacheConfig(pydantic.BaseModel):
    """Settings fixed for the lifetime of a layer cache.

    :param concurrency: The maximum number of cache service operations
        in flight.
    :param per_layer: Whether image layers are cached individually.
    :param images_dir: The root of the local working directories.
    """

    model_config = pydantic.ConfigDict(frozen=True, extra="forbid")

    concurrency: int = pydantic.Field(default=DEFAULT_CONCURRENCY, ge=1)
    per_layer: bool = True
    images_dir: Path = pydantic.Field(default_factory=default_images_dir)

    @classmethod
    def create(cls, **kwargs: Any) -> "LayerCacheConfig":
        """Create a validated configuration.

        :raises InvalidConfiguration: If a setting is not valid.
        """
        try:
            return cls(**kwargs)
        except pydantic.ValidationError as err:
            raise errors.InvalidConfiguration(_format_errors(err)) from err

    @property
    def unpacked_dir(self) -> Path:
        """The directory holding the unpacked image bundle."""
        return self.images_dir / "image"

    @property
    def layer_caches_dir(self) -> Path:
        """The directory holding one canonical archive per layer."""
        return self.images_dir / "image-layers"

    def layer_file(self, layer_id: str) -> Path:
        """Return the canonical archive location of the given layer."""
        return self.layer_caches_dir / layer_id / "layer.tar"


def _format_errors(err: pydantic.ValidationError) -> str:
    messages = []
    for error in err.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])

    return "; ".join(messages)
