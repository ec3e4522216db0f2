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

"""Correlation of image layer digests with exported layer archives."""

import dataclasses
import logging
from pathlib import Path
from typing import Dict, List, Tuple, Union

from craft_layer_cache import errors
from craft_layer_cache.config import DEFAULT_CONCURRENCY
from craft_layer_cache.pool import BoundedPool, gather

from .manifest import load_image_config, load_manifests

logger = logging.getLogger(__name__)


def layer_id_from_diff_id(diff_id: str) -> str:
    """Convert a layer digest to an identifier usable as a path component.

    :param diff_id: The digest in ``<algorithm>:<hex>`` form.
    """
    return diff_id.replace(":", "_")


@dataclasses.dataclass(frozen=True)
class LayerEntry:
    """A unique layer and the archive paths holding its content.

    :param id: The path-safe layer digest.
    :param paths: The bundle-relative archive paths with this content.
    """

    id: str
    paths: Tuple[str, ...]


LayerMap = List[LayerEntry]


def load_layer_map(
    bundle_dir: Union[str, Path], *, concurrency: int = DEFAULT_CONCURRENCY
) -> LayerMap:
    """Build the deduplicated layer map of an unpacked image bundle.

    :param bundle_dir: The directory containing the unpacked bundle.
    :param concurrency: The maximum number of configuration files read
        at once.

    :return: One entry per distinct layer digest.

    :raises MalformedInput: If a manifest or configuration file does not
        have the expected shape.
    """
    manifests = load_manifests(bundle_dir)

    with BoundedPool(concurrency) as pool:
        futures = [
            pool.submit(load_image_config, bundle_dir, manifest.config)
            for manifest in manifests
        ]
        configs = gather(futures)

    # dict keys keep path sets ordered and free of duplicates
    layer_paths: Dict[str, Dict[str, None]] = {}
    for manifest, config in zip(manifests, configs):
        diff_ids = config.rootfs.diff_ids
        if len(diff_ids) != len(manifest.layers):
            raise errors.MalformedInput(
                filename=manifest.config,
                message=(
                    f"{len(diff_ids)} layer digests for "
                    f"{len(manifest.layers)} layer archives"
                ),
            )

        for diff_id, layer_path in zip(diff_ids, manifest.layers):
            paths = layer_paths.setdefault(layer_id_from_diff_id(diff_id), {})
            paths[layer_path] = None

    layer_map = [
        LayerEntry(id=layer_id, paths=tuple(paths))
        for layer_id, paths in layer_paths.items()
    ]
    for entry in layer_map:
        logger.debug("layer %s: %s", entry.id, ", ".join(entry.paths))

    return layer_map
