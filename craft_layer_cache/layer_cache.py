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

"""Store and restore container images as individually cached layers."""

import functools
import logging
import os
import shutil
from concurrent.futures import as_completed
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from craft_layer_cache import errors, keys
from craft_layer_cache.bundle import (
    LayerEntry,
    LayerMap,
    get_manifest_hash,
    load_layer_map,
)
from craft_layer_cache.config import DEFAULT_CONCURRENCY, LayerCacheConfig
from craft_layer_cache.engines import ContainerEngine, DockerEngine
from craft_layer_cache.pool import BoundedPool, TaskSkipped, drain, gather
from craft_layer_cache.services import CacheService

logger = logging.getLogger(__name__)


class LayerCache:
    """Cache the layers of a set of images independently.

    The exported image bundle is stored as a metadata-only root entry,
    and each distinct layer archive as an entry of its own, so unchanged
    layers are shared between cache entries.

    :param image_ids: The images to store.
    :param cache_service: The keyed cache service holding the entries.
    :param engine: The container engine to export and import images.
    :param concurrency: The maximum number of cache operations in flight.
    :param per_layer: Whether layers are cached individually, or kept in
        the root entry.
    :param images_dir: The root of the local working directories.
    """

    def __init__(
        self,
        image_ids: Iterable[str],
        *,
        cache_service: CacheService,
        engine: Optional[ContainerEngine] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        per_layer: bool = True,
        images_dir: Optional[Union[str, Path]] = None,
    ):
        settings = {"concurrency": concurrency, "per_layer": per_layer}
        if images_dir is not None:
            settings["images_dir"] = images_dir

        self._config = LayerCacheConfig.create(**settings)
        self._image_ids = list(image_ids)
        self._cache = cache_service
        self._engine = engine or DockerEngine()

    @property
    def config(self) -> LayerCacheConfig:
        """The layer cache settings."""
        return self._config

    @property
    def image_ids(self) -> List[str]:
        """The images to store."""
        return list(self._image_ids)

    @property
    def unpacked_dir(self) -> Path:
        """The directory holding the unpacked image bundle."""
        return self._config.unpacked_dir

    @property
    def layer_caches_dir(self) -> Path:
        """The directory holding the separated layer archives."""
        return self._config.layer_caches_dir

    def store(self, key: str) -> bool:
        """Export the images and store them in the cache service.

        If the root entry already exists the layers are assumed to be
        stored too, and nothing else is done.

        :param key: The key template, with a ``{hash}`` placeholder.

        :return: Whether a new root entry was stored.

        :raises InvalidTemplate: If the key is not a valid template.
        """
        keys.format_key(key, "")

        self._export_images()

        layer_map = load_layer_map(
            self.unpacked_dir, concurrency=self._config.concurrency
        )
        if self._config.per_layer:
            self._separate_layers(layer_map)
            _log_tree(self.unpacked_dir)

        if self._store_root(key) is None:
            logger.info("Cache key already exists, aborting.")
            return False

        if self._config.per_layer:
            self._store_layers(key, layer_map)

        return True

    def restore(
        self, primary_key: str, restore_keys: Optional[List[str]] = None
    ) -> Optional[str]:
        """Restore the images from the cache service.

        :param primary_key: The preferred root key.
        :param restore_keys: Fallback root keys or key prefixes.

        :return: The root key that matched, or None if the root entry or
            any of its layers could not be found.

        :raises TemplateRecoveryFailed: If the matched root key was not
            derived from the restored manifest.
        """
        matched_key = self._restore_root(primary_key, restore_keys)
        if matched_key is None:
            logger.info("Root cache could not be found, aborting.")
            return None

        if self._config.per_layer:
            layer_map = load_layer_map(
                self.unpacked_dir, concurrency=self._config.concurrency
            )
            template = keys.recover_template(
                matched_key, get_manifest_hash(self.unpacked_dir)
            )
            if not self._restore_layers(template, layer_map):
                logger.info("Some layer cache could not be found, aborting.")
                return None

            self._join_layers(layer_map)
            _log_tree(self.unpacked_dir)

        self._engine.load(self.unpacked_dir)
        return matched_key

    def clean_up(self) -> None:
        """Remove the local working directories."""
        images_dir = self._config.images_dir
        if images_dir.exists():
            logger.debug("remove %s", images_dir)
            shutil.rmtree(images_dir)

    def _export_images(self) -> None:
        for directory in (self.unpacked_dir, self.layer_caches_dir):
            if directory.exists():
                shutil.rmtree(directory)
        self.unpacked_dir.mkdir(parents=True)

        image_ids = self._images_with_history()
        logger.info("Saving %s", image_ids)
        self._engine.export(image_ids, self.unpacked_dir)
        _log_tree(self.unpacked_dir)

    def _images_with_history(self) -> List[str]:
        # intermediate images may share layers with other images
        image_ids: Dict[str, None] = {}
        for image_id in self._image_ids:
            image_ids[image_id] = None
            for ancestor_id in self._engine.history(image_id):
                image_ids[ancestor_id] = None

        return list(image_ids)

    def _separate_layers(self, layer_map: LayerMap) -> None:
        for entry in layer_map:
            sources = [self.unpacked_dir / path for path in entry.paths]
            source = Path(os.path.realpath(sources[0]))
            dest = self._config.layer_file(entry.id)
            logger.debug("move layer archive %s to %s", source, dest)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(source, dest)

            for duplicate in sources[1:]:
                logger.debug("delete duplicate layer archive %s", duplicate)
                duplicate.unlink(missing_ok=True)

    def _join_layers(self, layer_map: LayerMap) -> None:
        for entry in layer_map:
            source = self._config.layer_file(entry.id)
            targets = [self.unpacked_dir / path for path in entry.paths]
            logger.debug("move layer archive %s to %s", source, targets[0])
            targets[0].parent.mkdir(parents=True, exist_ok=True)
            shutil.move(source, targets[0])

            for target in targets[1:]:
                logger.debug("copy layer archive %s to %s", targets[0], target)
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(targets[0], target)

    def _store_root(self, template: str) -> Optional[int]:
        key = keys.root_key(template, get_manifest_hash(self.unpacked_dir))
        logger.info(
            "Start storing root cache, key: %s, dir: %s", key, self.unpacked_dir
        )
        try:
            cache_id = self._cache.save([self.unpacked_dir], key)
        except errors.KeyAlreadyExists as err:
            logger.info("%s", err)
            return None

        logger.info("Stored root cache, key: %s, id: %s", key, cache_id)
        return cache_id

    def _store_layers(self, template: str, layer_map: LayerMap) -> List[Optional[int]]:
        store = functools.partial(self._store_single_layer, template)
        with BoundedPool(self._config.concurrency) as pool:
            return gather(pool.map(store, layer_map))

    def _store_single_layer(self, template: str, entry: LayerEntry) -> Optional[int]:
        key = keys.layer_key(template, entry.id)
        path = self._config.layer_file(entry.id)
        logger.info("Start storing layer cache, layer: %s, key: %s", entry.id, key)
        try:
            cache_id = self._cache.save([path], key)
        except errors.KeyAlreadyExists as err:
            logger.info("%s", err)
            return None

        logger.info("Stored layer cache, key: %s, id: %s", key, cache_id)
        return cache_id

    def _restore_root(
        self, primary_key: str, restore_keys: Optional[List[str]]
    ) -> Optional[str]:
        logger.debug(
            "restore root cache: primary=%r, fallbacks=%r, dir=%s",
            primary_key,
            restore_keys,
            self.unpacked_dir,
        )
        self.unpacked_dir.mkdir(parents=True, exist_ok=True)
        matched_key = self._cache.restore([self.unpacked_dir], primary_key, restore_keys)
        logger.debug("restored root key: %r", matched_key)
        if matched_key is not None:
            _log_tree(self.unpacked_dir)

        return matched_key

    def _restore_layers(self, template: str, layer_map: LayerMap) -> bool:
        restore = functools.partial(self._restore_single_layer, template)
        pool = BoundedPool(
            self._config.concurrency,
            stop_on=lambda exc: not isinstance(exc, errors.LayerNotFound),
        )
        with pool:
            futures = pool.map(restore, layer_map)
            for future in as_completed(futures):
                exc = future.exception()
                if isinstance(exc, errors.LayerNotFound):
                    logger.info("%s", exc)
                    # let in-flight restores finish before reporting the miss
                    drain(futures)
                    return False
                if exc is not None and not isinstance(exc, TaskSkipped):
                    raise exc

        return True

    def _restore_single_layer(self, template: str, entry: LayerEntry) -> str:
        key = keys.layer_key(template, entry.id)
        path = self._config.layer_file(entry.id)
        logger.debug("restore layer cache: layer=%s, path=%s, key=%r", entry.id, path, key)
        path.parent.mkdir(parents=True, exist_ok=True)

        matched_key = self._cache.restore([path], key)
        if matched_key is None:
            raise errors.LayerNotFound(layer_id=entry.id, key=key)

        return matched_key


def _log_tree(directory: Path) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return

    logger.debug("listing %s", directory)
    for path in sorted(directory.rglob("*")):
        if path.is_file() and not path.is_symlink():
            logger.debug("  %s (%d bytes)", path.relative_to(directory), path.stat().st_size)
        else:
            logger.debug("  %s", path.relative_to(directory))
