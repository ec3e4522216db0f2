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

"""Image bundle manifest and configuration loading."""

import hashlib
import logging
import os
import posixpath
from pathlib import Path
from typing import List, Optional, Union

import pydantic

from craft_layer_cache import errors

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"


class _BaseModel(pydantic.BaseModel):
    """Exported bundle metadata baseline."""

    model_config = pydantic.ConfigDict(
        extra="allow", frozen=True, populate_by_name=True
    )


def _native_path(path: str) -> str:
    return path.replace(posixpath.sep, os.sep)


class Manifest(_BaseModel):
    """An entry of the bundle manifest, one per exported image."""

    config: str = pydantic.Field(
        validation_alias=pydantic.AliasChoices("Config", "config")
    )
    repo_tags: Optional[List[str]] = pydantic.Field(
        default=None, validation_alias=pydantic.AliasChoices("RepoTags", "repoTags")
    )
    layers: List[str] = pydantic.Field(
        validation_alias=pydantic.AliasChoices("Layers", "layers")
    )

    @pydantic.field_validator("config")
    @classmethod
    def _native_config_path(cls, value: str) -> str:
        return _native_path(value)

    @pydantic.field_validator("layers")
    @classmethod
    def _native_layer_paths(cls, value: List[str]) -> List[str]:
        return [_native_path(layer) for layer in value]


class RootFS(_BaseModel):
    """The root filesystem description of an image."""

    diff_ids: List[str] = pydantic.Field(
        validation_alias=pydantic.AliasChoices("diff_ids", "diffIds")
    )


class ImageConfig(_BaseModel):
    """The parts of an image configuration needed to map its layers."""

    rootfs: RootFS


_manifest_list = pydantic.TypeAdapter(List[Manifest])


def load_raw_manifest(bundle_dir: Union[str, Path]) -> bytes:
    """Read the unparsed bundle manifest."""
    return Path(bundle_dir, MANIFEST_FILE).read_bytes()


def load_manifests(bundle_dir: Union[str, Path]) -> List[Manifest]:
    """Load the manifest entries of an unpacked image bundle.

    Layer and configuration paths are converted to the native path
    separator.

    :param bundle_dir: The directory containing the unpacked bundle.

    :return: The list of manifest entries.

    :raises MalformedInput: If the manifest does not have the expected shape.
    """
    raw = load_raw_manifest(bundle_dir)
    try:
        manifests = _manifest_list.validate_json(raw)
    except pydantic.ValidationError as err:
        raise errors.MalformedInput(filename=MANIFEST_FILE, message=str(err)) from err

    logger.debug("loaded %d manifest entries from %s", len(manifests), bundle_dir)
    return manifests


def load_image_config(bundle_dir: Union[str, Path], config_path: str) -> ImageConfig:
    """Load an image configuration file referenced by a manifest entry.

    :param bundle_dir: The directory containing the unpacked bundle.
    :param config_path: The configuration path relative to the bundle.

    :raises MalformedInput: If the configuration does not have the
        expected shape.
    """
    raw = Path(bundle_dir, config_path).read_bytes()
    try:
        return ImageConfig.model_validate_json(raw)
    except pydantic.ValidationError as err:
        raise errors.MalformedInput(filename=config_path, message=str(err)) from err


def get_manifest_hash(bundle_dir: Union[str, Path]) -> str:
    """Obtain the content fingerprint of the bundle manifest.

    :param bundle_dir: The directory containing the unpacked bundle.

    :return: The hex SHA-256 digest of the raw manifest file.
    """
    return hashlib.sha256(load_raw_manifest(bundle_dir)).hexdigest()
