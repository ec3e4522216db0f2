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

"""Layer cache error definitions."""

import dataclasses
from typing import List, Optional


@dataclasses.dataclass(repr=True)
class LayerCacheError(Exception):
    """Unexpected error.

    :param brief: Brief description of error.
    :param details: Detailed information.
    :param resolution: Recommendation, if any.
    """

    brief: str
    details: Optional[str] = None
    resolution: Optional[str] = None

    def __str__(self) -> str:
        components = [self.brief]

        if self.details:
            components.append(self.details)

        if self.resolution:
            components.append(self.resolution)

        return "\n".join(components)


class MalformedInput(LayerCacheError):
    """An exported bundle file does not have the expected shape.

    :param filename: The name of the offending file.
    :param message: A description of the problem.
    """

    def __init__(self, *, filename: str, message: str):
        self.filename = filename
        self.message = message
        brief = f"Malformed image bundle file {filename!r}."
        details = message
        resolution = "Make sure the bundle was produced by a compatible container engine."

        super().__init__(brief=brief, details=details, resolution=resolution)


class KeyAlreadyExists(LayerCacheError):
    """The cache service already holds an entry with the given key.

    :param key: The key that could not be reserved.
    """

    def __init__(self, key: str):
        self.key = key
        brief = f"Cache entry with key {key!r} already exists."

        super().__init__(brief=brief)


class LayerNotFound(LayerCacheError):
    """A layer could not be restored from the cache service.

    :param layer_id: The identifier of the missing layer.
    :param key: The key used to restore the layer.
    """

    def __init__(self, *, layer_id: str, key: str):
        self.layer_id = layer_id
        self.key = key
        brief = f"Layer cache not found: layer {layer_id!r}, key {key!r}."

        super().__init__(brief=brief)


class InvalidTemplate(LayerCacheError):
    """A cache key template cannot be used to derive keys.

    :param template: The offending template.
    :param message: A description of the problem.
    """

    def __init__(self, *, template: str, message: str):
        self.template = template
        self.message = message
        brief = f"Invalid cache key template {template!r}: {message}."
        resolution = "Use a key containing exactly one '{hash}' placeholder."

        super().__init__(brief=brief, resolution=resolution)


class TemplateRecoveryFailed(LayerCacheError):
    """The key template cannot be recovered from a restored root key.

    :param key: The root key returned by the cache service.
    :param manifest_hash: The hash of the restored manifest.
    """

    def __init__(self, *, key: str, manifest_hash: str):
        self.key = key
        self.manifest_hash = manifest_hash
        brief = f"Cannot recover key template from restored key {key!r}."
        details = f"Manifest hash {manifest_hash!r} is not part of the key."
        resolution = "The cache entry was not created by a compatible layer cache."

        super().__init__(brief=brief, details=details, resolution=resolution)


class InvalidConfiguration(LayerCacheError):
    """The layer cache configuration is not valid.

    :param message: A description of the problem.
    """

    def __init__(self, message: str):
        self.message = message
        brief = f"Invalid layer cache configuration: {message}"

        super().__init__(brief=brief)


class ContainerEngineError(LayerCacheError):
    """A container engine command failed.

    :param command: The command that was executed.
    :param exit_code: The command exit code.
    :param stderr: The command error output, if captured.
    """

    def __init__(
        self, *, command: List[str], exit_code: int, stderr: Optional[str] = None
    ):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        brief = f"Command {' '.join(command)!r} failed with exit code {exit_code}."
        details = stderr.strip() if stderr else None

        super().__init__(brief=brief, details=details)
