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

"""Docker command line container engine."""

import logging
import tarfile
from pathlib import Path
from typing import List, Sequence

from craft_layer_cache.utils import os_utils

from .base import ContainerEngine

logger = logging.getLogger(__name__)

_MISSING_IMAGE = "<missing>"


class DockerEngine(ContainerEngine):
    """Export and import images using the docker command.

    :param docker: The docker executable.
    """

    def __init__(self, docker: str = "docker"):
        self._docker = docker

    def export(self, image_ids: Sequence[str], dest_dir: Path) -> None:
        """Save images and unpack the archive into a directory."""
        logger.debug("export %s to %s", list(image_ids), dest_dir)
        command = [self._docker, "save", *image_ids]
        with os_utils.process_stream(command, mode="r") as stream:
            with tarfile.open(fileobj=stream, mode="r|") as tar:
                tar.extractall(dest_dir, filter="tar")

    def load(self, src_dir: Path) -> None:
        """Pack a directory and load it as an image archive."""
        logger.debug("load images from %s", src_dir)
        with os_utils.process_stream([self._docker, "load"], mode="w") as stream:
            with tarfile.open(fileobj=stream, mode="w|") as tar:
                for path in sorted(src_dir.iterdir()):
                    tar.add(path, arcname=path.name)

    def history(self, image_id: str) -> List[str]:
        """List the identifiers of the images in the build history."""
        output = os_utils.process_output(
            [self._docker, "history", "-q", image_id]
        )
        return [
            line.strip()
            for line in output.splitlines()
            if line.strip() and line.strip() != _MISSING_IMAGE
        ]
