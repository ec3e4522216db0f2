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

"""Container engine interface."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence


class ContainerEngine(ABC):
    """Image export and import operations of a container engine."""

    @abstractmethod
    def export(self, image_ids: Sequence[str], dest_dir: Path) -> None:
        """Export images as an unpacked bundle.

        :param image_ids: The images to export.
        :param dest_dir: The existing directory to unpack the bundle into.

        :raises ContainerEngineError: If the export fails.
        """

    @abstractmethod
    def load(self, src_dir: Path) -> None:
        """Import the images of an unpacked bundle.

        :param src_dir: The directory containing the unpacked bundle.

        :raises ContainerEngineError: If the import fails.
        """

    @abstractmethod
    def history(self, image_id: str) -> List[str]:
        """Obtain the identifiers of the images an image was built from.

        :param image_id: The image to inspect.

        :returns: The ancestor image identifiers, newest first. Layers
            without a local image are omitted.

        :raises ContainerEngineError: If the inspection fails.
        """
