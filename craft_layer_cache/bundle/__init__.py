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

"""Exported image bundle handling."""

from .layer_map import LayerEntry  # noqa: F401
from .layer_map import LayerMap  # noqa: F401
from .layer_map import layer_id_from_diff_id  # noqa: F401
from .layer_map import load_layer_map  # noqa: F401
from .manifest import ImageConfig  # noqa: F401
from .manifest import Manifest  # noqa: F401
from .manifest import get_manifest_hash  # noqa: F401
from .manifest import load_manifests  # noqa: F401
