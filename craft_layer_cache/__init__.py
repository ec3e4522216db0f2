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

"""Content-addressable layer cache for container images."""

__version__ = "0.1.0"

from . import errors  # noqa: F401
from .bundle import LayerEntry, LayerMap, load_layer_map  # noqa: F401
from .config import LayerCacheConfig  # noqa: F401
from .engines import ContainerEngine, DockerEngine  # noqa: F401
from .keys import format_key, layer_key, recover_template, root_key  # noqa: F401
from .layer_cache import LayerCache  # noqa: F401
from .pool import BoundedPool  # noqa: F401
from .services import CacheService, MessageMatchingCacheService  # noqa: F401
