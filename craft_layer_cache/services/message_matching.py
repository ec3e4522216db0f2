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

"""Adapter for cache clients reporting conditions only as messages."""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from craft_layer_cache import errors

from .base import CacheService

logger = logging.getLogger(__name__)

ERROR_CACHE_ALREADY_EXISTS = "Unable to reserve cache with key"


class MessageMatchingCacheService(CacheService):
    """Translate message-only client errors into cache service errors.

    Some cache clients raise a generic error when a key is already
    reserved, distinguishable only by its message. This adapter keeps that
    message contract in one place and raises ``KeyAlreadyExists`` instead.

    :param client: An object providing ``save`` and ``restore`` with the
        same signatures as :class:`CacheService`.
    :param already_exists_message: The message fragment identifying an
        already reserved key.
    """

    def __init__(
        self, client, *, already_exists_message: str = ERROR_CACHE_ALREADY_EXISTS
    ):
        self._client = client
        self._already_exists_message = already_exists_message

    def save(self, paths: Sequence[Path], key: str) -> int:
        """Store the given paths under a key, see :meth:`CacheService.save`."""
        try:
            return self._client.save(paths, key)
        except errors.KeyAlreadyExists:
            raise
        except Exception as err:
            if self._already_exists_message not in str(err):
                raise
            logger.debug("client reported existing key %r: %s", key, err)
            raise errors.KeyAlreadyExists(key) from err

    def restore(
        self,
        paths: Sequence[Path],
        primary_key: str,
        restore_keys: Optional[List[str]] = None,
    ) -> Optional[str]:
        """Restore the given paths, see :meth:`CacheService.restore`."""
        return self._client.restore(paths, primary_key, restore_keys)
