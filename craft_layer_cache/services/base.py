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

"""Keyed blob cache service interface."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence


class CacheService(ABC):
    """Store and restore directory trees under string keys."""

    @abstractmethod
    def save(self, paths: Sequence[Path], key: str) -> int:
        """Store the given paths under a key.

        :param paths: The files or directories to store.
        :param key: The exact key of the new entry.

        :returns: The service identifier of the new entry.

        :raises KeyAlreadyExists: If an entry with the same key exists.
        """

    @abstractmethod
    def restore(
        self,
        paths: Sequence[Path],
        primary_key: str,
        restore_keys: Optional[List[str]] = None,
    ) -> Optional[str]:
        """Restore the given paths from the entry matching a key.

        The service may fall back to an entry matching one of the
        restore keys, in order, when the primary key has no exact match.

        :param paths: The files or directories to restore.
        :param primary_key: The preferred key.
        :param restore_keys: Fallback keys.

        :returns: The key of the matched entry, exactly as it was saved,
            or None if nothing matched.
        """
