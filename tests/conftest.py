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

import json
import shutil
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from craft_layer_cache import errors
from craft_layer_cache.engines import ContainerEngine
from craft_layer_cache.services import CacheService


@pytest.fixture
def new_dir(tmp_path, monkeypatch):
    """Change to a new temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def make_bundle(images: List[Tuple[str, List[Tuple[str, str, bytes]]]]) -> Dict[str, bytes]:
    """Create the files of an exported image bundle.

    :param images: For each image, its configuration file name and its
        layers as (diff_id, archive path, content) tuples.
    """
    files: Dict[str, bytes] = {}
    manifest = []
    for config_name, layers in images:
        config = {"rootfs": {"type": "layers", "diff_ids": [d for d, _, _ in layers]}}
        files[config_name] = json.dumps(config).encode()
        manifest.append(
            {
                "Config": config_name,
                "RepoTags": [config_name.split(".")[0] + ":latest"],
                "Layers": [p for _, p, _ in layers],
            }
        )
        for _, path, content in layers:
            files[path] = content

    files["manifest.json"] = json.dumps(manifest).encode()
    return files


def write_files(root: Path, files: Dict[str, bytes]) -> None:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


def read_files(root: Path) -> Dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in root.rglob("*")
        if path.is_file()
    }


class FakeEngine(ContainerEngine):
    """A container engine exporting a prepared bundle."""

    def __init__(self, files: Dict[str, bytes], ancestors: Optional[Dict[str, List[str]]] = None):
        self.files = files
        self.ancestors = ancestors or {}
        self.exported: List[List[str]] = []
        self.loaded: List[Dict[str, bytes]] = []

    def export(self, image_ids: Sequence[str], dest_dir: Path) -> None:
        self.exported.append(list(image_ids))
        write_files(dest_dir, self.files)

    def load(self, src_dir: Path) -> None:
        self.loaded.append(read_files(src_dir))

    def history(self, image_id: str) -> List[str]:
        return self.ancestors.get(image_id, [])


class FakeCacheService(CacheService):
    """A cache service keeping entries in a local directory."""

    def __init__(self, storage_dir: Path):
        self.storage_dir = storage_dir
        self.entries: Dict[str, Path] = {}
        self.saved_keys: List[str] = []
        self.restored_keys: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.delays: Dict[str, float] = {}

    def save(self, paths: Sequence[Path], key: str) -> int:
        if key in self.failures:
            raise self.failures[key]
        if key in self.entries:
            raise errors.KeyAlreadyExists(key)

        entry_dir = self.storage_dir / str(len(self.saved_keys))
        for index, path in enumerate(paths):
            dest = entry_dir / str(index)
            if Path(path).is_dir():
                shutil.copytree(path, dest, symlinks=True)
            else:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(path, dest)

        self.entries[key] = entry_dir
        self.saved_keys.append(key)
        return len(self.saved_keys)

    def restore(
        self,
        paths: Sequence[Path],
        primary_key: str,
        restore_keys: Optional[List[str]] = None,
    ) -> Optional[str]:
        time.sleep(self.delays.get(primary_key, 0))
        if primary_key in self.failures:
            raise self.failures[primary_key]

        matched = self._match(primary_key, restore_keys or [])
        if matched is None:
            return None

        entry_dir = self.entries[matched]
        for index, path in enumerate(paths):
            source = entry_dir / str(index)
            if source.is_dir():
                shutil.copytree(source, path, symlinks=True, dirs_exist_ok=True)
            else:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, path)

        self.restored_keys.append(matched)
        return matched

    def evict(self, key: str) -> None:
        del self.entries[key]

    def _match(self, primary_key: str, restore_keys: List[str]) -> Optional[str]:
        if primary_key in self.entries:
            return primary_key

        for prefix in restore_keys:
            candidates = [k for k in self.saved_keys if k in self.entries and k.startswith(prefix)]
            if candidates:
                return candidates[-1]

        return None


@pytest.fixture
def cache_service(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return FakeCacheService(storage_dir)


@pytest.fixture
def shared_base_bundle() -> Dict[str, bytes]:
    """Two images sharing a base layer archived once per image."""
    return make_bundle(
        [
            (
                "img1.json",
                [
                    ("sha256:aaa", "one/base/layer.tar", b"base layer"),
                    ("sha256:bbb", "one/top/layer.tar", b"first top layer"),
                ],
            ),
            (
                "img2.json",
                [
                    ("sha256:aaa", "two/base/layer.tar", b"base layer"),
                    ("sha256:ccc", "two/top/layer.tar", b"second top layer"),
                ],
            ),
        ]
    )
