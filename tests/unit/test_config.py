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

from pathlib import Path

import pytest

from craft_layer_cache import config as config_module
from craft_layer_cache import errors
from craft_layer_cache.config import LayerCacheConfig, default_images_dir


class TestLayerCacheConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.setattr(config_module.os, "access", lambda path, mode: True)

        config = LayerCacheConfig.create()

        assert config.concurrency == 4
        assert config.per_layer is True
        assert config.images_dir.name == ".adlc"
        assert config.images_dir.parent.joinpath("craft_layer_cache").is_dir()

    def test_read_only_install(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config_module.os, "access", lambda path, mode: False)
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))

        assert default_images_dir() == tmp_path / "craft-layer-cache"
        assert LayerCacheConfig.create().images_dir == tmp_path / "craft-layer-cache"

    def test_read_only_install_home_cache(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config_module.os, "access", lambda path, mode: False)
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))

        assert default_images_dir() == tmp_path / ".cache" / "craft-layer-cache"

    def test_locations(self):
        config = LayerCacheConfig.create(images_dir="/work")

        assert config.unpacked_dir == Path("/work/image")
        assert config.layer_caches_dir == Path("/work/image-layers")
        assert config.layer_file("sha256_aaa") == Path("/work/image-layers/sha256_aaa/layer.tar")

    @pytest.mark.parametrize(
        "settings",
        [{"concurrency": 0}, {"concurrency": "many"}, {"unknown": True}],
    )
    def test_invalid(self, settings):
        with pytest.raises(errors.InvalidConfiguration):
            LayerCacheConfig.create(**settings)

    def test_frozen(self):
        config = LayerCacheConfig.create()

        with pytest.raises(Exception):
            config.concurrency = 2  # type: ignore


class TestErrors:
    def test_str(self):
        err = errors.TemplateRecoveryFailed(key="other-root", manifest_hash="abc")

        assert str(err) == (
            "Cannot recover key template from restored key 'other-root'.\n"
            "Manifest hash 'abc' is not part of the key.\n"
            "The cache entry was not created by a compatible layer cache."
        )

    def test_layer_not_found(self):
        err = errors.LayerNotFound(layer_id="sha256_aaa", key="layer-os-sha256_aaa-v1")

        assert err.brief == (
            "Layer cache not found: layer 'sha256_aaa', key 'layer-os-sha256_aaa-v1'."
        )
        assert err.details is None

    def test_container_engine_error(self):
        err = errors.ContainerEngineError(
            command=["docker", "load"], exit_code=1, stderr="no space left\n"
        )

        assert str(err) == "Command 'docker load' failed with exit code 1.\nno space left"
