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

import pytest

from craft_layer_cache import errors
from craft_layer_cache.bundle import LayerEntry, layer_id_from_diff_id, load_layer_map

from tests.conftest import make_bundle, write_files


def test_layer_id_from_diff_id():
    assert layer_id_from_diff_id("sha256:0123abcd") == "sha256_0123abcd"


class TestLoadLayerMap:
    def test_shared_layer(self, new_dir, shared_base_bundle):
        write_files(new_dir, shared_base_bundle)

        layer_map = load_layer_map(new_dir)

        assert sorted(layer_map, key=lambda e: e.id) == [
            LayerEntry(id="sha256_aaa", paths=("one/base/layer.tar", "two/base/layer.tar")),
            LayerEntry(id="sha256_bbb", paths=("one/top/layer.tar",)),
            LayerEntry(id="sha256_ccc", paths=("two/top/layer.tar",)),
        ]

    def test_no_duplicate_paths(self, new_dir):
        files = make_bundle(
            [
                ("img1.json", [("sha256:aaa", "base/layer.tar", b"base")]),
                (
                    "img2.json",
                    [
                        ("sha256:aaa", "base/layer.tar", b"base"),
                        ("sha256:bbb", "top/layer.tar", b"top"),
                    ],
                ),
            ]
        )
        write_files(new_dir, files)

        layer_map = load_layer_map(new_dir, concurrency=1)

        assert layer_map == [
            LayerEntry(id="sha256_aaa", paths=("base/layer.tar",)),
            LayerEntry(id="sha256_bbb", paths=("top/layer.tar",)),
        ]

    @pytest.mark.parametrize("concurrency", [1, 2, 8])
    def test_every_path_in_one_entry(self, new_dir, concurrency):
        images = []
        for image in range(5):
            layers = [
                (f"sha256:{layer % 3}{image % 2}", f"{image}-{layer}/layer.tar", b"x")
                for layer in range(4)
            ]
            images.append((f"img{image}.json", layers))
        write_files(new_dir, make_bundle(images))

        layer_map = load_layer_map(new_dir, concurrency=concurrency)

        all_paths = [path for entry in layer_map for path in entry.paths]
        assert len(all_paths) == 20
        assert len(set(all_paths)) == 20
        assert len({entry.id for entry in layer_map}) == len(layer_map)

    def test_empty_manifest(self, new_dir):
        write_files(new_dir, {"manifest.json": b"[]"})

        assert load_layer_map(new_dir) == []

    def test_layer_count_mismatch(self, new_dir):
        files = make_bundle([("img1.json", [("sha256:aaa", "a/layer.tar", b"a")])])
        files["img1.json"] = json.dumps(
            {"rootfs": {"diff_ids": ["sha256:aaa", "sha256:bbb"]}}
        ).encode()
        write_files(new_dir, files)

        with pytest.raises(errors.MalformedInput) as raised:
            load_layer_map(new_dir)

        assert raised.value.filename == "img1.json"

    def test_missing_diff_ids(self, new_dir):
        files = make_bundle([("img1.json", [("sha256:aaa", "a/layer.tar", b"a")])])
        files["img1.json"] = b'{"rootfs": {"type": "layers"}}'
        write_files(new_dir, files)

        with pytest.raises(errors.MalformedInput):
            load_layer_map(new_dir)
