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

"""Cache key derivation.

Keys are derived from a template holding a single ``{hash}`` placeholder.
The root bundle entry is stored under the template formatted with the
manifest hash plus a ``-root`` suffix, and each layer under the template
formatted with the layer identifier plus a ``layer-`` prefix.

On restore the cache service may match a fallback key, so layer keys are
derived from the template recovered from the key that actually matched.
"""

import logging
import string
from typing import List

from craft_layer_cache import errors

logger = logging.getLogger(__name__)

HASH_FIELD = "hash"
PLACEHOLDER = "{" + HASH_FIELD + "}"
ROOT_SUFFIX = "-root"
LAYER_PREFIX = "layer-"


def _replacement_fields(template: str) -> List[str]:
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as err:
        raise errors.InvalidTemplate(template=template, message=str(err)) from err

    fields = []
    for _, field_name, format_spec, conversion in parsed:
        if field_name is None:
            continue
        if format_spec or conversion:
            raise errors.InvalidTemplate(
                template=template,
                message=f"unsupported format in field {field_name!r}",
            )
        fields.append(field_name)

    return fields


def format_key(template: str, hash_value: str) -> str:
    """Substitute the hash placeholder of a key template.

    :param template: A template containing exactly one ``{hash}`` field.
    :param hash_value: The value to substitute.

    :return: The concrete key.

    :raises InvalidTemplate: If the template does not contain exactly one
        ``{hash}`` field, or contains other fields.
    """
    fields = _replacement_fields(template)
    unknown = [field for field in fields if field != HASH_FIELD]
    if unknown:
        raise errors.InvalidTemplate(
            template=template, message=f"unknown fields {unknown!r}"
        )
    if len(fields) != 1:
        raise errors.InvalidTemplate(
            template=template,
            message=f"expected one {PLACEHOLDER} field, found {len(fields)}",
        )

    return template.format(**{HASH_FIELD: hash_value})


def root_key(template: str, manifest_hash: str) -> str:
    """Derive the key of the root bundle entry."""
    key = format_key(template, manifest_hash) + ROOT_SUFFIX
    logger.debug("root key: template=%r, hash=%s, key=%r", template, manifest_hash, key)
    return key


def layer_key(template: str, layer_id: str) -> str:
    """Derive the key of a single layer entry."""
    key = LAYER_PREFIX + format_key(template, layer_id)
    logger.debug("layer key: template=%r, id=%s, key=%r", template, layer_id, key)
    return key


def recover_template(matched_root_key: str, manifest_hash: str) -> str:
    """Recover the template a root key was derived from.

    :param matched_root_key: The root key returned by the cache service.
    :param manifest_hash: The hash of the restored manifest.

    :return: The template that formats back to the given root key.

    :raises TemplateRecoveryFailed: If the manifest hash is not part of
        the key.
    """
    if not manifest_hash or manifest_hash not in matched_root_key:
        raise errors.TemplateRecoveryFailed(
            key=matched_root_key, manifest_hash=manifest_hash
        )

    escaped = matched_root_key.replace("{", "{{").replace("}", "}}")
    template = escaped.replace(manifest_hash, PLACEHOLDER, 1)
    if template.endswith(ROOT_SUFFIX):
        template = template[: -len(ROOT_SUFFIX)]

    logger.debug("recovered template %r from key %r", template, matched_root_key)
    return template
