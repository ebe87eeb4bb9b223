"""Human-editable YAML encoding of metadata values.

Standard YAML tags carry nulls, booleans, integers, strings, timestamps,
binary data, sequences and mappings.  Decimals use ``!!float`` with their
exact text (always read back as ``Decimal``, never as binary floats), and
hashes and GUIDs use the local ``!hash`` and ``!guid`` tags::

    filename: report.pdf
    pages: 12
    ratio: 0.75
    source: !hash 8d5f3c77e94a0cad3a32340d342135f43dbb7cbb
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

import yaml

from revstore.codec.json_codec import CodecError
from revstore.models.keys import Guid, Hash
from revstore.models.value import Value

HASH_TAG = "!hash"
GUID_TAG = "!guid"
FLOAT_TAG = "tag:yaml.org,2002:float"


class _Dumper(yaml.SafeDumper):
    pass


class _Loader(yaml.SafeLoader):
    pass


def _represent_decimal(dumper: yaml.SafeDumper, value: Decimal) -> yaml.ScalarNode:
    return dumper.represent_scalar(FLOAT_TAG, str(value))


_Dumper.add_representer(Decimal, _represent_decimal)
_Dumper.add_representer(Hash, lambda d, v: d.represent_scalar(HASH_TAG, v.hex()))
_Dumper.add_representer(Guid, lambda d, v: d.represent_scalar(GUID_TAG, v.hex()))


def _construct_decimal(loader: yaml.SafeLoader, node: yaml.Node) -> Decimal:
    text = loader.construct_scalar(node).replace("_", "")
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise CodecError(f"Invalid decimal: {text!r}") from exc


_Loader.add_constructor(FLOAT_TAG, _construct_decimal)
_Loader.add_constructor(HASH_TAG, lambda loader, node: Hash.from_hex(loader.construct_scalar(node)))
_Loader.add_constructor(GUID_TAG, lambda loader, node: Guid.from_hex(loader.construct_scalar(node)))


def dump_value(value: Value) -> str:
    return yaml.dump(
        value.to_python(),
        Dumper=_Dumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def load_value(text: str) -> Value:
    try:
        return Value.of(yaml.load(text, Loader=_Loader))
    except CodecError:
        raise
    except (yaml.YAMLError, TypeError, ValueError) as exc:
        raise CodecError(f"Invalid YAML value: {exc}") from exc


def dump_metadata(metadata: Mapping[str, Value]) -> str:
    """Serialize a metadata map; an empty map gives ``{}``."""
    return dump_value(Value.of(dict(metadata)))


def load_metadata(text: str) -> dict[str, Value]:
    """Parse a YAML mapping into metadata.  Empty input gives ``{}``."""
    value = load_value(text)
    if value.is_null():
        return {}
    try:
        return value.as_map()
    except TypeError as exc:
        raise CodecError("Metadata document must be a mapping") from exc

