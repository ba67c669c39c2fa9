"""
Manifest Serializer
===================

Writes a manifest tree back out as a manifest.js assignment statement.
"""

import json
import re

from .model import Manifest


SURROGATE_PATTERN = re.compile("[\ud800-\udfff]")


class SerializationError(Exception):
    """Raised when a manifest tree holds values that cannot be written."""
    pass


def serialize_manifest(manifest: Manifest) -> str:
    """
    Serialize a manifest to script text.

    Output is `<variable> = <object literal>;` with 2-space indentation.
    Unicode is written as-is except for unpaired surrogates, which are
    written as escapes. `</` is escaped so the statement can be inlined in
    a script element. NaN and Infinity are written as the
    script identifiers of the same name.

    Args:
        manifest: Manifest to serialize

    Returns:
        manifest.js text ending with a newline
    """
    try:
        literal = json.dumps(manifest.root, indent=2, ensure_ascii=False, allow_nan=True)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Manifest cannot be serialized: {e}")

    literal = literal.replace("</", "<\\/")
    literal = SURROGATE_PATTERN.sub(lambda m: f"\\u{ord(m.group(0)):04x}", literal)
    return f"{manifest.variable} = {literal};\n"
