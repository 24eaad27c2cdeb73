# -*- coding: utf-8 -*-
"""
Runtime primitive type names -> source-level aliases ('System.Int32' -> 'int').
"""
from typing import Optional

SYSTEM_PREFIX = "System."

# keys are lower-cased; lookup is case-insensitive
PREDEFINED_TYPES = {
    "object": "object",
    "boolean": "bool",
    "char": "char",
    "sbyte": "sbyte",
    "byte": "byte",
    "int16": "short",
    "uint16": "ushort",
    "int32": "int",
    "uint32": "uint",
    "int64": "long",
    "uint64": "ulong",
    "single": "float",
    "double": "double",
    "decimal": "decimal",
    "string": "string",
}

_MAX_KEY_LEN = len(SYSTEM_PREFIX) + max(len(k) for k in PREDEFINED_TYPES)


def try_simplify(type_name: str) -> Optional[str]:
    """Return the alias for a primitive type name (bare or 'System.'-prefixed), or None."""
    if len(type_name) > _MAX_KEY_LEN:
        return None
    if type_name[:len(SYSTEM_PREFIX)].lower() == SYSTEM_PREFIX.lower():
        type_name = type_name[len(SYSTEM_PREFIX):]
    return PREDEFINED_TYPES.get(type_name.lower())
