# -*- coding: utf-8 -*-
"""
Thread names for display.

Thread objects come from the heap as plain field dictionaries. Field names
differ between runtimes ('_managedThreadId' vs 'm_ManagedThreadId', '_name'
vs 'm_Name'), so they are discovered by substring and cached per run.
"""
import sys
from typing import Dict, Iterable, Optional, Protocol, Sequence, Tuple

MANAGED_ID_FIELD = "managedThreadId"
NAME_FIELD = "name"


class ThreadNameResolver(Protocol):
    def get_thread_name(self, managed_id: int) -> Optional[str]:
        ...


class EmptyThreadRegistry:
    def get_thread_name(self, managed_id: int) -> Optional[str]:
        return None


class FieldNameCache:
    """Runtime specific field names, resolved once per (type, substring)."""

    def __init__(self):
        self._names: Dict[Tuple[str, str], str] = {}

    def resolve_field_name(self, type_key: str, field_names: Sequence[str], substring: str) -> str:
        key = (type_key, substring.lower())
        name = self._names.get(key)
        if name is None:
            needle = substring.lower()
            name = next((f for f in field_names if needle in f.lower()), None)
            if name is None:
                raise KeyError(f"no field matching '{substring}' on {type_key}: {', '.join(field_names)}")
            self._names[key] = name
        return name


class ThreadRegistry:
    def __init__(self, names: Dict[int, Optional[str]]):
        self._names = names

    def __len__(self):
        return len(self._names)

    def get_thread_name(self, managed_id: int) -> Optional[str]:
        return self._names.get(managed_id)

    @classmethod
    def from_thread_objects(cls, objects: Iterable[dict], field_cache: FieldNameCache,
                            live_ids: Optional[Iterable[int]] = None,
                            type_key: str = "System.Threading.Thread",
                            debug: bool = False) -> "ThreadRegistry":
        """Read (managed id, name) pairs from thread objects.

        Stops as soon as every id in live_ids has been seen.
        """
        wanted = set(live_ids) if live_ids is not None else None
        names: Dict[int, Optional[str]] = {}
        for obj in objects:
            fields = list(obj.keys())
            id_field = field_cache.resolve_field_name(type_key, fields, MANAGED_ID_FIELD)
            name_field = field_cache.resolve_field_name(type_key, fields, NAME_FIELD)
            names[int(obj[id_field])] = obj.get(name_field)
            if wanted is not None and wanted.issubset(names):
                break
        if debug:
            print(f"[debug] discovered names for {len(names)} threads", file=sys.stderr)
        return cls(names)
