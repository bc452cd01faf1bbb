"""Case-insensitive tag value remapping table."""

from __future__ import annotations

from collections.abc import Iterable, Mapping


def get_case_insensitive(mapping: Mapping[str, str], key: str) -> str | None:
    """Look up ``key`` ignoring case; an exact match wins over a folded one."""
    if key in mapping:
        return mapping[key]
    folded = key.casefold()
    for candidate, value in mapping.items():
        if candidate.casefold() == folded:
            return value
    return None


class TagMap:
    """Field name -> (old value -> new value), case-insensitive on both levels."""

    def __init__(self, mapping: Mapping[str, Mapping[str, str]] | None = None):
        self._fields: dict[str, dict[str, str]] = {}
        for field_name, values in (mapping or {}).items():
            submap = self._fields.setdefault(field_name.casefold(), {})
            for old, new in values.items():
                submap[old.casefold()] = new

    @classmethod
    def from_json(cls, data: object) -> TagMap:
        """Build from decoded JSON, rejecting anything but a two-level object of strings."""
        if not isinstance(data, dict):
            msg = "tag map must be a JSON object"
            raise ValueError(msg)
        for field_name, values in data.items():
            if not isinstance(values, dict) or not all(
                isinstance(old, str) and isinstance(new, str) for old, new in values.items()
            ):
                msg = f"tag map entry '{field_name}' must map strings to strings"
                raise ValueError(msg)
        return cls(data)

    def __bool__(self) -> bool:
        return bool(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, field_name: object) -> bool:
        return isinstance(field_name, str) and field_name.casefold() in self._fields

    def lookup(self, field_name: str, value: str) -> str | None:
        """New value for ``field_name=value``, or None when there is no exact match."""
        submap = self._fields.get(field_name.casefold())
        if submap is None:
            return None
        return submap.get(value.casefold())

    def remap(self, tags: Iterable[tuple[str, str]]) -> dict[str, str]:
        """Only the tags with a mapping hit, carrying their new values."""
        remapped: dict[str, str] = {}
        for field_name, value in tags:
            new_value = self.lookup(field_name, value)
            if new_value is not None:
                remapped[field_name] = new_value
        return remapped

    def apply(self, tags: Mapping[str, str]) -> dict[str, str]:
        """Copy of ``tags`` with mapped values replaced and everything else untouched."""
        applied: dict[str, str] = {}
        for key, value in tags.items():
            new_value = self.lookup(key, value)
            applied[key] = value if new_value is None else new_value
        return applied
