from __future__ import annotations

from collections.abc import Iterable

from .models import Annotation, TodoGroup, TodoLocation, normalize_key


def group_annotations(annotations: Iterable[Annotation]) -> dict[str, TodoGroup]:
    """Group annotations by normalized description.

    The first annotation seen for a key fixes the group's display casing;
    later ones only contribute locations, in scan order.
    """
    groups: dict[str, TodoGroup] = {}
    for annotation in annotations:
        key = normalize_key(annotation.description)
        group = groups.get(key)
        if group is None:
            group = TodoGroup(description=annotation.description)
            groups[key] = group
        group.locations.append(
            TodoLocation(file=annotation.file, line=annotation.line, raw_line=annotation.raw_line)
        )
    return groups


__all__ = ["group_annotations", "normalize_key"]
