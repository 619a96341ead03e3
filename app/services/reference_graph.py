"""
Helpers for the denormalized id arrays linking roles, permissions, modules
and companies.

Every edge is stored twice, once on each side (Role.permissions and
Permission.assigned_roles, for example). link() and unlink() update both
sides in one step; the single-sided helpers are used by cascades that only
have to clean one side because the other document is being deleted.

Lists are always replaced, never mutated in place, so SQLAlchemy sees the
JSON column as changed.
"""

from typing import Any, Iterable, List


def _ids(document: Any, field: str) -> List[str]:
    return list(getattr(document, field) or [])


def add_reference(document: Any, field: str, ref_id: str) -> bool:
    """Append ref_id to document.field unless present. Returns True on change."""
    current = _ids(document, field)
    if ref_id in current:
        return False
    setattr(document, field, current + [ref_id])
    return True


def remove_reference(document: Any, field: str, ref_id: str) -> bool:
    return strip_references(document, field, {ref_id})


def strip_references(document: Any, field: str, ref_ids: Iterable[str]) -> bool:
    """Drop every id in ref_ids from document.field. Returns True on change."""
    targets = set(ref_ids)
    current = _ids(document, field)
    remaining = [value for value in current if value not in targets]
    if len(remaining) == len(current):
        return False
    setattr(document, field, remaining)
    return True


def link(source: Any, source_field: str, target: Any, target_field: str) -> None:
    add_reference(source, source_field, target.id)
    add_reference(target, target_field, source.id)


def unlink(source: Any, source_field: str, target: Any, target_field: str) -> None:
    remove_reference(source, source_field, target.id)
    remove_reference(target, target_field, source.id)


def diff_references(old_ids: Iterable[str], new_ids: Iterable[str]):
    """Return (added, removed) between two id lists, preserving order."""
    old_list = list(old_ids or [])
    new_list = list(new_ids or [])
    old_set, new_set = set(old_list), set(new_list)
    added = [ref for ref in dict.fromkeys(new_list) if ref not in old_set]
    removed = [ref for ref in dict.fromkeys(old_list) if ref not in new_set]
    return added, removed
