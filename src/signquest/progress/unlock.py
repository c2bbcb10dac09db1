"""Sibling reachability rule shared by levels, categories and lessons.

A node is reachable when:
  - a progress record already exists for it (proof of an earlier unlock), or
  - its parent is reachable and it is the first active sibling, or
  - its parent is reachable and the sibling immediately before it is completed.
"""

from __future__ import annotations


def sibling_unlocked(
    index: int,
    has_record: bool,
    parent_unlocked: bool,
    previous_completed: bool,
) -> bool:
    """Decide whether the sibling at ``index`` (0-based, active siblings only) is unlocked."""
    if has_record:
        return True
    if not parent_unlocked:
        return False
    if index == 0:
        return True
    return previous_completed


def unlocked_flags(completed: list[bool], has_record: list[bool], parent_unlocked: bool = True) -> list[bool]:
    """Apply :func:`sibling_unlocked` across an ordered sibling list.

    ``completed[i]`` must only be true when a record exists for sibling ``i``.
    """
    flags = []
    for idx, record in enumerate(has_record):
        previous_completed = completed[idx - 1] if idx > 0 else False
        flags.append(sibling_unlocked(idx, record, parent_unlocked, previous_completed))
    return flags
