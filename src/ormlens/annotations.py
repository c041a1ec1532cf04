"""Parser for the free-text annotation mini-language used in item notes.

A note may contain any mix of prose and tokens:

- ``@tag`` marks one occurrence of ``tag``;
- ``@tag(id)`` marks an occurrence of ``tag`` identified by ``id``. Every
  ``@tag(id)`` with the same ``id`` counts as one logical occurrence;
- ``!name`` suppresses the structural classification ``name`` (``!read``).

Example:
    >>> parse_note("slow @audit(x1) @n1 !read").tags
    (TagToken(tag='audit', explicit_id='x1'), TagToken(tag='n1', explicit_id=None))
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

TAG_PATTERN = re.compile(r"@(\w+)(?:\((\w+)\))?")
SUPPRESSION_PATTERN = re.compile(r"!(\w+)")


@dataclass(frozen=True)
class TagToken:
    tag: str
    explicit_id: Optional[str] = None


@dataclass(frozen=True)
class NoteAnnotations:
    tags: tuple[TagToken, ...] = ()
    suppressed: frozenset[str] = frozenset()

    def suppresses(self, name: str) -> bool:
        return name in self.suppressed


@lru_cache(maxsize=4096)
def parse_note(note: str) -> NoteAnnotations:
    """Parse *note* into its tag tokens and suppressed names."""
    if not note:
        return NoteAnnotations()
    tags = tuple(TagToken(m.group(1), m.group(2)) for m in TAG_PATTERN.finditer(note))
    suppressed = frozenset(m.group(1) for m in SUPPRESSION_PATTERN.finditer(note))
    return NoteAnnotations(tags=tags, suppressed=suppressed)
