"""
Cue Chain Resolver

Cues point to the next cue through ``link``. This module groups the
flat cue table into the chains shown as cue lists, and validates cue
edits before they are submitted.

The resolver terminates on any table, including ones the device should
never produce (two cues linking to each other, links to missing slots):
every cue lands in exactly one chain and no cue is repeated.
"""

from typing import Any, Dict, List, Optional, Sequence, Set

from .types import Cue, CueValidationError, as_int
from .wording import word

MAX_NAME_LENGTH = 12


def _walk(start: Cue, by_idx: Dict[int, Cue], visited: Set[int]) -> List[Cue]:
    chain: List[Cue] = []
    cue: Optional[Cue] = start
    while cue is not None and cue.idx not in visited:
        chain.append(cue)
        visited.add(cue.idx)
        next_idx = cue.link
        if not next_idx or next_idx in visited:
            break
        cue = by_idx.get(next_idx)
    return chain


def resolve_chains(cues: Sequence[Cue]) -> List[List[Cue]]:
    """
    Partition cues into ordered chains following ``link`` pointers.

    Heads are cues no other cue links to, walked in table order. Cues
    left over (members of pure cycles) are walked from the lowest slot
    so they still appear once.

    Args:
        cues: Cue table

    Returns:
        List of chains, each an ordered list of cues
    """
    by_idx: Dict[int, Cue] = {}
    for cue in cues:
        by_idx.setdefault(cue.idx, cue)

    referenced = {cue.link for cue in by_idx.values() if cue.link and cue.link != cue.idx}
    visited: Set[int] = set()
    chains: List[List[Cue]] = []

    for cue in by_idx.values():
        if cue.idx not in referenced and cue.idx not in visited:
            chains.append(_walk(cue, by_idx, visited))

    for idx in sorted(by_idx):
        if idx not in visited:
            chains.append(_walk(by_idx[idx], by_idx, visited))

    return chains


def chain_of(cues: Sequence[Cue], idx: int) -> List[Cue]:
    """The chain containing slot ``idx``, or an empty list."""
    for chain in resolve_chains(cues):
        if any(cue.idx == idx for cue in chain):
            return chain
    return []


def find_cue(cues: Sequence[Cue], idx: int) -> Optional[Cue]:
    for cue in cues:
        if cue.idx == idx:
            return cue
    return None


def check_link(cues: Sequence[Cue], idx: int, link: int) -> None:
    """
    Validate a link from slot ``idx``.

    The cue table with the new link must still be a set of simple
    chains: the target may not already follow another cue, and walking
    on from the target may not lead back to ``idx``.

    Raises:
        CueValidationError: On a self link, a link to a missing slot,
            a target already linked or a loop
    """
    if not link:
        return
    if link == idx:
        raise CueValidationError(word("cue_self_link", idx))
    if find_cue(cues, link) is None:
        raise CueValidationError(word("cue_unknown", link))

    for cue in cues:
        if cue.idx != idx and cue.link == link:
            raise CueValidationError(word("cue_already_linked", link, cue.idx))

    by_idx = {cue.idx: cue for cue in cues}
    seen: Set[int] = set()
    current = link
    while current and current not in seen:
        if current == idx:
            raise CueValidationError(word("cue_link_loop", idx, link))
        seen.add(current)
        cue = by_idx.get(current)
        current = cue.link if cue is not None else 0


def check_cue_edit(cues: Sequence[Cue], fields: Dict[str, Any]) -> None:
    """
    Validate an edit_cues field map (idx, Name, fadeTime, holdTime, linkCue).

    Raises:
        CueValidationError: On the first broken rule
    """
    idx = as_int(fields.get("idx"))
    if idx is None or find_cue(cues, idx) is None:
        raise CueValidationError(word("cue_unknown", fields.get("idx")))

    name = str(fields.get("Name", "")).strip()
    if not 1 <= len(name) <= MAX_NAME_LENGTH:
        raise CueValidationError(word("cue_name"))

    for key in ("fadeTime", "holdTime"):
        if key in fields:
            seconds = as_int(fields[key])
            if seconds is None or seconds < 0:
                raise CueValidationError(word("cue_time"))

    link = fields.get("linkCue", 0)
    link_idx = as_int(link)
    if link_idx is None or link_idx < 0:
        raise CueValidationError(word("cue_link_invalid", link))
    check_link(cues, idx, link_idx)
