"""
Candidate discovery, ranking and multi-file intersection.

Rank = (N - position) * SPECIFICITY_MULTIPLIER + SOURCE_RANK, where N is
the length of the expanded MIME list. The multiplier exceeds every source
rank, so a more specific MIME type always beats a better source.
Candidates are deduplicated by (Name, Exec) and keep their best rank.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from openwith.core import paths
from openwith.core.database import ResolutionContext
from openwith.core.desktop import DesktopEntry, DesktopEntryStore
from openwith.core.keyfile import split_list, unescape_string

log = structlog.get_logger()

SPECIFICITY_MULTIPLIER = 100

# Association sources, best first
SOURCE_RANK_GLOBAL_DEFAULT = 5  # xdg-mime query default
SOURCE_RANK_MIMEAPPS_DEFAULT = 4  # [Default Applications]
SOURCE_RANK_MIMEAPPS_ADDED = 3  # [Added Associations]
SOURCE_RANK_CACHE_OR_SCAN = 2  # mimeinfo.cache or full .desktop scan


@dataclass
class RankedCandidate:
    """A desktop id (resolved through the store) with its best rank."""

    desktop_id: str
    rank: int
    source_info: str


CandidateKey = tuple[str, str]  # (Name, Exec)
CandidateMap = dict[CandidateKey, RankedCandidate]


def compute_rank(position: int, total: int, source_rank: int) -> int:
    return (total - position) * SPECIFICITY_MULTIPLIER + source_rank


def candidate_key(entry: DesktopEntry) -> CandidateKey:
    return (entry.name, entry.exec)


def add_or_update(candidates: CandidateMap, entry: DesktopEntry, rank: int, source_info: str) -> None:
    """Insert a candidate, or raise an existing one to a higher rank."""
    key = candidate_key(entry)
    existing = candidates.get(key)
    if existing is None:
        candidates[key] = RankedCandidate(entry.id, rank, source_info)
    elif rank > existing.rank:
        existing.desktop_id = entry.id
        existing.rank = rank
        existing.source_info = source_info


def is_acceptable(entry: DesktopEntry, ctx: ResolutionContext) -> bool:
    """Apply TryExec, OnlyShowIn/NotShowIn and launchability filters."""
    settings = ctx.settings

    if settings.validate_try_exec and entry.try_exec:
        if not paths.is_executable_available(unescape_string(entry.try_exec)):
            log.debug("candidate_filtered", id=entry.id, reason="try_exec")
            return False

    if settings.filter_by_show_in and ctx.current_desktops:
        current = set(ctx.current_desktops)
        only = split_list(entry.only_show_in)
        if only and not current.intersection(only):
            log.debug("candidate_filtered", id=entry.id, reason="only_show_in")
            return False
        if current.intersection(split_list(entry.not_show_in)):
            log.debug("candidate_filtered", id=entry.id, reason="not_show_in")
            return False

    analysis = ctx.store.analysis(entry.id)
    if analysis is None or not analysis.launchable:
        log.debug("candidate_filtered", id=entry.id, reason="exec_unusable")
        return False
    return True


def register_by_id(
    candidates: CandidateMap, ctx: ResolutionContext, desktop_id: str, rank: int, source_info: str
) -> None:
    entry = ctx.store.get_or_load(desktop_id)
    if entry is None:
        return
    if is_acceptable(entry, ctx):
        add_or_update(candidates, entry, rank, source_info)


def _from_system_default(expanded: list[str], ctx: ResolutionContext, candidates: CandidateMap) -> None:
    if not expanded:
        return
    mime = expanded[0]
    desktop_id = ctx.default_app(mime)
    if desktop_id and not ctx.mimeapps.is_removed(mime, desktop_id):
        rank = compute_rank(0, len(expanded), SOURCE_RANK_GLOBAL_DEFAULT)
        register_by_id(candidates, ctx, desktop_id, rank, f"xdg-mime query default {mime}")


def _from_mimeapps_lists(expanded: list[str], ctx: ResolutionContext, candidates: CandidateMap) -> None:
    total = len(expanded)
    mimeapps = ctx.mimeapps
    for position, mime in enumerate(expanded):
        default = mimeapps.defaults.get(mime)
        if default and not mimeapps.is_removed(mime, default.desktop_id):
            rank = compute_rank(position, total, SOURCE_RANK_MIMEAPPS_DEFAULT)
            source_info = f"{default.source_path} in [Default Applications] for {mime}"
            register_by_id(candidates, ctx, default.desktop_id, rank, source_info)

        for added in mimeapps.added.get(mime, ()):
            if mimeapps.is_removed(mime, added.desktop_id):
                continue
            rank = compute_rank(position, total, SOURCE_RANK_MIMEAPPS_ADDED)
            source_info = f"{added.source_path} in [Added Associations] for {mime}"
            register_by_id(candidates, ctx, added.desktop_id, rank, source_info)


def _from_index(expanded: list[str], ctx: ResolutionContext, candidates: CandidateMap) -> None:
    """Register handlers from mimeinfo.cache or the full scan index.

    Each id keeps the best rank over all matching MIME types before it
    is registered, so a generic type can't demote a specific match.
    """
    total = len(expanded)
    best: dict[str, tuple[int, str]] = {}

    for position, mime in enumerate(expanded):
        if ctx.mimeinfo_cache is not None:
            handlers = [
                (s.desktop_id, f"{s.source_path} for {mime}") for s in ctx.mimeinfo_cache.get(mime, ())
            ]
        else:
            handlers = [(d, f"full scan for {mime}") for d in (ctx.scan_index or {}).get(mime, ())]
        rank = compute_rank(position, total, SOURCE_RANK_CACHE_OR_SCAN)
        for desktop_id, source_info in handlers:
            if not desktop_id or ctx.mimeapps.is_removed(mime, desktop_id):
                continue
            if desktop_id not in best or rank > best[desktop_id][0]:
                best[desktop_id] = (rank, source_info)

    for desktop_id, (rank, source_info) in best.items():
        register_by_id(candidates, ctx, desktop_id, rank, source_info)


def discover_candidates(expanded: list[str], ctx: ResolutionContext) -> CandidateMap:
    """Collect ranked, deduplicated candidates for one expanded MIME list."""
    candidates: CandidateMap = {}
    _from_system_default(expanded, ctx, candidates)
    _from_mimeapps_lists(expanded, ctx, candidates)
    _from_index(expanded, ctx, candidates)
    return candidates


def intersect_candidates(candidate_maps: list[CandidateMap]) -> CandidateMap:
    """Keep candidates present in every map, each at its maximum rank.

    Starts from the smallest map. Returns {} as soon as any map is empty
    or the running intersection empties.
    """
    if not candidate_maps or any(not m for m in candidate_maps):
        return {}

    base_index = min(range(len(candidate_maps)), key=lambda i: len(candidate_maps[i]))
    survivors: CandidateMap = {
        key: RankedCandidate(c.desktop_id, c.rank, c.source_info)
        for key, c in candidate_maps[base_index].items()
    }

    for index, other in enumerate(candidate_maps):
        if index == base_index:
            continue
        for key in list(survivors):
            match = other.get(key)
            if match is None:
                del survivors[key]
            elif match.rank > survivors[key].rank:
                survivors[key].rank = match.rank
        if not survivors:
            return {}
    return survivors


def sort_candidates(
    candidates: CandidateMap, store: DesktopEntryStore, alphabetical: bool = False
) -> list[RankedCandidate]:
    """Order by rank descending then name ascending, or by name only."""

    def name_of(candidate: RankedCandidate) -> str:
        entry = store.get(candidate.desktop_id)
        return entry.name if entry else ""

    ranked = list(candidates.values())
    if alphabetical:
        ranked.sort(key=name_of)
    else:
        ranked.sort(key=lambda c: (-c.rank, name_of(c)))
    return ranked
