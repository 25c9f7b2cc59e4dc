"""
Team and league matching

Extracts the two sides of a matchup title ("Lakers vs Celtics") and looks
them up in the per-category alias tables shipped in data/team_aliases.json.
The result drives the logos shown next to an event.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from types import MappingProxyType
from typing import Mapping

from streamhub.config import settings
from streamhub.services.categories import AppCategory
from streamhub.services.fetch_types import TeamBranding


logger = logging.getLogger(__name__)

_SEPARATOR_RE = re.compile(r"(?:\b(?:vs|v|at)\b\.?|(?<!\S)@(?!\S))", re.IGNORECASE)
_SPLIT_RE = re.compile(r"\s(?:vs|at|@)\s", re.IGNORECASE)
_PAREN_RE = re.compile(r"\([^)]*\)")

_CANONICAL_SEPARATORS = (
    (re.compile(r"\s+@\s+"), " @ "),
    (re.compile(r"\s+vs\.?\s+", re.IGNORECASE), " vs "),
    (re.compile(r"\s+v\.?\s+", re.IGNORECASE), " vs "),
    (re.compile(r"\s+at\s+", re.IGNORECASE), " at "),
    (re.compile(r"\s+-\s+"), " - "),
    (re.compile(r"\s+"), " "),
)


@dataclass(slots=True, frozen=True)
class TeamEntry:
    """A known team resolved from an alias."""
    file: str
    logo: str


@dataclass(slots=True, frozen=True)
class LeagueTable:
    folder: str
    league_logo: str
    aliases: Mapping[str, TeamEntry]


@dataclass(slots=True)
class TeamMatch:
    """Outcome of matching one title against a category's alias table."""
    teams: list[str] = field(default_factory=list)
    matched_teams: list[str] = field(default_factory=list)
    has_matchup: bool = False
    league_logo: str | None = None
    entries: list[TeamEntry | None] = field(default_factory=list)


def normalize_team_name(name: str) -> str:
    """Lowercase, spell out '&', replace punctuation with spaces and collapse whitespace."""
    text = name.lower().replace("&", " and ")
    text = re.sub(r"[^a-z0-9\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def has_separator(title: str) -> bool:
    return bool(_SEPARATOR_RE.search(title))


def split_teams(title: str) -> list[str]:
    """
    Split a matchup title into at most two team names.

    Args:
        title: Title text (already reduced to the part after any ':')

    Returns:
        Up to two trimmed, non-empty team names in title order
    """
    text = re.sub(r"[–—]", "-", title)
    for pattern, replacement in _CANONICAL_SEPARATORS:
        text = pattern.sub(replacement, text)

    teams = []
    for part in _SPLIT_RE.split(text.strip()):
        cleaned = _PAREN_RE.sub("", part).split(" - ")[0].strip()
        if cleaned:
            teams.append(cleaned)
    return teams[:2]


def _logo_url(folder: str, file: str) -> str:
    return f"{settings.logo_base_url.rstrip('/')}/{folder}/{file}"


@lru_cache(maxsize=1)
def load_league_tables() -> Mapping[AppCategory, LeagueTable]:
    """Load the alias data once into an immutable lookup. The first alias registration wins."""
    raw = json.loads(
        resources.files("streamhub").joinpath("data/team_aliases.json").read_text(encoding="utf-8")
    )

    tables: dict[AppCategory, LeagueTable] = {}
    for category_value, config in raw.items():
        category = AppCategory.from_value(category_value)
        if category is None:
            logger.warning("Ignoring alias table for unknown category %r", category_value)
            continue

        folder = config["folder"]
        aliases: dict[str, TeamEntry] = {}
        for team in config.get("teams", []):
            entry = TeamEntry(file=team["file"], logo=_logo_url(folder, team["file"]))
            for alias in team.get("aliases", []):
                aliases.setdefault(normalize_team_name(alias), entry)

        tables[category] = LeagueTable(
            folder=folder,
            league_logo=_logo_url(folder, config["league_logo"]),
            aliases=MappingProxyType(aliases),
        )

    logger.debug("Loaded team alias tables for %s categories", len(tables))
    return MappingProxyType(tables)


def match_teams(category: AppCategory | None, raw_title: str | None) -> TeamMatch:
    """
    Match the teams in a title against the alias table of a category.

    Categories without an alias table yield an empty match.
    """
    table = load_league_tables().get(category) if category is not None else None
    if table is None:
        return TeamMatch()

    title = (raw_title or "").split(":")[-1].strip()
    if not title or not has_separator(title):
        return TeamMatch(league_logo=table.league_logo)

    teams = split_teams(title)
    entries = [table.aliases.get(normalize_team_name(team)) for team in teams]
    return TeamMatch(
        teams=teams,
        matched_teams=[team for team, entry in zip(teams, entries) if entry is not None],
        has_matchup=True,
        league_logo=table.league_logo,
        entries=entries,
    )


def team_branding(category: AppCategory | None, raw_title: str | None) -> TeamBranding:
    """Build display branding; the league logo stands in for unmatched sides."""
    match = match_teams(category, raw_title)
    if match.league_logo is None:
        return TeamBranding()

    if not match.has_matchup or not match.entries:
        return TeamBranding(logos=[match.league_logo], league_logo=match.league_logo)

    logos = [entry.logo if entry else match.league_logo for entry in match.entries]
    return TeamBranding(
        logos=logos,
        team_names=list(match.teams),
        league_logo=match.league_logo,
        has_matchup=True,
    )
