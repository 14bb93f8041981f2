"""Data models used by the UI."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class StatsView:
    """Values shown under the typing area."""

    wpm: str
    accuracy: str
    progress_percent: int


@dataclass
class QuotaView:
    text: str
    percent: int


@dataclass
class SidebarView:
    """Everything the settings and stats panels display for the active category."""

    country: str
    masked_api_key: str
    quota: QuotaView | None
    can_navigate: bool
    loading: bool
    streak: int
    last_visit: str
    category: str
    articles_available: int
    position: str
    source_url: str


@dataclass
class KeyStyle:
    background: str
    foreground: str
    border: str
