"""
Selection state

Holds the active provider, category and filter toggles. Every update goes
through an explicit setter that runs the registered on-change hooks in
order; the persistence hook writes the ui_selection / ui_settings slots.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable

from streamhub.config import settings
from streamhub.services.cache_service import CacheStore, epoch_ms
from streamhub.services.categories import AppCategory
from streamhub.services.fetch_types import FilterParams
from streamhub.services.providers import available_providers


logger = logging.getLogger(__name__)

UI_SELECTION_KEY = "ui_selection"
UI_SETTINGS_KEY = "ui_settings"

FALLBACK_PROVIDER = "pptv"
FALLBACK_CATEGORY = AppCategory.BASKETBALL


@dataclass(slots=True)
class SelectionState:
    provider: str = FALLBACK_PROVIDER
    category: AppCategory = FALLBACK_CATEGORY
    filters: FilterParams = field(default_factory=FilterParams)
    user_selected_category: bool = False


ChangeHook = Callable[[SelectionState, SelectionState], Awaitable[None]]


def _default_provider() -> str:
    return settings.default_provider if settings.default_provider in available_providers() else FALLBACK_PROVIDER


def _default_category() -> AppCategory:
    return AppCategory.from_value(settings.default_category) or FALLBACK_CATEGORY


class SelectionStore:
    """Explicit state object for the orchestrator's mutable selection."""

    def __init__(self, state: SelectionState | None = None) -> None:
        self._state = state or SelectionState(provider=_default_provider(), category=_default_category())
        self._hooks: list[ChangeHook] = []

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def provider(self) -> str:
        return self._state.provider

    @property
    def category(self) -> AppCategory:
        return self._state.category

    @property
    def filters(self) -> FilterParams:
        return self._state.filters

    @property
    def user_selected_category(self) -> bool:
        return self._state.user_selected_category

    def on_change(self, hook: ChangeHook) -> None:
        self._hooks.append(hook)

    async def _apply(self, new_state: SelectionState) -> SelectionState:
        previous = self._state
        self._state = new_state
        for hook in self._hooks:
            await hook(previous, new_state)
        return new_state

    async def set_provider(self, provider: str) -> SelectionState:
        if provider not in available_providers():
            raise KeyError(f"Unknown provider '{provider}'. Available: {', '.join(available_providers())}")
        return await self._apply(replace(self._state, provider=provider))

    async def set_category(self, category: AppCategory, *, user_selected: bool = True) -> SelectionState:
        return await self._apply(
            replace(
                self._state,
                category=category,
                user_selected_category=self._state.user_selected_category or user_selected,
            )
        )

    async def set_filters(self, filters: FilterParams) -> SelectionState:
        return await self._apply(replace(self._state, filters=replace(filters)))

    async def toggle_allow_all_streams(self) -> SelectionState:
        filters = replace(self._state.filters, allow_all_streams=not self._state.filters.allow_all_streams)
        return await self.set_filters(filters)

    async def toggle_show_ended(self) -> SelectionState:
        filters = replace(self._state.filters, show_ended=not self._state.filters.show_ended)
        return await self.set_filters(filters)


def persistence_hook(store: CacheStore, clock_ms: Callable[[], int] = epoch_ms) -> ChangeHook:
    """Hook writing the selection and settings slots whenever they change."""

    async def persist(previous: SelectionState, current: SelectionState) -> None:
        if (previous.provider, previous.category) != (current.provider, current.category):
            await store.set(
                UI_SELECTION_KEY,
                {"provider": current.provider, "category": current.category.value},
                clock_ms(),
            )
        if previous.filters != current.filters:
            await store.set(
                UI_SETTINGS_KEY,
                {
                    "allowAllStreams": current.filters.allow_all_streams,
                    "showEnded": current.filters.show_ended,
                },
                clock_ms(),
            )

    return persist


def parse_stored_settings(stored: object) -> FilterParams:
    """
    Read the ui_settings slot, accepting the legacy showTodayOnly flag.

    Args:
        stored: Slot payload, possibly missing or malformed

    Returns:
        Filter parameters (defaults for anything unreadable)
    """
    if not isinstance(stored, dict):
        return FilterParams()

    show_ended = stored.get("showEnded")
    if not isinstance(show_ended, bool):
        legacy = stored.get("showTodayOnly")
        show_ended = (not legacy) if isinstance(legacy, bool) else False

    return FilterParams(
        allow_all_streams=bool(stored.get("allowAllStreams")),
        show_ended=show_ended,
    )


async def load_selection_state(store: CacheStore) -> SelectionState:
    """Rebuild the selection from persisted slots, replacing invalid values with defaults."""
    selection_entry = await store.get(UI_SELECTION_KEY)
    settings_entry = await store.get(UI_SETTINGS_KEY)

    selection = (selection_entry or {}).get("data")
    if not isinstance(selection, dict):
        selection = {}

    provider = selection.get("provider")
    if provider not in available_providers():
        if provider is not None:
            logger.warning("Stored provider %r is not registered, using %s", provider, _default_provider())
        provider = _default_provider()

    category = AppCategory.from_value(selection.get("category"))

    state = SelectionState(
        provider=provider,
        category=category or _default_category(),
        filters=parse_stored_settings((settings_entry or {}).get("data")),
        user_selected_category=category is not None,
    )
    logger.info(
        "Selection restored: provider=%s category=%s allow_all=%s show_ended=%s",
        state.provider,
        state.category.value,
        state.filters.allow_all_streams,
        state.filters.show_ended,
    )
    return state
