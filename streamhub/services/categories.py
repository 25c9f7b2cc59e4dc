"""
Category mapping

Translates each source's native category label into the fixed set of app
categories. Matching is exact and case-sensitive: supporting a new source
label means adding the literal label to the table.
"""
from collections.abc import Mapping, Sequence
from enum import Enum


class AppCategory(str, Enum):
    BASKETBALL = "Basketball"
    WOMENS_BASKETBALL = "WNBA"
    SOCCER = "Soccer"
    FOOTBALL = "Football"
    BASEBALL = "Baseball"
    HOCKEY = "Hockey"
    MOTORSPORTS = "Motorsports"
    FIGHTING = "Fighting"
    TENNIS = "Tennis"
    TWENTY_FOUR_SEVEN = "24/7"
    MOVIES = "Movies & TV"

    @classmethod
    def from_value(cls, value: object) -> "AppCategory | None":
        """Return the member for a stored value, or None if it is not one."""
        try:
            return cls(value)
        except ValueError:
            return None


CategoryAliases = Mapping[AppCategory, Sequence[str]]


CATEGORY_MAPPINGS: dict[str, CategoryAliases] = {
    "daddystreams": {
        AppCategory.BASKETBALL: ("NBA", "NBA Preseason", "NBA FINALS"),
        AppCategory.WOMENS_BASKETBALL: ("WNBA", "WNBA Preseason", "WNBA FINALS"),
        AppCategory.FOOTBALL: ("Am. Football (NFL)", "Am. Football Preseason (NFL)"),
        AppCategory.SOCCER: ("Football", "Soccer"),
        AppCategory.BASEBALL: ("Baseball (MLB)",),
        AppCategory.HOCKEY: ("Ice Hockey (NHL)",),
    },
    "pptv": {
        AppCategory.BASKETBALL: ("Basketball", "NBA"),
        AppCategory.WOMENS_BASKETBALL: ("WNBA", "Women's Basketball", "Womens Basketball"),
        AppCategory.FOOTBALL: ("American Football", "American Football (NFL)", "NFL"),
        AppCategory.SOCCER: ("Football", "Soccer"),
        AppCategory.BASEBALL: ("Baseball",),
        AppCategory.HOCKEY: ("Ice Hockey",),
        AppCategory.FIGHTING: ("Wrestling", "UFC", "Boxing", "MMA"),
        AppCategory.TWENTY_FOUR_SEVEN: ("24/7 Streams", "24/7", "247", "Always Live"),
    },
    "sharkstreams": {
        AppCategory.BASKETBALL: ("NBA",),
        AppCategory.WOMENS_BASKETBALL: ("WNBA",),
        AppCategory.FOOTBALL: ("NFL",),
        AppCategory.SOCCER: ("Soccer", "Football"),
        AppCategory.BASEBALL: ("MLB",),
        AppCategory.HOCKEY: ("NHL",),
        AppCategory.FIGHTING: ("MMA", "WWE", "UFC", "Boxing"),
    },
    "streamed": {
        AppCategory.BASKETBALL: ("basketball",),
        AppCategory.WOMENS_BASKETBALL: ("womens-basketball", "women-basketball"),
        AppCategory.FOOTBALL: ("american-football",),
        AppCategory.SOCCER: ("soccer", "football"),
        AppCategory.BASEBALL: ("baseball",),
        AppCategory.HOCKEY: ("hockey",),
    },
}


def map_category(source_label: str | None, alias_table: CategoryAliases) -> AppCategory | None:
    """
    Map a source category label to an app category.

    Args:
        source_label: Category label exactly as the source emits it
        alias_table: App category -> literal source labels

    Returns:
        The first app category listing the label, or None if unmapped
    """
    if not isinstance(source_label, str):
        return None
    for app_category, labels in alias_table.items():
        if source_label in labels:
            return app_category
    return None
