from __future__ import annotations

# -----------------------------------------------------------------------------
# Enrichment steps
# -----------------------------------------------------------------------------

STEP_STEAM = "steam"
STEP_METACRITIC = "metacritic"

# Registered enrichment steps, in execution order. Every record carries a result for each.
STEP_NAMES: tuple[str, ...] = (STEP_STEAM, STEP_METACRITIC)

# -----------------------------------------------------------------------------
# Provenance tags
# -----------------------------------------------------------------------------

SOURCE_TBL = "turnbasedlovers"


def steam_search_source(tags: str) -> str:
    return f"steam:{tags}"


# -----------------------------------------------------------------------------
# CSV export columns (fixed order)
# -----------------------------------------------------------------------------

EXPORT_COLUMNS: tuple[str, ...] = (
    "steam_app_id",
    "name",
    "developer",
    "publisher",
    "release_date",
    "release_year",
    "short_description",
    "about_the_game",
    "tags",
    "genres",
    "categories",
    "review_score",
    "review_score_desc",
    "total_reviews",
    "positive_reviews",
    "negative_reviews",
    "metacritic_score",
    "metacritic_url",
    "header_image",
    "screenshots",
    "is_free",
    "price",
    "sources",
    "extracted_at",
    *(f"step_{name}" for name in STEP_NAMES),
)

# Tag substrings that qualify a game for the catalog (case-insensitive).
CARD_TAG_MARKERS: tuple[str, ...] = ("card", "deckbuilding")
