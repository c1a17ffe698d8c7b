from __future__ import annotations


def test_fuzzy_score_avoids_substring_false_positives():
    from card_catalog_builder.utils.utilities import fuzzy_score

    assert fuzzy_score("Hand of Fate", "Hand of Fate 2") < 100
    assert fuzzy_score("Spire", "Slay the Spire") < 90


def test_fuzzy_score_allows_year_only_expansion():
    from card_catalog_builder.utils.utilities import fuzzy_score

    assert fuzzy_score("Inscryption", "Inscryption (2021)") == 100


def test_fuzzy_score_allows_edition_tokens():
    from card_catalog_builder.utils.utilities import fuzzy_score

    assert fuzzy_score("Gwent", "Gwent Definitive Edition") == 100


def test_normalize_game_name_strips_marks_and_roman_numerals():
    from card_catalog_builder.utils.utilities import normalize_game_name

    name = "Hearthstone™: Heroes of Warcraft®"
    assert normalize_game_name(name) == "hearthstone heroes of warcraft"
    assert normalize_game_name("Card Hunter II") == "card hunter 2"


def test_clean_name_for_search():
    from card_catalog_builder.utils.utilities import clean_name_for_search

    assert clean_name_for_search("  Monster Train: The Last Divinity!  ") == (
        "monster train the last divinity"
    )
