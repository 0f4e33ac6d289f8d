"""Unit tests for search deduplication and ranking."""

from __future__ import annotations

from typing import Any

import allure
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from crategate.core.models.gateway_models import ScoringWeights
from crategate.services.api.search_ranker import (
    SCORE_FIELD,
    dedupe_key,
    dedupe_results,
    normalize_text,
    parse_search_query,
    popularity,
    rank_results,
    score_result,
    split_title_artist,
)

WEIGHTS = ScoringWeights()


class TestQueryParsing:
    """Tests for query normalization and parsing."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Nevermind", "nevermind"),
            ("  Simon   and Garfunkel ", "simon&garfunkel"),
            ("Bach en Handel", "bach&handel"),
            ("Band", "band"),
            ("AC/DC", "acdc"),
            ("Sigur Rós", "sigurrs"),
            ("", ""),
        ],
    )
    def test_normalize_text(self, raw: str, expected: str) -> None:
        """Only lowercase alphanumerics and ``&`` survive."""
        assert normalize_text(raw) == expected

    def test_plain_query(self) -> None:
        """A plain query is free text."""
        query = parse_search_query("  Nevermind ")
        assert query.text == "Nevermind"
        assert query.normalized == "nevermind"
        assert query.catalog_only is False

    def test_catalog_query(self) -> None:
        """A ``#`` prefix marks a catalog-only query and is stripped."""
        query = parse_search_query("# ABC-123")
        assert query.text == "ABC-123"
        assert query.catalog_only is True

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_query(self, raw: str | None) -> None:
        """Missing queries parse to empty text."""
        query = parse_search_query(raw)
        assert query.text == ""
        assert query.normalized == ""


class TestDedupe:
    """Tests for result deduplication."""

    def test_split_title_artist(self) -> None:
        """Combined ``Artist - Title`` hits are split once."""
        assert split_title_artist({"title": "Nirvana - Nevermind - Deluxe"}) == ("Nevermind - Deluxe", "Nirvana")
        assert split_title_artist({"title": "Nevermind", "artist": "Nirvana"}) == ("Nevermind", "Nirvana")
        assert split_title_artist({"title": 5}) == ("", "")

    @pytest.mark.parametrize(
        ("item", "expected"),
        [
            ({"master_id": 123, "id": 9}, "master:123"),
            ({"master_id": 0, "id": 9}, "release:9"),
            ({"master_id": "77", "id": 9}, "master:77"),
            ({"id": "x", "title": "Nirvana - Nevermind"}, "nevermind|nirvana"),
            ({"master_id": True, "title": "Nevermind", "artist": "Nirvana"}, "nevermind|nirvana"),
        ],
    )
    def test_dedupe_key(self, item: dict[str, Any], expected: str) -> None:
        """Keys prefer master, then release, then the composite."""
        assert dedupe_key(item) == expected

    def test_dedupe_key_without_composite(self) -> None:
        """Without composites, id-less hits have no key."""
        assert dedupe_key({"title": "Nevermind"}, allow_composite=False) is None

    def test_same_master_collapses(self) -> None:
        """Two releases of one master collapse to the first."""
        items = [{"master_id": 123, "id": 1}, {"master_id": 123, "id": 2}, {"id": 3}]
        assert dedupe_results(items) == [{"master_id": 123, "id": 1}, {"id": 3}]

    def test_composite_collapses_spelling_variants(self) -> None:
        """Id-less hits with the same normalized title and artist collapse."""
        items = [{"title": "Simon and Garfunkel - Bookends"}, {"title": "Simon & Garfunkel - BOOKENDS!"}]
        assert len(dedupe_results(items)) == 1

    def test_no_composite_drops_idless(self) -> None:
        """Barcode style deduplication drops hits without ids."""
        assert dedupe_results([{"title": "x"}, {"id": 4}], allow_composite=False) == [{"id": 4}]

    def test_non_dict_items_skipped(self) -> None:
        """Garbage entries are ignored."""
        assert dedupe_results(["bad", None, {"id": 1}]) == [{"id": 1}]  # type: ignore[list-item]


@allure.epic("Crategate")
@allure.feature("Search Ranking")
@allure.sub_suite("Scoring")
class TestScoring:
    """Tests for scoring and ranking."""

    def test_popularity_sources(self) -> None:
        """Popularity reads top-level or community counts."""
        assert popularity({"have": 500, "want": 200}) == 700
        assert popularity({"community": {"have": 5, "want": 1}}) == 6
        assert popularity({"have": "many", "want": True}) == 0

    @allure.story("Title bonus")
    @allure.severity(allure.severity_level.CRITICAL)
    @allure.title("Exact title beats more popular partial match")
    def test_nevermind_ranking(self) -> None:
        """The exact title wins despite lower raw popularity."""
        candidates = [
            {"title": "Nevermind (Remastered)", "artist": "Nirvana", "have": 5000, "want": 1000, "master_id": 456},
            {"title": "Nevermind", "artist": "Nirvana", "have": 500, "want": 200, "master_id": 123},
        ]

        with allure.step("Rank candidates"):
            ranked = rank_results(candidates, parse_search_query("Nevermind"))

        allure.attach(str([(r["master_id"], r[SCORE_FIELD]) for r in ranked]), "Ranking", allure.attachment_type.TEXT)
        assert [result["master_id"] for result in ranked] == [123, 456]
        assert ranked[0][SCORE_FIELD] == 700 + WEIGHTS.title_exact
        assert ranked[1][SCORE_FIELD] == 6000 + WEIGHTS.title_partial

    @allure.story("Catalog bonus")
    @allure.severity(allure.severity_level.CRITICAL)
    @allure.title("Catalog-only query scores catalog number alone")
    def test_catalog_only_query(self) -> None:
        """A matching title earns nothing for a ``#`` query."""
        query = parse_search_query("#ABC-123")
        title_match = {"title": "ABC-123", "artist": "ABC-123", "catno": "XYZ-9", "have": 900, "id": 1}
        catalog_match = {"title": "Other", "artist": "Someone", "catno": "abc-123", "have": 1, "id": 2}

        assert score_result(title_match, query, WEIGHTS) == 900
        assert score_result(catalog_match, query, WEIGHTS) == 1 + WEIGHTS.catalog_exact
        ranked = rank_results([title_match, catalog_match], query)
        assert [result["id"] for result in ranked] == [2, 1]

    @allure.story("Catalog bonus")
    @allure.title("Catalog bonus also applies to plain queries")
    def test_catalog_bonus_on_plain_query(self) -> None:
        """A free-text query equal to the catalog number earns the bonus too."""
        item = {"title": "Unrelated", "catno": "DGC-24425"}
        assert score_result(item, parse_search_query("dgc-24425"), WEIGHTS) == WEIGHTS.catalog_exact

    @allure.story("Artist bonus")
    def test_artist_bonuses(self) -> None:
        """Exact, partial and wildcard artists earn their bonuses."""
        query = parse_search_query("Nirvana")
        assert score_result({"title": "Bleach", "artist": "Nirvana"}, query, WEIGHTS) == WEIGHTS.artist_exact
        assert score_result({"title": "Bleach", "artist": "Nirvana Tribute Band"}, query, WEIGHTS) == WEIGHTS.artist_partial
        assert score_result({"title": "Bleach", "artist": "Various"}, query, WEIGHTS) == WEIGHTS.artist_partial
        assert score_result({"title": "Bleach", "artist": "Melvins"}, query, WEIGHTS) == 0

    @allure.story("Artist bonus")
    def test_combined_title_field(self) -> None:
        """Combined ``Artist - Title`` hits are matched per part."""
        query = parse_search_query("Nevermind")
        item = {"title": "Nirvana - Nevermind", "have": 1}
        assert score_result(item, query, WEIGHTS) == 1 + WEIGHTS.title_exact

    def test_reverse_partial_needs_min_length(self) -> None:
        """Short candidates contained in the query do not count."""
        query = parse_search_query("abbey road")
        assert score_result({"title": "ab"}, query, WEIGHTS) == 0
        assert score_result({"title": "Abbey"}, query, WEIGHTS) == WEIGHTS.title_partial

    @pytest.mark.parametrize(
        ("title", "query", "expected"),
        [
            ("Red", "tired", 0),
            ("Tired", "red", 0),
            ("Red", "red hot", WEIGHTS.title_partial),
            ("Red Hot Chili", "hot", WEIGHTS.title_partial),
            ("AC/DC Live", "acdc", WEIGHTS.title_partial),
            ("Live at Leeds", "live at", WEIGHTS.title_partial),
        ],
    )
    def test_partial_match_respects_word_boundaries(self, title: str, query: str, expected: int) -> None:
        """Partial bonuses need whole words on both sides of the match."""
        assert score_result({"title": title}, parse_search_query(query), WEIGHTS) == expected

    @allure.story("Catalog bonus")
    @pytest.mark.parametrize("raw", ["#ABC-123", "#abc123", "#ABC 123", "#abc.123"])
    def test_catalog_number_ignores_separators(self, raw: str) -> None:
        """Catalog numbers compare without case or separators."""
        query = parse_search_query(raw)
        assert query.catalog == "abc123"
        assert score_result({"catno": "ABC-123"}, query, WEIGHTS) == WEIGHTS.catalog_exact

    def test_cache_key_tracks_ranking_inputs(self) -> None:
        """Queries that rank differently never share a cache key."""
        assert parse_search_query("#ABC-123").cache_key == parse_search_query("#abc123").cache_key
        assert parse_search_query("#ABC-123").cache_key != parse_search_query("ABC-123").cache_key
        assert parse_search_query("Simon and Garfunkel").cache_key != parse_search_query("Simon & Garfunkel").cache_key
        assert parse_search_query("!!!").cache_key != parse_search_query("???").cache_key

    def test_empty_normalized_query_only_popularity(self) -> None:
        """Punctuation-only queries rank by popularity."""
        assert score_result({"title": "!!!", "have": 3}, parse_search_query("!!!"), WEIGHTS) == 3

    def test_custom_weights(self) -> None:
        """Weights are configurable."""
        weights = ScoringWeights(title_exact=1, title_partial=0, artist_exact=0, artist_partial=0, catalog_exact=0)
        assert score_result({"title": "Nevermind"}, parse_search_query("Nevermind"), weights) == 1

    @allure.story("Ranking")
    def test_rank_dedupes_limits_and_copies(self) -> None:
        """Ranking dedupes, caps and leaves inputs untouched."""
        items = [{"id": i, "title": f"Album {i}", "have": i} for i in range(60)]
        items.append({"id": 59, "title": "Duplicate", "have": 10_000})

        ranked = rank_results(items, parse_search_query("zzz"), limit=40)

        assert len(ranked) == 40
        assert ranked[0]["id"] == 59
        assert ranked[0]["title"] == "Album 59"
        assert SCORE_FIELD not in items[0]

    def test_stable_sort_keeps_upstream_order(self) -> None:
        """Equal scores keep arrival order."""
        items = [{"id": 3}, {"id": 1}, {"id": 2}]
        assert [r["id"] for r in rank_results(items, parse_search_query("x"))] == [3, 1, 2]


@pytest.mark.unit
class TestRankingProperties:
    """Property-based tests for ranking invariants."""

    @given(
        items=st.lists(
            st.fixed_dictionaries(
                {"id": st.integers(min_value=1, max_value=30), "have": st.integers(min_value=0, max_value=1000)},
                optional={"master_id": st.integers(min_value=0, max_value=10), "title": st.text(max_size=10)},
            ),
            max_size=50,
        ),
        text=st.text(max_size=10),
    )
    @settings(max_examples=100)
    def test_ranked_results_sorted_unique_and_capped(self, items: list[dict[str, Any]], text: str) -> None:
        """Output is score-descending, key-unique and at most the limit."""
        ranked = rank_results(items, parse_search_query(text), limit=40)

        scores = [result[SCORE_FIELD] for result in ranked]
        assert scores == sorted(scores, reverse=True)
        keys = [dedupe_key(result) for result in ranked]
        assert len(keys) == len(set(keys))
        assert len(ranked) <= 40
