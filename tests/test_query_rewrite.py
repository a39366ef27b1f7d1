"""Tests for rule-based query rewriting."""

from __future__ import annotations

import pytest

from market_rag.core.services.query_rewrite_service import (
    QueryRewriteService,
    distinct_keep_order,
    normalize_query,
)


class TestQueryRewriteService:
    """Rewrite tests."""

    @pytest.fixture
    def service(self) -> QueryRewriteService:
        """Service with default dictionaries."""
        return QueryRewriteService()

    def test_candidates_are_bounded_and_distinct(self, service: QueryRewriteService) -> None:
        """At most max candidates, distinct, non-empty and not the input."""
        candidates = service.rewrite("股票 价格", 3)

        assert 0 < len(candidates) <= 3
        assert len({c.casefold() for c in candidates}) == len(candidates)
        assert all(c.strip() for c in candidates)
        assert "股票 价格" not in candidates

    def test_synonyms_come_first(self, service: QueryRewriteService) -> None:
        """Synonym substitution is the first rule applied."""
        candidates = service.rewrite("股票 价格", 3)

        assert candidates[0] == "证券 价格"

    def test_qualifiers_when_no_synonym(self, service: QueryRewriteService) -> None:
        """Queries without dictionary terms get qualifier variants."""
        candidates = service.rewrite("宁德时代", 2)

        assert candidates == ["宁德时代 基本面", "宁德时代 技术面"]

    def test_blank_query(self, service: QueryRewriteService) -> None:
        """Blank input gives no candidates."""
        assert service.rewrite("") == []
        assert service.rewrite("   ") == []

    def test_non_positive_bound(self, service: QueryRewriteService) -> None:
        """A zero bound gives no candidates."""
        assert service.rewrite("股票", 0) == []

    def test_case_insensitive_synonym(self) -> None:
        """Latin dictionary terms match regardless of case."""
        service = QueryRewriteService(synonyms={"AI": ["人工智能"]})

        assert service.rewrite("ai 芯片", 1) == ["人工智能 芯片"]

    def test_extract_keywords_longest_first(self, service: QueryRewriteService) -> None:
        """Keywords are sorted by length, longest first."""
        keywords = service.extract_keywords("2024年 新能源汽车 销量 Tesla")

        assert keywords[0] == "新能源汽车"
        assert "Tesla" in keywords


class TestHelpers:
    """Helper function tests."""

    def test_normalize_query(self) -> None:
        """Whitespace is collapsed and line breaks removed."""
        assert normalize_query("  股票\n价格\t走势  ") == "股票价格 走势"

    def test_distinct_keep_order(self) -> None:
        """Case-insensitive duplicates and blanks are dropped."""
        assert distinct_keep_order(["AI", "ai", " ", "芯片", "AI"]) == ["AI", "芯片"]
