"""Heuristic scoring strategies used by the fallback reranker."""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Callable

from ..models.document import ScoredCandidate, SearchCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringWeights:
    relevance: float = 0.55
    freshness: float = 0.25
    length: float = 0.20


@dataclass(frozen=True)
class ScoringConstants:
    exact_match_bonus: float = 0.2
    high_similarity_threshold: float = 0.7
    similarity_penalty: float = 0.8
    ideal_length_min: int = 200
    ideal_length_max: int = 1000
    cjk_min_gram: int = 2
    cjk_max_gram: int = 3


STOP_WORDS = frozenset({
    "的", "了", "在", "是", "我", "有", "和", "就", "不", "人", "都", "一", "一个",
    "上", "也", "很", "到", "说", "要", "去", "你", "会", "着", "没有", "看", "好",
    "自己", "这",
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "up", "about", "into", "through", "during", "before",
    "after", "above", "below", "between",
})

FINANCIAL_KEYWORDS: dict[str, float] = {
    # 核心金融术语
    **dict.fromkeys(
        ["股票", "债券", "基金", "期货", "期权", "外汇", "股价", "市值", "涨跌", "收益",
         "风险", "投资", "融资", "上市", "ipo", "并购", "重组", "stock", "bond", "fund"],
        2.0,
    ),
    # 重要指标
    **dict.fromkeys(
        ["pe", "pb", "roe", "roa", "eps", "净利润", "营收", "毛利率", "负债率", "市盈率",
         "市净率", "现金流", "分红", "股息", "估值", "revenue", "dividend"],
        1.8,
    ),
    # 市场术语
    **dict.fromkeys(
        ["牛市", "熊市", "涨停", "跌停", "成交量", "换手率", "振幅", "均线", "支撑", "阻力",
         "突破", "回调", "反弹", "趋势"],
        1.5,
    ),
    # 行业板块
    **dict.fromkeys(
        ["银行", "保险", "证券", "房地产", "科技", "医药", "消费", "制造", "新能源", "芯片",
         "5g", "人工智能", "区块链"],
        1.3,
    ),
}

TIME_KEYWORDS: dict[str, float] = {
    **dict.fromkeys(["今日", "今天", "本周", "本月", "最新", "刚刚", "实时",
                     "today", "this week", "this month", "latest", "breaking"], 1.0),
    **dict.fromkeys(["昨日", "昨天", "上周", "近期", "最近",
                     "yesterday", "last week", "recently"], 0.8),
    **dict.fromkeys(["去年", "前年", "历史", "过去",
                     "last year", "historical"], 0.3),
}

URL_DATE_PATTERNS = [
    re.compile(r"/(\d{4})/(\d{1,2})/(\d{1,2})"),
    re.compile(r"/(\d{4})-(\d{1,2})-(\d{1,2})"),
    re.compile(r"/(\d{4})(\d{2})(\d{2})"),
    re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日"),
]

_NON_WORD = re.compile(r"[\W_]+")
_ASCII_ALNUM = re.compile(r"^[a-z0-9]+$")


@dataclass(frozen=True)
class TokenInfo:
    token: str
    bonus: float
    frequency: int = 1


def is_cjk(ch: str) -> bool:
    return (
        "\u4e00" <= ch <= "\u9fff"
        or "\u3400" <= ch <= "\u4dbf"
        or "\uf900" <= ch <= "\ufaff"
    )


def cjk_ngrams(token: str, min_gram: int = 2, max_gram: int = 3) -> list[str]:
    grams = []
    for n in range(min_gram, max_gram + 1):
        grams.extend(token[i:i + n] for i in range(len(token) - n + 1))
    return grams


@lru_cache(maxsize=2048)
def tokenize(text: str, min_gram: int = 2, max_gram: int = 3) -> tuple[TokenInfo, ...]:
    """Lower-cased tokens with keyword bonus and in-text frequency.

    Runs containing CJK characters become 2-3 character n-grams; other
    tokens are kept when they are ASCII alphanumeric, longer than one
    character and not stop words.
    """
    if not text or not text.strip():
        return ()

    counts: dict[str, int] = {}
    for raw in _NON_WORD.sub(" ", text.lower()).split():
        if any(is_cjk(ch) for ch in raw):
            for gram in cjk_ngrams(raw, min_gram, max_gram):
                counts[gram] = counts.get(gram, 0) + 1
        elif len(raw) > 1 and raw not in STOP_WORDS and _ASCII_ALNUM.match(raw):
            counts[raw] = counts.get(raw, 0) + 1

    return tuple(
        TokenInfo(token, FINANCIAL_KEYWORDS.get(token, 1.0), count)
        for token, count in counts.items()
    )


def token_set(text: str, constants: ScoringConstants = ScoringConstants()) -> set[str]:
    return {t.token for t in tokenize(text, constants.cjk_min_gram, constants.cjk_max_gram)}


class ScoringStrategy(ABC):
    """Base class for per-candidate scoring signals in [0, 1]."""

    @abstractmethod
    def score(self, query: str, candidate: SearchCandidate) -> float:
        """Score one candidate."""
        ...


class RelevanceStrategy(ScoringStrategy):
    """Token overlap weighted by financial keyword bonus and frequency."""

    def __init__(self, constants: ScoringConstants = ScoringConstants()):
        self._constants = constants

    def score(self, query: str, candidate: SearchCandidate) -> float:
        c = self._constants
        query = (query or "").strip()
        query_tokens = tokenize(query, c.cjk_min_gram, c.cjk_max_gram)
        if not query_tokens:
            return 0.0

        text = candidate.text or ""
        item_tokens = {t.token: t for t in tokenize(text, c.cjk_min_gram, c.cjk_max_gram)}
        bonus_sum = sum(t.bonus for t in query_tokens)

        matched = 0
        weighted = 0.0
        for q in query_tokens:
            item = item_tokens.get(q.token)
            if item is not None:
                matched += 1
                weighted += q.bonus * item.frequency

        base = matched / len(query_tokens)
        weighted_score = weighted / bonus_sum if bonus_sum > 0 else 0.0
        exact = c.exact_match_bonus if query.lower() in text.lower() else 0.0

        return min(1.0, 0.6 * base + 0.3 * weighted_score + 0.1 + exact)


class FreshnessStrategy(ScoringStrategy):
    """Recency from a date in the link, else from time words in the text."""

    DEFAULT_SCORE = 0.5

    def __init__(self, now: Callable[[], datetime] = datetime.now):
        self._now = now

    def score(self, query: str, candidate: SearchCandidate) -> float:
        url_score = self.score_url(candidate.link or "")
        if url_score > 0:
            return url_score

        content_score = self.score_content(candidate.text or "")
        return content_score if content_score > 0 else self.DEFAULT_SCORE

    def score_url(self, url: str) -> float:
        if not url.strip():
            return 0.0

        for pattern in URL_DATE_PATTERNS:
            for match in pattern.finditer(url):
                year, month, day = (int(g) for g in match.groups())
                if 1900 <= year <= 2100 and 1 <= month <= 12 and 1 <= day <= 31:
                    return self.year_band(self._now().year - year)
        return 0.0

    @staticmethod
    def year_band(age_years: int) -> float:
        if age_years <= 0:
            return 1.0
        if age_years == 1:
            return 0.9
        if age_years == 2:
            return 0.7
        if age_years == 3:
            return 0.5
        if age_years <= 5:
            return 0.3
        return 0.1

    @staticmethod
    def score_content(text: str) -> float:
        if not text.strip():
            return 0.0
        lowered = text.lower()
        for keyword, score in TIME_KEYWORDS.items():
            if keyword in lowered:
                return score
        return 0.0


class LengthStrategy(ScoringStrategy):
    """Prefers passages of 200-1000 characters."""

    def __init__(self, constants: ScoringConstants = ScoringConstants()):
        self._constants = constants

    def score(self, query: str, candidate: SearchCandidate) -> float:
        text = candidate.text or ""
        if not text.strip():
            return 0.0

        length = len(text)
        if self._constants.ideal_length_min <= length <= self._constants.ideal_length_max:
            return 1.0
        if 100 <= length <= 1500:
            return 0.8
        if 50 <= length <= 2000:
            return 0.6
        if length < 50:
            return 0.3
        return max(0.2, 1.0 - (length - 2000) / 10000.0)


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    intersection = len(a & b)
    union = len(a) + len(b) - intersection
    return intersection / union if union else 0.0


class DiversityPenalty:
    """Down-weights near-duplicates of earlier candidates.

    Each candidate is compared with every candidate before it (input order);
    every comparison above the threshold multiplies its total by the
    penalty, so repeated near-duplicates compound.
    """

    def __init__(self, constants: ScoringConstants = ScoringConstants()):
        self._constants = constants

    def apply(self, scored: list[ScoredCandidate]) -> None:
        if len(scored) <= 1:
            return

        token_sets = [token_set(s.candidate.text or "", self._constants) for s in scored]
        for i, current in enumerate(scored):
            factor = 1.0
            for j in range(i):
                similarity = jaccard_similarity(token_sets[i], token_sets[j])
                if similarity > self._constants.high_similarity_threshold:
                    factor *= self._constants.similarity_penalty
            if factor < 1.0:
                logger.debug(f"Diversity penalty x{factor:.2f} for '{current.candidate.text[:40]}'")
            current.total *= factor
