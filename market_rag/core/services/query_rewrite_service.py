"""Query rewrite service - rule-based query expansion."""

import logging
import re
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)

DEFAULT_SYNONYMS: dict[str, list[str]] = {
    # 基础金融词汇
    "股票": ["证券", "股份", "股权", "个股", "股价"],
    "价格": ["股价", "价值", "估值", "报价"],
    "上涨": ["涨幅", "增长", "攀升", "走高", "上升"],
    "下跌": ["跌幅", "下降", "回落", "走低", "下滑"],
    "财报": ["年报", "季报", "业绩", "财务报告", "财务数据"],
    "收益": ["利润", "盈利", "净利", "净利润"],
    "营收": ["收入", "营业收入", "营业额"],
    "市场": ["股市", "A股", "港股", "美股", "证券市场"],
    "分析": ["研究", "评价", "评估", "解读"],
    "投资": ["持仓", "配置", "买入", "建仓"],
    "风险": ["波动", "不确定性", "风险点", "隐患"],
    "趋势": ["走势", "方向", "态势", "发展"],
    # 热门行业
    "AI": ["人工智能", "机器学习", "深度学习"],
    "新能源": ["电动车", "新能车", "锂电", "光伏", "风电"],
    "芯片": ["半导体", "集成电路", "处理器"],
    "医药": ["生物医药", "制药", "医疗"],
    "房地产": ["地产", "房产"],
    # 宏观经济
    "降息": ["货币宽松", "降准"],
    "加息": ["货币紧缩", "加息周期"],
    "通胀": ["通货膨胀", "CPI上升"],
    "GDP": ["经济增长", "国内生产总值"],
}

ANALYSIS_DIMENSIONS = ["基本面", "技术面", "消息面", "估值", "风险", "催化剂", "政策面"]
TIME_FRAMES = ["最新", "近一个月", "近三个月", "近半年", "近一年", "历史"]
INFO_TYPES = ["数据", "指标", "新闻", "公告", "研报", "财报", "分析"]
STOP_WORDS = {"的", "了", "呢", "吗", "啊", "吧", "和", "与", "或", "但", "是", "在"}

MAX_KEYWORDS = 5

_WHITESPACE = re.compile(r"\s+")
_WORD_SEPARATORS = re.compile(r"[ ，。、]+")
_CJK_WORD = re.compile(r"[\u4e00-\u9fa5]{2,}")
_LATIN_WORD = re.compile(r"^[A-Za-z]+$")
_YEAR = re.compile(r"^\d{4}$")


def normalize_query(query: str) -> str:
    query = query.strip().replace("\r", "").replace("\n", "").replace("\t", " ")
    return _WHITESPACE.sub(" ", query)


def distinct_keep_order(candidates: Iterable[str]) -> list[str]:
    """Drop empty and case-insensitive duplicate candidates, keeping first seen."""
    seen: set[str] = set()
    result = []
    for candidate in candidates:
        candidate = candidate.strip()
        folded = candidate.casefold()
        if candidate and folded not in seen:
            seen.add(folded)
            result.append(candidate)
    return result


class QueryRewriteService:
    """Expands a query into alternative phrasings without a model call.

    Rules run in priority order: synonym substitution, analysis dimension,
    time frame and information type qualifiers, keyword pairs, then stop-word
    compaction. Generation stops as soon as enough distinct candidates exist.
    """

    def __init__(
        self,
        synonyms: dict[str, list[str]] | None = None,
        dimensions: list[str] | None = None,
        time_frames: list[str] | None = None,
        info_types: list[str] | None = None,
        stop_words: set[str] | None = None,
    ):
        self._synonyms = synonyms if synonyms is not None else DEFAULT_SYNONYMS
        self._dimensions = dimensions if dimensions is not None else ANALYSIS_DIMENSIONS
        self._time_frames = time_frames if time_frames is not None else TIME_FRAMES
        self._info_types = info_types if info_types is not None else INFO_TYPES
        self._stop_words = {w.casefold() for w in (stop_words or STOP_WORDS)}

    def rewrite(self, query: str, max_candidates: int = 3) -> list[str]:
        """Generate up to ``max_candidates`` distinct alternative queries.

        Args:
            query: Original user query.
            max_candidates: Upper bound on returned candidates.

        Returns:
            Non-empty, case-insensitively distinct candidates in generation
            order. Empty for a blank query or a non-positive bound.
        """
        if not query or not query.strip() or max_candidates <= 0:
            return []

        normalized = normalize_query(query)
        original = normalized.casefold()
        result: list[str] = []
        seen: set[str] = set()

        for candidate in self._generate(normalized):
            candidate = candidate.strip()
            folded = candidate.casefold()
            if not candidate or folded == original or folded in seen:
                continue
            seen.add(folded)
            result.append(candidate)
            if len(result) >= max_candidates:
                break

        logger.info(f"Generated {len(result)} query variants for: '{query[:50]}'")
        return result

    def _generate(self, query: str) -> Iterator[str]:
        yield from self._synonym_variants(query)
        for qualifiers in (self._dimensions, self._time_frames, self._info_types):
            for qualifier in qualifiers:
                yield f"{query} {qualifier}"
        yield from self._keyword_variants(query)
        yield self._remove_stop_words(query)

    def _synonym_variants(self, query: str) -> Iterator[str]:
        for term, alternatives in self._synonyms.items():
            pattern = re.compile(re.escape(term), re.IGNORECASE)
            if not pattern.search(query):
                continue
            for alternative in alternatives:
                yield pattern.sub(lambda _: alternative, query)

    def _keyword_variants(self, query: str) -> Iterator[str]:
        keywords = self.extract_keywords(query)
        if len(keywords) <= 1:
            return
        for i in range(min(2, len(keywords))):
            for j in range(i + 1, min(3, len(keywords))):
                yield f"{keywords[i]} {keywords[j]}"

    def extract_keywords(self, query: str) -> list[str]:
        """Longest-first keywords: CJK words, latin words and years."""
        keywords = _CJK_WORD.findall(query)
        for word in _WORD_SEPARATORS.split(query):
            word = word.strip("()[]\"'")
            if len(word) >= 2 and (_LATIN_WORD.match(word) or _YEAR.match(word)):
                keywords.append(word)

        keywords = distinct_keep_order(keywords)
        keywords.sort(key=len, reverse=True)
        return keywords[:MAX_KEYWORDS]

    def _remove_stop_words(self, query: str) -> str:
        words = [w for w in _WORD_SEPARATORS.split(query) if w]
        return " ".join(w for w in words if w.casefold() not in self._stop_words).strip()
