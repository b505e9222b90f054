"""
Lexical matching of query tokens against candidate title and content.

text_score = (2 * title_matches + content_matches) / (3 * token_count)

A match is case-insensitive substring containment of a token. The score is
not clamped; a tokenizer that repeats tokens can push it past 1.
"""

import logging
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from ..errors import upstream_stage
from ..embedding.base import Tokenizer
from ..embedding.tokenizer import SimpleTokenizer
from ..models.record import VectorRecord

logger = logging.getLogger(__name__)


def _fold(text: str) -> str:
    return unicodedata.normalize("NFKC", text or "").lower()


@dataclass
class TextMatch:
    record: VectorRecord
    title_matches: int
    content_matches: int
    score: float

    @property
    def total_matches(self) -> int:
        return self.title_matches + self.content_matches


class TextMatchScorer:
    def __init__(self, tokenizer: Optional[Tokenizer] = None):
        self.tokenizer = tokenizer or SimpleTokenizer()

    def tokens(self, query: Optional[str]) -> List[str]:
        """Tokenize a query; tokenizer failures surface as UpstreamError(tokenize)."""
        if not query or not query.strip():
            return []
        with upstream_stage("tokenize"):
            return [t for t in self.tokenizer.tokenize(query) if t]

    @staticmethod
    def count(tokens: Sequence[str], title: str, content: str):
        """(title_matches, content_matches, score) for one candidate."""
        if not tokens:
            return 0, 0, 0.0
        title_l = _fold(title)
        content_l = _fold(content)
        title_matches = sum(1 for t in tokens if t in title_l)
        content_matches = sum(1 for t in tokens if t in content_l)
        score = (2 * title_matches + content_matches) / (3 * len(tokens))
        return title_matches, content_matches, score

    def score_record(self, tokens: Sequence[str], record: VectorRecord) -> TextMatch:
        title_matches, content_matches, score = self.count(tokens, record.title, record.content)
        return TextMatch(record, title_matches, content_matches, score)

    def match(self, tokens: Sequence[str], records: Iterable[VectorRecord], limit: int) -> List[TextMatch]:
        """Records with at least one match, best weighted match count first."""
        if not tokens:
            return []
        matches = [m for m in (self.score_record(tokens, r) for r in records) if m.total_matches > 0]
        # 2 per title hit, 1 per content hit; stable for ties
        matches.sort(key=lambda m: 2 * m.title_matches + m.content_matches, reverse=True)
        logger.debug("[text_match] TOKENS=%d matched=%d limit=%d", len(tokens), len(matches), limit)
        return matches[:limit]
