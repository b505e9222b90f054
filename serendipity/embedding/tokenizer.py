"""
Default tokenizer: NFKC normalization (full-width -> half-width), lowercase,
word split, punctuation dropped, duplicates removed in first-seen order.
"""

import re
import unicodedata
from typing import List

_WORD = re.compile(r"\w+", re.UNICODE)


class SimpleTokenizer:
    def __init__(self, min_length: int = 1):
        self.min_length = min_length

    def tokenize(self, text: str) -> List[str]:
        if not text:
            return []
        normalized = unicodedata.normalize("NFKC", text).lower()
        seen = set()
        tokens: List[str] = []
        for token in _WORD.findall(normalized):
            if len(token) < self.min_length or token in seen:
                continue
            seen.add(token)
            tokens.append(token)
        return tokens
