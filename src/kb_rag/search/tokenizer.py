"""
Word tokenization for lexical scoring and near-duplicate detection.

These are word tokens, NOT LLM tokens. Token budgets use
kb_rag.rag.token_budget.estimate_tokens instead.
"""

import re
from typing import FrozenSet, List, Optional, Set

# Minimal English/Portuguese stopword set
DEFAULT_STOPWORDS: FrozenSet[str] = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "is", "are", "was", "were", "be", "been", "have",
        "has", "had", "do", "does", "did", "will", "would", "should", "could",
        "can", "o", "os", "as", "um", "uma", "de", "da", "dos", "das",
        "em", "no", "na", "e", "para", "por", "com", "que",
    }
)

# Shortest word kept by significant_words
MIN_SIGNIFICANT_WORD_LENGTH = 3


def significant_words(text: str) -> Set[str]:
    """
    Lower-cased, whitespace-split words longer than two characters.

    Punctuation stays attached to the word ("brand," and "brand" differ).

    Args:
        text: Text to split

    Returns:
        Set of words
    """
    return {w for w in text.lower().split() if len(w) >= MIN_SIGNIFICANT_WORD_LENGTH}


class WordTokenizer:
    """
    Word tokenizer for BM25 scoring.

    Uses regex word splits, lowercase normalization, and optional stopwords.
    """

    def __init__(self, use_stopwords: bool = False, stopwords: Optional[Set[str]] = None):
        """
        Initialize tokenizer.

        Args:
            use_stopwords: Whether to filter stopwords
            stopwords: Custom stopword set (defaults to DEFAULT_STOPWORDS)
        """
        self.use_stopwords = use_stopwords
        self.stopwords = DEFAULT_STOPWORDS if stopwords is None else frozenset(stopwords)

    def tokenize(self, text: str) -> List[str]:
        """
        Tokenize text.

        - Lowercase
        - Regex word splits (\\w+)
        - Optional stopword filtering
        """
        tokens = re.findall(r"\w+", text.lower())
        if self.use_stopwords:
            tokens = [t for t in tokens if t not in self.stopwords]
        return tokens
