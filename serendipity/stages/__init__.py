"""
Retrieval and ranking stages.

- perturbation: query noise for exploratory modes
- similarity_search: vector retrieval over the candidate window
- text_match: lexical matching
- hybrid_scoring: weighted factor fusion
- diversity: greedy MMR reranking
- clustering: k-means++ over stored vectors
"""

from .clustering import ClusterEngine
from .diversity import DiversityReranker
from .hybrid_scoring import HybridScorer
from .perturbation import PerturbationGenerator, PerturbationType
from .similarity_search import SimilaritySearchEngine
from .text_match import TextMatch, TextMatchScorer

__all__ = [
    "ClusterEngine",
    "DiversityReranker",
    "HybridScorer",
    "PerturbationGenerator",
    "PerturbationType",
    "SimilaritySearchEngine",
    "TextMatch",
    "TextMatchScorer",
]
