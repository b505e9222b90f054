"""Embedder and tokenizer collaborators."""

from .base import Embedder, Tokenizer
from .hash_embedder import HashEmbedder
from .tokenizer import SimpleTokenizer

__all__ = ["Embedder", "HashEmbedder", "SimpleTokenizer", "Tokenizer"]
