"""
Identifier similarity for cohesion and duplication rules.

Two backends share one interface:
- lexical: bag-of-words cosine over identifier tokens (numpy)
- semantic: sentence-transformers embeddings with automatic GPU detection
"""

from __future__ import annotations

import re
from typing import Any, Optional, Protocol

from domainscope.config import (
    DEFAULT_MODEL,
    DEFAULT_SIMILARITY_BACKEND,
    EMBEDDING_MODELS,
    IDENTIFIER_STOP_WORDS,
    detect_device,
)
from domainscope.utils.lazy_imports import LazyClassLoader, lazy_import, require_optional
from domainscope.utils.logging_config import get_logger

logger = get_logger(__name__)

# Lazy load numpy
_np = lazy_import('numpy')

_SentenceTransformer = LazyClassLoader('sentence_transformers', 'SentenceTransformer')

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_NON_WORD = re.compile(r"[^A-Za-z0-9]+")


def _stem(token: str) -> str:
    """Very light suffix stripping so that 'users' and 'user' match."""
    for suffix in ("ies", "ing", "ers", "er", "es", "s"):
        if token.endswith(suffix) and len(token) - len(suffix) >= 3:
            if suffix == "ies":
                return token[:-3] + "y"
            return token[: -len(suffix)]
    return token


def tokenize_identifier(identifier: str) -> list[str]:
    """
    Split an identifier into lowercase word tokens.

    Handles camelCase, PascalCase, snake_case, kebab-case and dotted names.
    Stop words and tokens shorter than three characters are dropped.

    Example:
        tokenize_identifier("UserProfileService.getUsers")
        -> ['user', 'profile', 'service', 'user']
    """
    tokens: list[str] = []
    for chunk in _NON_WORD.split(identifier):
        for word in _CAMEL_BOUNDARY.split(chunk):
            word = word.lower()
            if len(word) < 3 or word.isdigit() or word in IDENTIFIER_STOP_WORDS:
                continue
            tokens.append(_stem(word))
    return tokens


def name_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the token sets of two identifiers."""
    tokens_a, tokens_b = set(tokenize_identifier(a)), set(tokenize_identifier(b))
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


class SimilarityBackend(Protocol):
    name: str

    def pairwise(self, texts: list[str]) -> Any:
        """Return an N x N similarity matrix (numpy array) for texts."""
        ...


class LexicalSimilarity:
    """Cosine similarity of identifier token counts."""

    name = "lexical"

    def pairwise(self, texts: list[str]) -> Any:
        np = _np._load()

        token_lists = [tokenize_identifier(t) for t in texts]
        vocabulary = sorted({tok for tokens in token_lists for tok in tokens})
        if not vocabulary:
            return np.zeros((len(texts), len(texts)))

        index = {tok: i for i, tok in enumerate(vocabulary)}
        vectors = np.zeros((len(texts), len(vocabulary)))
        for row, tokens in enumerate(token_lists):
            for tok in tokens:
                vectors[row, index[tok]] += 1.0

        norms = np.linalg.norm(vectors, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        normalized = vectors / norms
        return normalized @ normalized.T


class SemanticSimilarity:
    """Cosine similarity of sentence-transformers embeddings."""

    name = "semantic"

    def __init__(self, model_name: str = DEFAULT_MODEL) -> None:
        self._model_key = model_name
        self._model: Optional[Any] = None

    def _get_model(self) -> Any:
        """Lazy load the embedding model with automatic device detection."""
        if self._model is None:
            require_optional("sentence_transformers", "Semantic similarity")
            model_name = EMBEDDING_MODELS.get(self._model_key, self._model_key)
            device = detect_device()
            logger.info(f"Loading embedding model '{model_name}' on {device}")
            self._model = _SentenceTransformer(model_name, device=device)
        return self._model

    def pairwise(self, texts: list[str]) -> Any:
        np = _np._load()
        if not texts:
            return np.zeros((0, 0))

        # Embed the split words; raw identifiers tokenize poorly
        sentences = [" ".join(tokenize_identifier(t)) or t for t in texts]
        embeddings = self._get_model().encode(
            sentences,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return np.asarray(embeddings) @ np.asarray(embeddings).T


def get_similarity_backend(name: str = DEFAULT_SIMILARITY_BACKEND) -> SimilarityBackend:
    """
    Resolve a similarity backend by name.

    Raises:
        ValueError: If the backend name is unknown
    """
    if name == "lexical":
        return LexicalSimilarity()
    if name == "semantic":
        return SemanticSimilarity()
    raise ValueError(f"Unknown similarity backend: {name}. Use 'lexical' or 'semantic'")


def mean_pairwise_similarity(matrix: Any) -> float:
    """Mean of the strict upper triangle (every unordered pair once)."""
    np = _np._load()
    size = matrix.shape[0]
    if size < 2:
        return 1.0
    upper = matrix[np.triu_indices(size, k=1)]
    return float(upper.mean())
