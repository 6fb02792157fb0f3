"""Candidate file selection and model-type compatibility heuristics.

Both heuristics are ordered tables of (predicate, label) pairs evaluated top
to bottom; the first matching entry wins, so the table order is behavior.
"""
import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple

from .entity import ArtifactId, ArtifactType

logger = logging.getLogger(__name__)

Predicate = Callable[[str], bool]


def _matches(pattern: str) -> Predicate:
    rx = re.compile(pattern, re.IGNORECASE)
    return lambda name: rx.search(name) is not None


SELECTION_TIERS: List[Tuple[Predicate, str]] = [
    (_matches(r"q4_0|q4_k_m"), "q4"),
    (_matches(r"q8_0|f16"), "q8/f16"),
    (lambda name: True, "first"),
]


def select_best_file(files: Sequence[str]) -> str:
    """Pick one file, preferring Q4 quantizations, then Q8/F16, then the first listed."""
    if not files:
        raise ValueError("select_best_file requires at least one candidate")
    for predicate, label in SELECTION_TIERS:
        for name in files:
            if predicate(name):
                logger.debug("Selected %s via %s tier", name, label)
                return name


_EMBEDDING_HINT = _matches(r"embed|bge|e5-|gte|nomic|minilm|mxbai")
_RERANK_HINT = _matches(r"rerank|cross-encoder")

# (predicate over "<model id> <file>", warning) per declared type; a match
# means the name looks like a different kind of model.
COMPATIBILITY_RULES = {
    ArtifactType.COMPLETION: [
        (_RERANK_HINT, "name suggests a reranking model"),
        (_EMBEDDING_HINT, "name suggests an embedding model"),
    ],
    ArtifactType.EMBEDDING: [
        (_RERANK_HINT, "name suggests a reranking model"),
        (lambda text: not _EMBEDDING_HINT(text), "name has no embedding marker"),
    ],
    ArtifactType.RERANKING: [
        (lambda text: not _RERANK_HINT(text), "name has no reranking marker"),
    ],
}


def check_compatibility(model_id: ArtifactId, model_type: ArtifactType,
                        filename: Optional[str] = None) -> Optional[str]:
    """Return a warning when the model name looks unsuited for model_type.

    Informational only; callers log the result and carry on.
    """
    text = f"{model_id} {filename or ''}"
    for predicate, label in COMPATIBILITY_RULES.get(ArtifactType(model_type), []):
        if predicate(text):
            return f"{model_id} may not be a {ArtifactType(model_type).value} model: {label}"
    return None
