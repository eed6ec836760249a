"""
Word-level tokenizer for question text.

A `Vocabulary` ranks normalized tokens by descending frequency over the
unique question pool (ties go to the token seen first) and keeps the top
`vocab_size` of them.  Rank 0 means "unknown", rank `vocab_size + 1` is
reserved for padding, so every encoded id lies in [0, vocab_size].
"""

import hashlib, json
from collections import Counter
from types import MappingProxyType
from typing import Iterable

# Same character set the Keras text tokenizer strips; the apostrophe is kept
# so that "what's" stays a single token.
FILTERS = '!"#$%&()*+,-./:;<=>?@[\\]^_`{|}~\t\n'
_TRANSLATE = str.maketrans({c: " " for c in FILTERS})

UNKNOWN = 0


def normalize(text: str) -> list[str]:
    """Lowercase, replace punctuation with spaces, split on whitespace."""
    return str(text).lower().translate(_TRANSLATE).split()


class Vocabulary:
    """Frozen token → rank mapping."""

    def __init__(self, word_index: dict, vocab_size: int, word_counts: dict | None = None):
        if vocab_size < 1:
            raise ValueError(f"vocab_size must be positive, got {vocab_size}")
        ranks = sorted(word_index.values())
        if ranks != list(range(1, len(ranks) + 1)) or len(ranks) > vocab_size:
            raise ValueError("ranks must be dense integers in [1, vocab_size]")

        ordered = sorted(word_index.items(), key=lambda kv: kv[1])
        self._word_index = MappingProxyType(dict(ordered))
        self._word_counts = MappingProxyType(
            {w: int(word_counts[w]) for w, _ in ordered} if word_counts else {})
        self._vocab_size = int(vocab_size)
        self._signature = None

    @property
    def vocab_size(self) -> int:
        return self._vocab_size

    @property
    def pad_value(self) -> int:
        return self._vocab_size + 1

    @property
    def word_index(self):
        return self._word_index

    @property
    def word_counts(self):
        return self._word_counts

    @property
    def signature(self) -> str:
        """SHA-256 over the size and the ordered mapping."""
        if self._signature is None:
            payload = json.dumps([self._vocab_size, list(self._word_index.items())],
                                 ensure_ascii=False, separators=(",", ":"))
            self._signature = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return self._signature

    def rank(self, token: str) -> int:
        return self._word_index.get(token, UNKNOWN)

    def __len__(self):
        return len(self._word_index)

    def __contains__(self, token):
        return token in self._word_index

    def __eq__(self, other):
        if not isinstance(other, Vocabulary):
            return NotImplemented
        return (self._vocab_size == other._vocab_size
                and list(self._word_index.items()) == list(other._word_index.items()))

    def __hash__(self):
        return hash(self.signature)

    def __repr__(self):
        return f"Vocabulary(tokens={len(self)}, vocab_size={self._vocab_size})"

    # ── Persistence ──────────────────────────────────────────────
    def to_dict(self) -> dict:
        return {
            "vocab_size": self._vocab_size,
            "word_index": dict(self._word_index),
            "word_counts": dict(self._word_counts),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Vocabulary":
        return cls(
            word_index={w: int(r) for w, r in data["word_index"].items()},
            vocab_size=int(data["vocab_size"]),
            word_counts=data.get("word_counts") or None,
        )

    def save(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False)

    @classmethod
    def load(cls, path: str) -> "Vocabulary":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


def fit_vocabulary(corpus: Iterable[str], vocab_size: int) -> Vocabulary:
    """Build a vocabulary from `corpus` (normally the unique question pool)."""
    counts = Counter()
    n_docs = 0
    for text in corpus:
        counts.update(normalize(text))
        n_docs += 1
    if n_docs == 0:
        raise ValueError("cannot fit a vocabulary on an empty corpus")

    # Counter keeps insertion order and sorted() is stable, so equal counts
    # stay in first-seen order.
    ranked = sorted(counts.items(), key=lambda kv: -kv[1])[:vocab_size]
    word_index = {w: i for i, (w, _) in enumerate(ranked, start=1)}
    return Vocabulary(word_index, vocab_size, word_counts=dict(ranked))


def encode(vocabulary: Vocabulary, text: str) -> list[int]:
    return [vocabulary.rank(tok) for tok in normalize(text)]


def encode_texts(vocabulary: Vocabulary, texts: Iterable[str]) -> list[list[int]]:
    return [encode(vocabulary, t) for t in texts]
