"""
Fixed-length padding for token-id sequences.

Both directions default to "pre": long sequences lose their first tokens
(the tail of a question is kept) and short ones are filled at the front.
Training and scoring go through the same `PipelineConfig` values, so the
policy never differs between the two.
"""

from typing import Sequence

import numpy as np

from quora_pairs.tokenizer import encode_texts

POLICIES = ("pre", "post")


def pad_sequence(seq: Sequence[int], max_len: int, pad_value: int,
                 padding: str = "pre", truncating: str = "pre") -> list[int]:
    if max_len < 1:
        raise ValueError(f"max_len must be positive, got {max_len}")
    if padding not in POLICIES or truncating not in POLICIES:
        raise ValueError(f"padding/truncating must be one of {POLICIES}")

    seq = list(seq)
    if len(seq) >= max_len:
        return seq[-max_len:] if truncating == "pre" else seq[:max_len]

    fill = [pad_value] * (max_len - len(seq))
    return fill + seq if padding == "pre" else seq + fill


def pad_sequences(seqs, max_len: int, pad_value: int,
                  padding: str = "pre", truncating: str = "pre") -> np.ndarray:
    """Pad a batch into an int64 array of shape (len(seqs), max_len)."""
    out = np.full((len(seqs), max_len), pad_value, dtype=np.int64)
    for i, seq in enumerate(seqs):
        out[i] = pad_sequence(seq, max_len, pad_value, padding, truncating)
    return out


def texts_to_padded(vocabulary, texts, config) -> np.ndarray:
    """Normalize, encode and pad `texts` with the vocabulary's pad sentinel."""
    seqs = encode_texts(vocabulary, texts)
    return pad_sequences(seqs, config.max_len, vocabulary.pad_value,
                         config.padding, config.truncating)
