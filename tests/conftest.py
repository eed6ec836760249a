"""Shared pytest fixtures."""

import numpy as np
import pandas as pd
import pytest

from quora_pairs.config import PipelineConfig
from quora_pairs.preprocess import unique_questions
from quora_pairs.tokenizer import fit_vocabulary

WORDS_A = [f"alpha{i}" for i in range(10)]
WORDS_B = [f"beta{i}" for i in range(10)]


def make_separable_pairs(n: int = 400, seed: int = 0) -> pd.DataFrame:
    """Even rows: a question paired with itself (duplicate).
    Odd rows: an alpha-only question against a beta-only one."""
    rng = np.random.default_rng(seed)
    rows = []
    for i in range(n):
        if i % 2 == 0:
            q = " ".join(rng.choice(WORDS_A + WORDS_B, size=4))
            q1, q2, label = q + "?", q, 1
        else:
            q1 = " ".join(rng.choice(WORDS_A, size=4)) + "?"
            q2 = " ".join(rng.choice(WORDS_B, size=4))
            label = 0
        rows.append({"id": i, "qid1": 2 * i + 1, "qid2": 2 * i + 2,
                     "question1": q1, "question2": q2, "is_duplicate": label})
    return pd.DataFrame(rows)


@pytest.fixture
def small_config(tmp_path):
    return PipelineConfig(
        seed=0,
        vocab_size=20,
        max_len=4,
        embedding_size=8,
        lstm_size=8,
        epochs=60,
        batch_size=32,
        lr=0.05,
        patience=10,
        lr_patience=5,
        prep_dir=str(tmp_path / "prepared"),
        out_dir=str(tmp_path / "out"),
    )


@pytest.fixture
def pairs_df():
    return make_separable_pairs()


@pytest.fixture
def vocabulary(pairs_df, small_config):
    return fit_vocabulary(unique_questions(pairs_df), small_config.vocab_size)
