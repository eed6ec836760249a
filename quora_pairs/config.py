"""
Centralized configuration for the Quora duplicate-question classifier.

Module-level values are the defaults; they populate `PipelineConfig`, which
is what every script (`preprocess.py`, `train.py`, `evaluate.py`) and every
component actually receives.  Override fields with `dataclasses.replace`.
"""

import os
from dataclasses import dataclass

# ── Reproducibility ──────────────────────────────────────────────
SEED = 42

# ── Vocabulary / Sequence ────────────────────────────────────────
VOCAB_SIZE = 10_000      # ranks 1..VOCAB_SIZE, 0 = unknown, VOCAB_SIZE+1 = pad
MAX_LEN    = 20
PADDING    = "pre"       # pad at the front
TRUNCATING = "pre"       # drop from the front, keep the tail

# ── Model ────────────────────────────────────────────────────────
EMBEDDING_SIZE = 10
LSTM_SIZE      = 10

# ── Training ─────────────────────────────────────────────────────
EPOCHS      = 50
BATCH_SIZE  = 1024
LR          = 1e-3
PATIENCE    = 4          # early-stopping patience (epochs)
LR_PATIENCE = 2          # plateau epochs before the LR is reduced
LR_FACTOR   = 0.5
MIN_LR      = 1e-5
THRESHOLD   = 0.5

# ── Split ────────────────────────────────────────────────────────
TEST_FRACTION = 0.2
VAL_FRACTION  = 0.2      # of the remaining train+val part

# ── Paths ────────────────────────────────────────────────────────
DATA_PATH = os.getenv("QQP_DATA_PATH", "./data/quora_duplicate_questions.tsv")
PREP_DIR  = os.getenv("QQP_PREP_DIR",  "./data/prepared")
OUT_DIR   = os.getenv("QQP_OUT_DIR",   "./outputs/quora_pairs")


@dataclass(frozen=True)
class PipelineConfig:
    seed: int = SEED

    vocab_size: int = VOCAB_SIZE
    max_len: int = MAX_LEN
    padding: str = PADDING
    truncating: str = TRUNCATING

    embedding_size: int = EMBEDDING_SIZE
    lstm_size: int = LSTM_SIZE

    epochs: int = EPOCHS
    batch_size: int = BATCH_SIZE
    lr: float = LR
    patience: int = PATIENCE
    lr_patience: int = LR_PATIENCE
    lr_factor: float = LR_FACTOR
    min_lr: float = MIN_LR
    threshold: float = THRESHOLD

    test_fraction: float = TEST_FRACTION
    val_fraction: float = VAL_FRACTION

    data_path: str = DATA_PATH
    prep_dir: str = PREP_DIR
    out_dir: str = OUT_DIR

    @property
    def pad_value(self) -> int:
        """Sentinel written into padding positions."""
        return self.vocab_size + 1

    @property
    def vocabulary_path(self) -> str:
        return os.path.join(self.out_dir, "vocabulary.json")

    @property
    def benchmark_path(self) -> str:
        return os.path.join(self.out_dir, "benchmark.joblib")

    def model_path(self, variant: str) -> str:
        return os.path.join(self.out_dir, f"{variant}_model.pt")

    def split_path(self, name: str) -> str:
        return os.path.join(self.prep_dir, f"{name}.parquet")
