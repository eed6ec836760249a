"""
Token-overlap benchmark.

Each pair gets two directional features: the share of question-1 tokens that
occur anywhere in question 2, and vice versa.  A logistic regression on those
two numbers is the baseline the neural models have to beat.  An empty
question makes its feature undefined (NaN); such rows are dropped, never
imputed.
"""

import math
from typing import Sequence

import numpy as np
import pandas as pd

from sklearn.linear_model import LogisticRegression
from sklearn.metrics import accuracy_score, log_loss

FEATURE_COLUMNS = ["overlap_q1_in_q2", "overlap_q2_in_q1"]


def overlap_feature(seq_a: Sequence[int], seq_b: Sequence[int]) -> float:
    """Fraction of tokens in `seq_a` present in `seq_b`; NaN when `seq_a` is empty."""
    if len(seq_a) == 0:
        return math.nan
    present = set(seq_b)
    return sum(1 for tok in seq_a if tok in present) / len(seq_a)


def pair_features(seqs1, seqs2) -> pd.DataFrame:
    rows = [(overlap_feature(a, b), overlap_feature(b, a))
            for a, b in zip(seqs1, seqs2)]
    return pd.DataFrame(rows, columns=FEATURE_COLUMNS, dtype=float)


def _complete_rows(features: pd.DataFrame, labels):
    labels = np.asarray(labels)
    mask = features[FEATURE_COLUMNS].notna().all(axis=1).to_numpy()
    return features.loc[mask, FEATURE_COLUMNS].to_numpy(), labels[mask], int((~mask).sum())


def fit_benchmark(features: pd.DataFrame, labels, seed: int = 42) -> LogisticRegression:
    X, y, n_dropped = _complete_rows(features, labels)
    if n_dropped:
        print(f"  Benchmark: dropped {n_dropped} rows with missing features")
    clf = LogisticRegression(random_state=seed)
    clf.fit(X, y)
    return clf


def evaluate_benchmark(clf: LogisticRegression, features: pd.DataFrame, labels,
                       threshold: float = 0.5) -> dict:
    X, y, n_dropped = _complete_rows(features, labels)
    probs = clf.predict_proba(X)[:, 1]
    preds = (probs > threshold).astype(int)
    return {
        "loss": round(float(log_loss(y, probs, labels=[0, 1])), 4),
        "accuracy": round(float(accuracy_score(y, preds)), 4),
        "n_scored": int(len(y)),
        "n_dropped": n_dropped,
    }
