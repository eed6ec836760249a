"""
Quora Duplicate Question Pairs (quora_pairs)

Trains a dual-encoder similarity model (word embeddings, optionally an LSTM,
joined by a dot product) to decide whether two Quora questions ask the same
thing, and compares it against a token-overlap logistic-regression baseline.

Modules:
    config      — Centralized hyperparameters, paths and PipelineConfig
    preprocess  — TSV loading, schema checks, leakage-free splits
    tokenizer   — Frequency-ranked vocabulary and text encoding
    padding     — Fixed-length padding / truncation
    benchmark   — Token-overlap features and logistic-regression baseline
    model       — Model specs, SimilarityModel, checkpoints
    train       — Training loop with early stopping and LR decay
    evaluate    — Scoring function, test metrics and demo predictions
"""

__version__ = "1.0.0"
