"""
Evaluation script for the Quora duplicate-question classifier.

Loads the saved vocabulary and models, scores the held-out test split next
to the overlap benchmark, prints a classification report and confusion
matrix, and saves all metrics to JSON.

Usage:
    python -m quora_pairs.evaluate                              # every saved variant
    python -m quora_pairs.evaluate --variant lstm
    python -m quora_pairs.evaluate --model ./outputs/quora_pairs/lstm_model.pt
    python -m quora_pairs.evaluate --output artifacts/metrics.json
"""

import argparse, json, os, warnings
from dataclasses import replace

import joblib
import numpy as np
import pandas as pd

from sklearn.metrics import (
    accuracy_score, classification_report, confusion_matrix, f1_score, log_loss,
)

from quora_pairs.benchmark import evaluate_benchmark, pair_features
from quora_pairs.config import PipelineConfig
from quora_pairs.model import VARIANTS, SimilarityModel, load_model
from quora_pairs.padding import texts_to_padded
from quora_pairs.preprocess import load_splits
from quora_pairs.tokenizer import Vocabulary, encode_texts

warnings.filterwarnings("ignore", category=FutureWarning)


# ─── Scoring ────────────────────────────────────────────────────
def _scoring_config(model: SimilarityModel, config: PipelineConfig | None) -> PipelineConfig:
    """Caller's config with the sequence shape the model was trained on."""
    return replace(config or PipelineConfig(), max_len=model.spec.max_len,
                   padding=model.spec.padding, truncating=model.spec.truncating)


def predict_pairs(model: SimilarityModel, vocabulary: Vocabulary, questions1, questions2,
                  config: PipelineConfig | None = None) -> np.ndarray:
    """Duplicate probabilities for two equally long collections of questions.

    Raises `VocabularyMismatchError` when `vocabulary` is not the one the
    model was trained with.
    """
    model.check_vocabulary(vocabulary)
    cfg = _scoring_config(model, config)
    q1 = texts_to_padded(vocabulary, list(questions1), cfg)
    q2 = texts_to_padded(vocabulary, list(questions2), cfg)
    return model.predict_proba(q1, q2)


def predict_question_pairs(model: SimilarityModel, vocabulary: Vocabulary,
                           q1: str, q2: str,
                           config: PipelineConfig | None = None) -> float:
    return float(predict_pairs(model, vocabulary, [q1], [q2], config)[0])


def score_predictions(labels, probs, threshold: float = 0.5) -> dict:
    """Metrics for precomputed probabilities; a pair is a duplicate when p > threshold."""
    labels = np.asarray(labels).astype(int)
    probs = np.asarray(probs, dtype=np.float64)
    preds = (probs > threshold).astype(int)
    return {
        "loss": round(float(log_loss(labels, probs, labels=[0, 1])), 4),
        "accuracy": round(float(accuracy_score(labels, preds)), 4),
        "macro_f1": round(float(f1_score(labels, preds, average="macro")), 4),
        "confusion_matrix": confusion_matrix(labels, preds, labels=[0, 1]).tolist(),
    }


def evaluate_model(model: SimilarityModel, vocabulary: Vocabulary, dfx: pd.DataFrame,
                   config: PipelineConfig | None = None) -> dict:
    threshold = (config or PipelineConfig()).threshold
    probs = predict_pairs(model, vocabulary, dfx["question1"], dfx["question2"], config)
    return score_predictions(dfx["is_duplicate"], probs, threshold)


# ─── Demo Predictions ───────────────────────────────────────────
DEMO_PAIRS = [
    ("How do I learn Python quickly?", "What is the fastest way to learn Python?"),
    ("What is the capital of France?", "How tall is Mount Everest?"),
    ("How can I lose weight fast?", "What are quick ways to lose weight?"),
    ("Why is the sky blue?", "What is machine learning?"),
]


def demo(model: SimilarityModel, vocabulary: Vocabulary, config: PipelineConfig | None = None):
    """Run a few demo predictions to sanity-check the model."""
    threshold = (config or PipelineConfig()).threshold
    print("\n── Demo Predictions ─────────────────────────────")
    for q1, q2 in DEMO_PAIRS:
        p = predict_question_pairs(model, vocabulary, q1, q2, config)
        label = "duplicate" if p > threshold else "not_duplicate"
        print(f"\n  Q1: {q1}\n  Q2: {q2}")
        print(f"  → {label} ({p:.4f})")


# ─── Main ───────────────────────────────────────────────────────
def main():
    parser = argparse.ArgumentParser(description="Evaluate Quora duplicate-question models")
    parser.add_argument("--variant", choices=[*VARIANTS, "both"], default="both")
    parser.add_argument("--model", type=str, default=None,
                        help="Checkpoint to evaluate (overrides --variant)")
    parser.add_argument("--output", type=str, default="artifacts/metrics.json",
                        help="Path to save metrics JSON")
    args = parser.parse_args()

    config = PipelineConfig()
    vocabulary = Vocabulary.load(config.vocabulary_path)
    print(f"Vocabulary loaded: {len(vocabulary)} tokens")

    _, _, df_test = load_splits(config)
    print(f"Test samples: {len(df_test)}")
    labels = df_test["is_duplicate"].to_numpy(dtype=int)

    metrics = {}
    if os.path.exists(config.benchmark_path):
        clf = joblib.load(config.benchmark_path)
        feats = pair_features(encode_texts(vocabulary, df_test["question1"]),
                              encode_texts(vocabulary, df_test["question2"]))
        metrics["benchmark"] = evaluate_benchmark(clf, feats, labels, config.threshold)
        print(f"\n=== Benchmark ===\n  loss: {metrics['benchmark']['loss']}"
              f"\n  accuracy: {metrics['benchmark']['accuracy']}")

    if args.model:
        paths = [args.model]
    else:
        variants = VARIANTS if args.variant == "both" else (args.variant,)
        paths = [config.model_path(v) for v in variants]

    last_model = None
    for path in paths:
        if not os.path.exists(path):
            print(f"\nNo saved model at {path}, skipping")
            continue
        model = load_model(path)
        variant = model.spec.variant
        probs = predict_pairs(model, vocabulary, df_test["question1"],
                              df_test["question2"], config)
        m = score_predictions(labels, probs, config.threshold)
        metrics[variant] = m
        last_model = model

        cm = m["confusion_matrix"]
        print(f"\n=== Test Metrics ({variant}) ===")
        for k in ("loss", "accuracy", "macro_f1"):
            print(f"  {k}: {m[k]}")
        print(f"\nConfusion Matrix:\n  Pred →   0     1")
        print(f"  Act 0: {cm[0][0]:>5} {cm[0][1]:>5}")
        print(f"  Act 1: {cm[1][0]:>5} {cm[1][1]:>5}")
        preds = (probs > config.threshold).astype(int)
        print(classification_report(labels, preds, labels=[0, 1],
                                    target_names=["not_dup", "dup"], zero_division=0))

    os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
    with open(args.output, "w") as f:
        json.dump(metrics, f, indent=2)
    print(f"Metrics saved to {args.output}")

    if last_model is not None:
        demo(last_model, vocabulary, config)

    print("\n✅ Done!")


if __name__ == "__main__":
    main()
