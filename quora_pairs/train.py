"""
Training script for the Quora duplicate-question classifier.

Fits the vocabulary on the training questions, scores the token-overlap
benchmark, then trains the dual-encoder variants on the Parquet splits
produced by `preprocess.py`.  The training loop supports:
  • Binary cross-entropy on the logistic output
  • Learning-rate reduction when validation loss plateaus
  • Early stopping on validation loss with best-weight restoration

Usage:
    python -m quora_pairs.train                     # both variants
    python -m quora_pairs.train --variant lstm --epochs 20
"""

import argparse, copy, json, os, random, warnings
from dataclasses import asdict, dataclass, field, replace

import joblib
import numpy as np
import pandas as pd
import torch
from torch.utils.data import DataLoader, TensorDataset
from sklearn.metrics import accuracy_score, log_loss

from quora_pairs.benchmark import evaluate_benchmark, fit_benchmark, pair_features
from quora_pairs.config import PipelineConfig
from quora_pairs.model import (
    VARIANTS, SimilarityModel, build_model, make_spec, save_model,
)
from quora_pairs.padding import texts_to_padded
from quora_pairs.preprocess import load_splits, unique_questions
from quora_pairs.tokenizer import Vocabulary, encode_texts, fit_vocabulary

warnings.filterwarnings("ignore", category=FutureWarning)


def seed_everything(seed: int) -> None:
    random.seed(seed); np.random.seed(seed)
    torch.manual_seed(seed); torch.cuda.manual_seed_all(seed)


# ─── Inputs ─────────────────────────────────────────────────────
def encode_pairs(dfx: pd.DataFrame, vocabulary: Vocabulary, config: PipelineConfig):
    """Padded id arrays for both question columns plus the label vector."""
    q1 = texts_to_padded(vocabulary, dfx["question1"], config)
    q2 = texts_to_padded(vocabulary, dfx["question2"], config)
    y = dfx["is_duplicate"].to_numpy(dtype=np.float32)
    return q1, q2, y


def evaluate_arrays(model: SimilarityModel, q1, q2, y, threshold: float = 0.5) -> dict:
    probs = model.predict_proba(q1, q2).astype(np.float64)
    preds = (probs > threshold).astype(int)
    y = np.asarray(y).astype(int)
    return {
        "loss": float(log_loss(y, probs, labels=[0, 1])),
        "accuracy": float(accuracy_score(y, preds)),
    }


# ─── Tracking ───────────────────────────────────────────────────
class BestModelTracker:
    """Keeps a copy of the weights from the epoch with the lowest validation loss."""

    def __init__(self) -> None:
        self.best_loss: float | None = None
        self.best_epoch: int | None = None
        self._best_state: dict | None = None

    def record_state(self, loss: float, model: torch.nn.Module, epoch: int) -> bool:
        """Store the weights if `loss` improves on the best so far."""
        if self.best_loss is None or loss < self.best_loss:
            self.best_loss = loss
            self.best_epoch = epoch
            self._best_state = copy.deepcopy(model.state_dict())
            return True
        return False

    def restore(self, model: torch.nn.Module) -> None:
        if self._best_state is not None:
            model.load_state_dict(self._best_state)


@dataclass
class TrainingHistoryEntry:
    epoch: int
    train_loss: float
    val_loss: float
    val_accuracy: float
    lr: float


@dataclass
class TrainingResult:
    variant: str
    best_epoch: int
    epochs_run: int
    val_loss: float
    val_accuracy: float
    stopped_early: bool
    history: list[TrainingHistoryEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


# ─── Training loop ──────────────────────────────────────────────
def fit_similarity_model(model: SimilarityModel, train_arrays, val_arrays,
                         config: PipelineConfig, verbose: bool = True) -> TrainingResult:
    """Train `model` in place, restore its best epoch and freeze it.

    `train_arrays` / `val_arrays` are `(q1, q2, y)` tuples from `encode_pairs`.
    Training ends after `config.patience` epochs without a lower validation
    loss, or after `config.epochs`.
    """
    if model.frozen:
        raise RuntimeError("model is frozen; call unfreeze() before training it again")
    if config.epochs < 1 or config.patience < 1:
        raise ValueError(
            f"epochs and patience must be >= 1, got epochs={config.epochs}, "
            f"patience={config.patience}")

    seed_everything(config.seed)
    q1, q2, y = (torch.as_tensor(a) for a in train_arrays)
    loader = DataLoader(
        TensorDataset(q1.long(), q2.long(), y.float()),
        batch_size=config.batch_size, shuffle=True,
        generator=torch.Generator().manual_seed(config.seed),
    )
    vq1, vq2, vy = val_arrays

    device = model.device
    optimizer = torch.optim.Adam(model.parameters(), lr=config.lr)
    scheduler = torch.optim.lr_scheduler.ReduceLROnPlateau(
        optimizer, mode="min", factor=config.lr_factor,
        patience=config.lr_patience, min_lr=config.min_lr)
    criterion = torch.nn.BCEWithLogitsLoss()
    tracker = BestModelTracker()
    history = []
    stopped_early = False

    for epoch in range(1, config.epochs + 1):
        model.train()
        total, seen = 0.0, 0
        for b1, b2, by in loader:
            b1, b2, by = b1.to(device), b2.to(device), by.to(device)
            optimizer.zero_grad()
            loss = criterion(model(b1, b2), by)
            loss.backward()
            optimizer.step()
            total += loss.item() * len(by)
            seen += len(by)

        val = evaluate_arrays(model, vq1, vq2, vy, config.threshold)
        lr = optimizer.param_groups[0]["lr"]
        history.append(TrainingHistoryEntry(
            epoch=epoch, train_loss=total / max(1, seen),
            val_loss=val["loss"], val_accuracy=val["accuracy"], lr=lr))
        if verbose:
            print(f"  Epoch {epoch}/{config.epochs} - loss: {total / max(1, seen):.4f}"
                  f" - val_loss: {val['loss']:.4f} - val_acc: {val['accuracy']:.4f}"
                  f" - lr: {lr:.2e}")

        scheduler.step(val["loss"])
        tracker.record_state(val["loss"], model, epoch)
        if epoch - tracker.best_epoch >= config.patience:
            stopped_early = True
            if verbose:
                print(f"  Early stopping: no improvement since epoch {tracker.best_epoch}")
            break

    tracker.restore(model)
    model.freeze()
    best = history[tracker.best_epoch - 1]
    return TrainingResult(
        variant=model.spec.variant,
        best_epoch=best.epoch,
        epochs_run=len(history),
        val_loss=round(best.val_loss, 4),
        val_accuracy=round(best.val_accuracy, 4),
        stopped_early=stopped_early,
        history=history,
    )


# ─── Benchmark ──────────────────────────────────────────────────
def run_benchmark(df_train: pd.DataFrame, df_val: pd.DataFrame,
                  vocabulary: Vocabulary, config: PipelineConfig):
    """Fit the overlap benchmark on train and score it on val."""
    def feats(dfx):
        return pair_features(encode_texts(vocabulary, dfx["question1"]),
                             encode_texts(vocabulary, dfx["question2"]))

    clf = fit_benchmark(feats(df_train), df_train["is_duplicate"], seed=config.seed)
    metrics = evaluate_benchmark(clf, feats(df_val), df_val["is_duplicate"],
                                 config.threshold)
    return clf, metrics


# ─── Main ───────────────────────────────────────────────────────
def main():
    parser = argparse.ArgumentParser(description="Train Quora duplicate-question models")
    parser.add_argument("--variant", choices=[*VARIANTS, "both"], default="both")
    parser.add_argument("--epochs", type=int, default=None)
    parser.add_argument("--quiet", action="store_true", help="No per-epoch output")
    args = parser.parse_args()

    config = PipelineConfig()
    if args.epochs is not None:
        config = replace(config, epochs=args.epochs)
    seed_everything(config.seed)
    os.makedirs(config.out_dir, exist_ok=True)

    df_train, df_val, _ = load_splits(config)
    print(f"Loaded splits: train={len(df_train)}, val={len(df_val)}")

    # Vocabulary
    vocabulary = fit_vocabulary(unique_questions(df_train), config.vocab_size)
    vocabulary.save(config.vocabulary_path)
    print(f"Vocabulary: {len(vocabulary)} tokens (cap {config.vocab_size}), "
          f"signature={vocabulary.signature[:12]}")

    # Benchmark
    clf, bench = run_benchmark(df_train, df_val, vocabulary, config)
    joblib.dump(clf, config.benchmark_path)
    print(f"Benchmark: val_loss={bench['loss']:.4f}, val_acc={bench['accuracy']:.4f}")

    train_arrays = encode_pairs(df_train, vocabulary, config)
    val_arrays = encode_pairs(df_val, vocabulary, config)

    device = "cuda" if torch.cuda.is_available() else "cpu"
    variants = VARIANTS if args.variant == "both" else (args.variant,)
    summary = {"benchmark": bench}
    for variant in variants:
        spec = make_spec(variant, config, vocabulary)
        model = build_model(spec, seed=config.seed).to(device)
        print(f"\nTraining: {variant} (max_len={spec.max_len}, "
              f"embedding_size={spec.embedding_size}, epochs={config.epochs}, lr={config.lr})")
        result = fit_similarity_model(model, train_arrays, val_arrays, config,
                                      verbose=not args.quiet)
        print(f"  Best epoch {result.best_epoch}: val_loss={result.val_loss:.4f}, "
              f"val_acc={result.val_accuracy:.4f}")

        save_model(model, config.model_path(variant))
        print(f"  Model saved to {config.model_path(variant)} ✓")
        summary[variant] = result.to_dict()

    with open(os.path.join(config.out_dir, "training_summary.json"), "w") as f:
        json.dump(summary, f, indent=2)


if __name__ == "__main__":
    main()
