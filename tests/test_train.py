"""Tests for the training harness."""

from dataclasses import replace

import pytest
import torch

from quora_pairs.model import build_model, make_spec
from quora_pairs.train import (
    BestModelTracker, encode_pairs, evaluate_arrays, fit_similarity_model, run_benchmark,
)


@pytest.fixture
def arrays(pairs_df, vocabulary, small_config):
    train_df, val_df = pairs_df.iloc[:320], pairs_df.iloc[320:]
    return (encode_pairs(train_df, vocabulary, small_config),
            encode_pairs(val_df, vocabulary, small_config))


class TestBestModelTracker:
    def test_keeps_lowest_loss_weights(self):
        layer = torch.nn.Linear(1, 1)
        tracker = BestModelTracker()

        with torch.no_grad():
            layer.weight.fill_(1.0)
        assert tracker.record_state(0.5, layer, epoch=1)
        with torch.no_grad():
            layer.weight.fill_(2.0)
        assert not tracker.record_state(0.7, layer, epoch=2)

        tracker.restore(layer)
        assert layer.weight.item() == 1.0
        assert tracker.best_epoch == 1


class TestFitSimilarityModel:
    def test_encode_pairs_shapes(self, arrays, small_config):
        (q1, q2, y), _ = arrays
        assert q1.shape == q2.shape == (320, small_config.max_len)
        assert y.shape == (320,)

    def test_beats_majority_baseline_on_separable_data(self, arrays, small_config, vocabulary):
        train_arrays, val_arrays = arrays
        model = build_model(make_spec("embedding", small_config, vocabulary), seed=0)

        result = fit_similarity_model(model, train_arrays, val_arrays, small_config,
                                      verbose=False)

        val_y = val_arrays[2]
        majority = max(val_y.mean(), 1 - val_y.mean())
        assert result.val_accuracy > majority
        assert result.epochs_run <= small_config.epochs
        assert model.frozen

    def test_lstm_variant_trains(self, arrays, small_config, vocabulary):
        train_arrays, val_arrays = arrays
        config = replace(small_config, epochs=3)
        model = build_model(make_spec("lstm", config, vocabulary), seed=0)

        result = fit_similarity_model(model, train_arrays, val_arrays, config, verbose=False)

        assert result.variant == "lstm"
        assert 1 <= result.best_epoch <= 3
        assert len(result.history) == result.epochs_run
        assert 0.0 <= result.val_accuracy <= 1.0

    def test_best_weights_are_restored(self, arrays, small_config, vocabulary):
        train_arrays, val_arrays = arrays
        config = replace(small_config, epochs=8)
        model = build_model(make_spec("embedding", config, vocabulary), seed=0)

        result = fit_similarity_model(model, train_arrays, val_arrays, config, verbose=False)

        best = min(h.val_loss for h in result.history)
        assert result.val_loss == pytest.approx(best, abs=1e-4)
        assert evaluate_arrays(model, *val_arrays)["loss"] == pytest.approx(best, abs=1e-4)

    def test_early_stopping_without_improvement(self, arrays, small_config, vocabulary):
        train_arrays, val_arrays = arrays
        # lr=0 leaves the weights untouched, so validation loss never improves
        config = replace(small_config, lr=0.0, epochs=20, patience=3)
        model = build_model(make_spec("embedding", config, vocabulary), seed=0)

        result = fit_similarity_model(model, train_arrays, val_arrays, config, verbose=False)

        assert result.stopped_early
        assert result.best_epoch == 1
        assert result.epochs_run == 1 + config.patience

    def test_learning_rate_only_decreases(self, arrays, small_config, vocabulary):
        train_arrays, val_arrays = arrays
        config = replace(small_config, epochs=60, patience=60, lr_patience=1, lr_factor=0.5)
        model = build_model(make_spec("embedding", config, vocabulary), seed=0)

        result = fit_similarity_model(model, train_arrays, val_arrays, config, verbose=False)

        lrs = [h.lr for h in result.history]
        assert lrs[0] == config.lr
        assert all(b <= a for a, b in zip(lrs, lrs[1:]))

    def test_learning_rate_reduced_after_plateau(self, arrays, small_config, vocabulary,
                                                 monkeypatch):
        # a constant validation loss is a plateau from the second epoch on
        monkeypatch.setattr("quora_pairs.train.evaluate_arrays",
                            lambda *args, **kwargs: {"loss": 0.7, "accuracy": 0.5})
        train_arrays, val_arrays = arrays
        config = replace(small_config, epochs=6, patience=60, lr_patience=1, lr_factor=0.5)
        model = build_model(make_spec("embedding", config, vocabulary), seed=0)

        result = fit_similarity_model(model, train_arrays, val_arrays, config, verbose=False)

        lrs = [h.lr for h in result.history]
        lr = config.lr
        assert lrs == pytest.approx([lr, lr, lr, lr * 0.5, lr * 0.5, lr * 0.25])
        assert not result.stopped_early

    @pytest.mark.parametrize("field", ["epochs", "patience"])
    def test_rejects_non_positive_budget(self, arrays, small_config, field):
        train_arrays, val_arrays = arrays
        config = replace(small_config, **{field: 0})
        model = build_model(make_spec("embedding", config))
        with pytest.raises(ValueError):
            fit_similarity_model(model, train_arrays, val_arrays, config, verbose=False)

    def test_frozen_model_refuses_training(self, arrays, small_config):
        train_arrays, val_arrays = arrays
        model = build_model(make_spec("embedding", small_config)).freeze()
        with pytest.raises(RuntimeError):
            fit_similarity_model(model, train_arrays, val_arrays, small_config, verbose=False)

    def test_explicit_reentry_after_freeze(self, arrays, small_config, vocabulary):
        train_arrays, val_arrays = arrays
        config = replace(small_config, epochs=2)
        model = build_model(make_spec("embedding", config, vocabulary), seed=0).freeze()

        model.unfreeze()
        result = fit_similarity_model(model, train_arrays, val_arrays, config, verbose=False)
        assert result.epochs_run == 2


class TestRunBenchmark:
    def test_reports_validation_metrics(self, pairs_df, vocabulary, small_config):
        clf, metrics = run_benchmark(pairs_df.iloc[:320], pairs_df.iloc[320:],
                                     vocabulary, small_config)
        assert set(metrics) == {"loss", "accuracy", "n_scored", "n_dropped"}
        assert metrics["accuracy"] == 1.0
        assert hasattr(clf, "predict_proba")
