"""End-to-end run of the preprocess → train → evaluate scripts."""

import json
import os
import sys
from dataclasses import replace

from quora_pairs import evaluate, preprocess, train
from quora_pairs.model import load_model
from quora_pairs.tokenizer import Vocabulary


def test_scripts_end_to_end(tmp_path, monkeypatch, pairs_df, small_config):
    config = replace(small_config, epochs=3, vocab_size=50)
    for module in (preprocess, train, evaluate):
        monkeypatch.setattr(module, "PipelineConfig", lambda: config)

    data = tmp_path / "quora.tsv"
    pairs_df.to_csv(data, sep="\t", index=False)

    monkeypatch.setattr(sys, "argv", ["preprocess", "--data", str(data),
                                      "--expected-rows", str(len(pairs_df))])
    preprocess.main()
    for name in ("train", "val", "test"):
        assert os.path.exists(config.split_path(name))

    monkeypatch.setattr(sys, "argv", ["train", "--variant", "both", "--quiet"])
    train.main()
    vocabulary = Vocabulary.load(config.vocabulary_path)
    for variant in ("embedding", "lstm"):
        model = load_model(config.model_path(variant))
        model.check_vocabulary(vocabulary)
    assert os.path.exists(config.benchmark_path)

    output = tmp_path / "metrics.json"
    monkeypatch.setattr(sys, "argv", ["evaluate", "--output", str(output)])
    evaluate.main()
    metrics = json.loads(output.read_text())
    assert set(metrics) == {"benchmark", "embedding", "lstm"}

    single = tmp_path / "lstm_metrics.json"
    monkeypatch.setattr(sys, "argv", ["evaluate", "--model", config.model_path("lstm"),
                                      "--output", str(single)])
    evaluate.main()
    metrics = json.loads(single.read_text())
    assert set(metrics) == {"benchmark", "lstm"}
