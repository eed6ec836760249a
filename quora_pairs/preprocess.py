"""
Data preprocessing pipeline for the Quora duplicate-question classifier.

Steps:
  1. Load the question-pairs TSV and validate its schema
  2. Normalize text, drop rows with missing questions
  3. Union-Find over question ids to prevent leakage in splits
  4. StratifiedGroupKFold → train / val / test
  5. Save splits as Parquet

Usage:
    python -m quora_pairs.preprocess                      # default paths
    python -m quora_pairs.preprocess --data ./quora.tsv --expected-rows 404290
"""

import argparse, os, re, unicodedata, warnings
import numpy as np
import pandas as pd

from sklearn.model_selection import StratifiedGroupKFold

from quora_pairs.config import PipelineConfig

warnings.filterwarnings("ignore", category=FutureWarning)

EXPECTED_COLUMNS = ["id", "qid1", "qid2", "question1", "question2", "is_duplicate"]
FULL_DATASET_ROWS = 404_290


class SchemaError(ValueError):
    """The loaded table is not a Quora question-pairs file."""


def norm_text(s) -> str:
    s = "" if s is None or (isinstance(s, float) and np.isnan(s)) else str(s)
    s = unicodedata.normalize("NFC", s)
    return re.sub(r"\s+", " ", s).strip()


# ─── Loading ────────────────────────────────────────────────────
def validate_schema(df: pd.DataFrame, expected_rows: int | None = None) -> None:
    """Raise `SchemaError` unless `df` has exactly the six expected columns,
    binary labels and, when given, `expected_rows` rows."""
    cols = list(df.columns)
    if cols != EXPECTED_COLUMNS:
        raise SchemaError(
            f"expected columns {EXPECTED_COLUMNS}, got {cols}")
    if expected_rows is not None and len(df) != expected_rows:
        raise SchemaError(
            f"expected {expected_rows} rows, got {len(df)}")
    labels = pd.to_numeric(df["is_duplicate"], errors="coerce")
    bad = labels.isna() | ~labels.isin([0, 1])
    if bad.any():
        raise SchemaError(
            f"{int(bad.sum())} rows have is_duplicate outside {{0, 1}}")


def load_question_pairs(path: str, expected_rows: int | None = None) -> pd.DataFrame:
    """Read the tab-separated question-pairs file and validate it."""
    df = pd.read_csv(path, sep="\t", keep_default_na=False, na_values=[""])
    validate_schema(df, expected_rows)
    df["is_duplicate"] = df["is_duplicate"].astype(int)
    return df


def clean_pairs(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize both question columns and drop rows left without text."""
    df = df.copy()
    df["question1"] = df["question1"].map(norm_text)
    df["question2"] = df["question2"].map(norm_text)
    empty = (df["question1"].str.len() == 0) | (df["question2"].str.len() == 0)
    if empty.any():
        print(f"  Removing {int(empty.sum())} rows with an empty question")
        df = df[~empty]
    return df.reset_index(drop=True)


def unique_questions(df: pd.DataFrame) -> list[str]:
    """Distinct question strings in first-seen (row-major) order."""
    pool = df[["question1", "question2"]].to_numpy().ravel()
    return list(pd.unique(pool))


# ─── Union-Find ─────────────────────────────────────────────────
def group_pairs(df: pd.DataFrame) -> pd.DataFrame:
    """Add a `group` column: the connected component of each pair in the
    graph whose nodes are question ids and whose edges are pairs."""
    all_q = pd.unique(pd.concat([df["qid1"], df["qid2"]]))
    qix = {q: i for i, q in enumerate(all_q)}
    parent = list(range(len(all_q)))
    uf_rank = [0] * len(all_q)

    def find(x):
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    def union(x, y):
        rx, ry = find(x), find(y)
        if rx == ry:
            return
        if uf_rank[rx] < uf_rank[ry]:
            parent[rx] = ry
        elif uf_rank[rx] > uf_rank[ry]:
            parent[ry] = rx
        else:
            parent[ry] = rx
            uf_rank[rx] += 1

    for a, b in zip(df["qid1"], df["qid2"]):
        union(qix[a], qix[b])

    df = df.copy()
    df["group"] = [find(qix[a]) for a in df["qid1"]]
    return df


# ─── Splitting ──────────────────────────────────────────────────
def _n_splits(fraction: float) -> int:
    if not 0.0 < fraction < 1.0:
        raise ValueError(f"split fraction must be in (0, 1), got {fraction}")
    return max(2, int(round(1.0 / fraction)))


def split_pairs(df: pd.DataFrame, config: PipelineConfig):
    """Stratified, group-aware train / val / test split.

    No question id appears on both sides of any split boundary.
    """
    if "group" not in df.columns:
        df = group_pairs(df)

    sgkf = StratifiedGroupKFold(n_splits=_n_splits(config.test_fraction),
                                shuffle=True, random_state=config.seed)
    tv_i, ts_i = next(sgkf.split(df, df["is_duplicate"], df["group"]))
    df_trainval = df.iloc[tv_i].reset_index(drop=True)
    df_test = df.iloc[ts_i].reset_index(drop=True)

    sgkf2 = StratifiedGroupKFold(n_splits=_n_splits(config.val_fraction),
                                 shuffle=True, random_state=config.seed + 1)
    tr_i, vl_i = next(sgkf2.split(df_trainval, df_trainval["is_duplicate"],
                                  df_trainval["group"]))
    df_train = df_trainval.iloc[tr_i].reset_index(drop=True)
    df_val = df_trainval.iloc[vl_i].reset_index(drop=True)
    return df_train, df_val, df_test


def load_splits(config: PipelineConfig):
    return tuple(pd.read_parquet(config.split_path(name))
                 for name in ("train", "val", "test"))


# ─── Main ───────────────────────────────────────────────────────
def main():
    parser = argparse.ArgumentParser(description="Prepare Quora question-pair splits")
    parser.add_argument("--data", type=str, default=None,
                        help="Path to quora_duplicate_questions.tsv")
    parser.add_argument("--expected-rows", type=int, default=None,
                        help=f"Abort unless the file has this many rows "
                             f"(full dataset: {FULL_DATASET_ROWS})")
    args = parser.parse_args()

    config = PipelineConfig()
    data_path = args.data or config.data_path

    print(f"Loading {data_path}...")
    df = load_question_pairs(data_path, expected_rows=args.expected_rows)
    print(f"  rows={len(df)}, labels={df['is_duplicate'].value_counts().to_dict()}")

    df = clean_pairs(df)

    print("Building connected components...")
    df = group_pairs(df)
    print(f"  Components: {df['group'].nunique()}")

    print("Split train/val/test...")
    df_train, df_val, df_test = split_pairs(df, config)
    for nm, dx in [("train", df_train), ("val", df_val), ("test", df_test)]:
        print(f"  [{nm}] n={len(dx)}, labels={dx['is_duplicate'].value_counts().to_dict()}")

    os.makedirs(config.prep_dir, exist_ok=True)
    for nm, dx in [("train", df_train), ("val", df_val), ("test", df_test)]:
        dx[EXPECTED_COLUMNS].to_parquet(config.split_path(nm), index=False)
    print(f"Splits saved to {config.prep_dir} ✓")


if __name__ == "__main__":
    main()
