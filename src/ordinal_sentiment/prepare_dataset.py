#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Prepare a labelled 3-class sentiment CSV (tweets, reviews, ...):
- Clean text (HTML/url/email/user/hashtag/emoticon/digits -> placeholders, lowercase/normalize)
- Map the sentiment column to {Negative:-1, Neutral:0, Positive:1}
- Save to <outdir>/<name>_clean.csv and a class-balanced subset (optional)

``load_labeled_dataset`` turns a CSV straight into ``LabeledExample`` rows for
the cross-validator.
"""
from __future__ import annotations

import html
import re
import unicodedata
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd
from loguru import logger

from .core.labels import LabeledExample, SentimentLabel

TAG_RE = re.compile(r"<[^>]+>")
URL_RE = re.compile(r"(https?://\S+|www\.\S+)")
EMAIL_RE = re.compile(r"\b[\w\.-]+@[\w\.-]+\.\w+\b")
USER_RE = re.compile(r"(^|[^A-Za-z0-9_])@([A-Za-z0-9_]{1,15})")
HASHTAG_RE = re.compile(r"(^|\s)#(\w+)")
HAPPY_RE = re.compile(r"(?:[:;=]-?[)D\]]|\^_\^)")
SAD_RE = re.compile(r"(?:[:;=]-?[(\[]|:'\()")
REPEAT_RE = re.compile(r"(\w)\1{2,}")
DIGIT_RE = re.compile(r"\d+")

TEXT_COLUMNS = ("text", "review", "tweet", "content")
LABEL_COLUMNS = ("label", "sentiment", "polarity")


def strip_control_chars(s: str) -> str:
    return "".join(ch for ch in s if ch.isprintable())


def normalize_text(text: str) -> str:
    s = str(text)
    s = html.unescape(s).replace("<br />", " ")
    s = TAG_RE.sub(" ", s)
    s = unicodedata.normalize("NFKC", s)
    s = URL_RE.sub(" <URL> ", s)
    s = EMAIL_RE.sub(" <EMAIL> ", s)
    s = USER_RE.sub(r"\1<USER>", s)
    s = HASHTAG_RE.sub(r"\1<HASHTAG> \2", s)
    s = HAPPY_RE.sub(" <HAPPY> ", s)
    s = SAD_RE.sub(" <SAD> ", s)
    s = REPEAT_RE.sub(r"\1\1", s)  # "sooooo" -> "soo"
    s = DIGIT_RE.sub("0", s)
    s = s.lower()
    s = strip_control_chars(s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def _find_column(df: pd.DataFrame, wanted: Optional[str], candidates) -> str:
    if wanted:
        if wanted not in df.columns:
            raise ValueError(f"column {wanted!r} not found, available: {list(df.columns)}")
        return wanted
    lower = {c.lower(): c for c in df.columns}
    for c in candidates:
        if c in lower:
            return lower[c]
    raise ValueError(f"none of the columns {candidates} found, available: {list(df.columns)}")


def _parse_label(value) -> Optional[int]:
    try:
        return int(SentimentLabel.parse(value))
    except ValueError:
        return None


def clean_frame(df: pd.DataFrame, text_col: Optional[str] = None, label_col: Optional[str] = None,
                normalize: bool = True) -> pd.DataFrame:
    """Returns a ``text, label`` frame: parsed labels, duplicates and unparseable rows dropped."""
    text_col = _find_column(df, text_col, TEXT_COLUMNS)
    label_col = _find_column(df, label_col, LABEL_COLUMNS)
    df = df.rename(columns={text_col: "text", label_col: "sentiment"})
    df = df.dropna(subset=["text", "sentiment"]).drop_duplicates(subset=["text", "sentiment"])

    df["label"] = df["sentiment"].map(_parse_label).astype("Int64")
    df = df.dropna(subset=["label"]).copy()
    df["label"] = df["label"].astype(int)
    if normalize:
        df["text"] = df["text"].map(normalize_text)
    return df[["text", "label"]].reset_index(drop=True)


def stratified_sample(
    df: pd.DataFrame,
    label_col: str,
    n_per_class: int | None = None,
    frac: float | None = None,
    random_state: int = 42,
) -> pd.DataFrame:
    if (n_per_class is None) == (frac is None):
        raise ValueError("choose n_per_class OR frac")
    parts = []
    for _, g in df.groupby(label_col, sort=False):
        if n_per_class is not None:
            parts.append(g.sample(n=min(n_per_class, len(g)), random_state=random_state))
        else:
            parts.append(g.sample(frac=frac, random_state=random_state))
    return pd.concat(parts).sample(frac=1.0, random_state=random_state).reset_index(drop=True)


def load_labeled_dataset(
    csv_path: str | Path,
    text_col: Optional[str] = None,
    label_col: Optional[str] = None,
    normalize: bool = True,
    limit: Optional[int] = None,
) -> List[LabeledExample]:
    """Reads a CSV into ``LabeledExample(SentimentLabel, text)`` rows."""
    df = clean_frame(pd.read_csv(csv_path), text_col, label_col, normalize)
    if limit is not None:
        df = df.head(limit)
    logger.info("Loaded {} examples from {} (balance={})", len(df), csv_path,
                df["label"].value_counts().to_dict())
    return [LabeledExample(SentimentLabel(int(l)), t) for t, l in zip(df["text"], df["label"])]


def prepare_dataset(
    src_path: str | Path,
    outdir: str | Path = "data",
    balanced_per_class: Optional[int] = None,
    text_col: Optional[str] = None,
    label_col: Optional[str] = None,
    random_state: int = 42,
) -> dict:
    """
    Prepare a sentiment dataset from a raw CSV file.

    Args:
        src_path: Path to the raw CSV
        outdir: Output directory for processed files
        balanced_per_class: Also write a subset with at most this many rows per class
        text_col: Text column, guessed when None
        label_col: Label column, guessed when None
        random_state: Random seed for reproducibility

    Returns:
        Dictionary with metadata about the processing
    """
    src = Path(src_path)
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    raw = pd.read_csv(src)
    df = clean_frame(raw, text_col, label_col)

    clean_path = outdir / f"{src.stem}_clean.csv"
    df.to_csv(clean_path, index=False, encoding="utf-8")

    sub_info = {}
    if balanced_per_class:
        per_class = min(balanced_per_class, int(df["label"].value_counts().min()))
        sub = stratified_sample(df, "label", n_per_class=per_class, random_state=random_state)
        sub_path = outdir / f"{src.stem}_balanced.csv"
        sub.to_csv(sub_path, index=False, encoding="utf-8")
        sub_info = {"balanced": str(sub_path)}

    return {
        "src": str(src),
        "out_clean": str(clean_path),
        "dropped_rows": int(len(raw) - len(df)),
        "final_rows": int(len(df)),
        "class_balance_full": {int(k): int(v) for k, v in df["label"].value_counts().items()},
        "mean_length": float(np.mean(df["text"].str.len())) if len(df) else 0.0,
        **sub_info,
    }
