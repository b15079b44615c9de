# src/pipeshaper/inventory.py
from __future__ import annotations
from pathlib import Path
from typing import List
import unicodedata

import pandas as pd

from .orchestrator import DirectionInput, ShapingRow

def _norm(s) -> str:
    if s is None: return ""
    return unicodedata.normalize("NFKC", str(s)).replace("\uFEFF", "").strip()

def load_shaping_csv(path: str | Path) -> List[ShapingRow]:
    """
    Read desired shaping from CSV.

    Expected columns (case-insensitive, optional ones may be missing):
      Address, DownBandwidth, DownDelay, DownLoss, UpBandwidth, UpDelay, UpLoss
    Empty cells mean "absent"; a row with every value empty removes shaping.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Shaping CSV not found: {p}")

    df = pd.read_csv(p, dtype=str, encoding="utf-8-sig").fillna("")
    cols = {_norm(c).lower(): c for c in df.columns}
    if "address" not in cols:
        raise ValueError(f"Shaping CSV missing Address column. Columns seen: {list(df.columns)}")

    def cell(r, key: str) -> str:
        return _norm(r[cols[key]]) if key in cols else ""

    out: List[ShapingRow] = []
    for _, r in df.iterrows():
        out.append(ShapingRow(
            address=cell(r, "address"),
            down=DirectionInput(cell(r, "downbandwidth"), cell(r, "downdelay"), cell(r, "downloss")),
            up=DirectionInput(cell(r, "upbandwidth"), cell(r, "updelay"), cell(r, "uploss")),
        ))
    return out
