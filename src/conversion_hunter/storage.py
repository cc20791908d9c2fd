"""
storage – CSV loading and atomic publication.

Outputs are written to a temporary file in the destination directory and then
renamed over the old file with os.replace, so a reader sees either the previous
table or the complete new one.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict

import pandas as pd

from . import config
from .helpers import normalize_ids, require_columns

log = logging.getLogger(__name__)


def safe_read_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        log.warning("Missing file: %s", path)
        return pd.DataFrame()
    df = pd.read_csv(path, low_memory=False)

    # FIX: Remove duplicate columns if any exist
    if not df.empty:
        df = df.loc[:, ~df.columns.duplicated()]

    return df


def load_inputs(data_in: Path = None, raw_files: Dict[str, str] = None) -> Dict[str, pd.DataFrame]:
    data_in = Path(data_in) if data_in is not None else config.DATA_IN
    raw_files = raw_files or config.RAW_FILES
    log.info("Loading source tables from %s", data_in)

    tables = {}
    for name, filename in raw_files.items():
        df = safe_read_csv(data_in / filename)
        if df.empty:
            # an absent or empty file is an empty relation, not a schema error
            df = pd.DataFrame(columns=config.REQUIRED_COLUMNS[name])
        require_columns(df, name, config.REQUIRED_COLUMNS[name])
        tables[name] = normalize_ids(df, config.ID_COLUMNS[name])
        log.info("Loaded %s: %d rows", name, len(df))
    return tables


def save_csv(df: pd.DataFrame, path: Path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", newline="") as f:
            df.to_csv(f, index=False, date_format="%Y-%m-%d")
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise
    log.info("Wrote %s (%d rows, %d cols)", path, df.shape[0], df.shape[1])
