"""
Handles retrieval of the Zurich open-data (OGD) CSV.
"""

from __future__ import annotations

import logging
from io import StringIO
from pathlib import Path

import pandas as pd
import requests

from .config import DATASET_URL, DEFAULT_SEP, REQUEST_TIMEOUT
from .errors import DatasetLoadError

logger = logging.getLogger(__name__)


def _is_url(source: str | Path) -> bool:
    return str(source).lower().startswith(("http://", "https://"))


def _fetch_text(url: str, timeout: int) -> str:
    """Download ``url`` and return its body decoded as UTF-8."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise DatasetLoadError(url, str(exc)) from exc

    try:
        # utf-8-sig strips the BOM the City of Zurich exports carry
        return response.content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DatasetLoadError(url, f"content is not valid UTF-8 ({exc})") from exc


def load_dataset(
    source: str | Path = DATASET_URL,
    *,
    sep: str = DEFAULT_SEP,
    timeout: int = REQUEST_TIMEOUT,
) -> pd.DataFrame:
    """Load the raw dataset from a URL or a local CSV file.

    No schema assumptions are made here; see
    :func:`leerkuendigung.validation.validate_dataset`.

    Parameters
    ----------
    source : str or Path
        HTTP(S) URL or local path to the CSV.
    sep : str, optional
        Column delimiter; defaults to ``","``.
    timeout : int, optional
        Seconds to wait for the HTTP response.

    Returns
    -------
    pd.DataFrame
        The raw table exactly as parsed.

    Raises
    ------
    DatasetLoadError
        On any network, HTTP, decoding or parse failure, or when the file
        holds no data rows.
    """
    source_str = str(source)
    logger.info("Loading dataset from %s", source_str)

    try:
        if _is_url(source):
            text = _fetch_text(source_str, timeout)
            df = pd.read_csv(StringIO(text), sep=sep)
        else:
            df = pd.read_csv(source, sep=sep, encoding="utf-8-sig")
    except DatasetLoadError:
        raise
    except (OSError, ValueError, pd.errors.ParserError) as exc:
        # EmptyDataError and UnicodeDecodeError are ValueError subclasses
        raise DatasetLoadError(source_str, str(exc)) from exc

    if df.empty:
        raise DatasetLoadError(source_str, "dataset contains no data rows")

    logger.info("Dataset loaded: %d rows, %d columns", len(df), df.shape[1])
    return df
