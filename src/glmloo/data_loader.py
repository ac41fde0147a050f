"""
Loading observation tables from disk.

The seizure data come as a long-format CSV with one row per patient visit:
a count response, patient and visit identifiers, and baseline covariates such
as treatment arm, age and baseline seizure count.
"""

import logging
import os
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .draws import ObservationTable

logger = logging.getLogger(__name__)

# Columns of the epilepsy dataset used in the workshop
DEFAULT_RESPONSE = "count"
DEFAULT_COVARIATES = ("zBase", "zAge", "Trt")

# ==============================================================================
# Data Loader
# ==============================================================================


def standardize_columns(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Return a copy of ``df`` with ``columns`` centered and scaled to unit sd.

    Raises
    ------
    ValueError
        If a column is constant and cannot be scaled.
    """
    df = df.copy()
    for col in columns:
        sd = df[col].std()
        if not np.isfinite(sd) or sd == 0:
            raise ValueError(f"Column '{col}' is constant; cannot standardize.")
        df[col] = (df[col] - df[col].mean()) / sd
    return df


def load_observation_table(
    path: str,
    response: str = DEFAULT_RESPONSE,
    covariates: Sequence[str] = DEFAULT_COVARIATES,
    group: Optional[str] = "patient",
    visit: Optional[str] = "visit",
    log_transform: Sequence[str] = (),
    standardize: Sequence[str] = (),
) -> ObservationTable:
    """
    Load a CSV file into an :class:`~glmloo.draws.ObservationTable`.

    Parameters
    ----------
    path : str
        Path to a CSV file.  Lines starting with ``#`` are ignored.
    response : str, default='count'
        Response column.
    covariates : sequence of str
        Covariate columns, in design-matrix order.
    group : str, optional
        Patient identifier column; ``None`` to skip.
    visit : str, optional
        Visit identifier column; ``None`` to skip.
    log_transform : sequence of str
        Columns replaced by their natural log before standardization.
    standardize : sequence of str
        Columns centered and scaled to unit standard deviation.

    Returns
    -------
    ObservationTable

    Raises
    ------
    ValueError
        If the file is not a CSV, a requested column is missing, or the
        response has missing values.
    """
    _, extension = os.path.splitext(path)
    if extension != ".csv":
        raise ValueError(f"Unsupported file format: {extension}. Please use .csv")

    logger.info("Loading observations from %s", path)
    df = pd.read_csv(path, comment="#")

    # Identifier columns are optional in the file
    if group is not None and group not in df.columns:
        logger.warning("Group column '%s' not found; ignoring it", group)
        group = None
    if visit is not None and visit not in df.columns:
        logger.warning("Visit column '%s' not found; ignoring it", visit)
        visit = None

    missing = [c for c in [response, *covariates] if c not in df.columns]
    if missing:
        raise ValueError(
            f"Columns {missing} not found in {path}. "
            f"Available: {list(df.columns)}."
        )
    if df[response].isna().any():
        raise ValueError(f"Response column '{response}' has missing values.")

    for col in log_transform:
        df[col] = np.log(df[col])
    if standardize:
        df = standardize_columns(df, standardize)

    table = ObservationTable.from_dataframe(
        df, response=response, covariates=list(covariates), group=group, visit=visit
    )
    logger.info(
        "Loaded %d observations with %d covariates%s",
        table.n_obs,
        table.n_covariates,
        f" from {table.n_groups} groups" if table.groups is not None else "",
    )
    return table
