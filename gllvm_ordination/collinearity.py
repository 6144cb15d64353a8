"""
Collinearity screening of environmental covariates.

Before comparing latent variables with covariates it helps to know which
covariates carry the same information. In the workshop data degree days
(DDEG0), moisture index (MIND) and elevation are strongly collinear:

    row    column     cor        p
    DDEG0  MIND      -0.89  6.9e-141
    DDEG0  ELEVATION -0.99  0.0e+00
    MIND   ELEVATION  0.90  4.0e-148
"""

import numpy as np
import pandas as pd
from scipy import stats


def compute_correlation_matrix(X, method='pearson', verbose=False):
    """
    Compute correlation matrix between all covariates.

    Parameters
    ----------
    X : DataFrame
        Sites x covariates
    method : str
        'pearson' or 'spearman'
    verbose : bool
        Print results

    Returns
    -------
    DataFrame
        Correlation matrix
    """
    if method not in ('pearson', 'spearman'):
        raise ValueError(f"Unknown correlation method: {method}")
    if X.shape[1] == 0:
        raise ValueError("No covariates found in dataset")

    corr_matrix = X.corr(method=method)

    if verbose:
        print(f"\n{method.capitalize()} Correlation Matrix:")
        print(corr_matrix.round(3))

    return corr_matrix


def compute_correlation_table(X, method='pearson'):
    """
    Flattened upper triangle of the covariate correlation matrix with p-values.

    Parameters
    ----------
    X : DataFrame
        Sites x covariates
    method : str
        'pearson' or 'spearman'

    Returns
    -------
    DataFrame
        Columns: row, column, cor, p (one row per covariate pair)
    """
    if method == 'pearson':
        test = stats.pearsonr
    elif method == 'spearman':
        test = stats.spearmanr
    else:
        raise ValueError(f"Unknown correlation method: {method}")

    columns = list(X.columns)
    if len(columns) < 2:
        raise ValueError(f"Need at least 2 covariates, found {len(columns)}")

    rows = []
    for i, first in enumerate(columns):
        for second in columns[i + 1:]:
            r, p = test(X[first].to_numpy(dtype=float), X[second].to_numpy(dtype=float))
            rows.append({'row': first, 'column': second, 'cor': float(r), 'p': float(p)})

    return pd.DataFrame(rows, columns=['row', 'column', 'cor', 'p'])


def find_collinear_pairs(X, threshold=0.5, method='pearson', verbose=True):
    """
    Covariate pairs whose absolute correlation exceeds ``threshold``.

    Parameters
    ----------
    X : DataFrame
        Sites x covariates
    threshold : float
        Absolute correlation above which a pair is reported
    method : str
        'pearson' or 'spearman'
    verbose : bool
        Print the collinear pairs

    Returns
    -------
    DataFrame
        Subset of compute_correlation_table() with |cor| > threshold,
        strongest first
    """
    if not 0 <= threshold < 1:
        raise ValueError(f"threshold must be in [0, 1), got {threshold}")

    table = compute_correlation_table(X, method=method)
    collinear = table[np.abs(table['cor']) > threshold]
    collinear = collinear.reindex(
        collinear['cor'].abs().sort_values(ascending=False, kind='stable').index
    ).reset_index(drop=True)

    if verbose:
        print("\n" + "=" * 70)
        print(f"COLLINEARITY CHECK (|r| > {threshold}, {method})")
        print("=" * 70)
        if len(collinear) == 0:
            print("  No collinear covariate pairs")
        else:
            print(f"{'row':<12} {'column':<12} {'cor':>7} {'p':>11}")
            print("-" * 46)
            for _, pair in collinear.iterrows():
                print(f"{pair['row']:<12} {pair['column']:<12} {pair['cor']:>7.2f} {pair['p']:>11.1e}")

    return collinear


__all__ = [
    'compute_correlation_matrix',
    'compute_correlation_table',
    'find_collinear_pairs',
]
