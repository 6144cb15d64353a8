"""
Data Loading Module for GLLVM Ordination Analysis
==================================================

This module loads the workshop dataset: presence-absence records of alpine
plants in the western Swiss Alps (ECOSPAT, https://doi.org/10.5061/dryad.8mv11)
and the environmental covariates of each site.

The original R data file (WorkshopData.RDA) is exported as one CSV per
component:
- Y.csv: sites x species, 0/1, first column holds the site id
- X.csv: sites x covariates, first column holds the site id
- elevation_classes.csv: species, class (1 = montane, 2 = subalpine, 3 = alpine)
- colline_species.csv: one column of species names

Dependencies:
- pandas
- numpy
- scikit-learn (covariate standardisation)
"""

import os
import warnings
import numpy as np
import pandas as pd
from pathlib import Path
from sklearn.preprocessing import StandardScaler

from .config import (
    DATA_DIR, DATA_FILES, FITTED_MODEL_DIR, FITTED_MODELS, COVARIATES,
    get_data_path, get_model_path
)


# ============================================================================
# WORKSHOP DATA
# ============================================================================

def load_workshop_data(data_dir=None, standardize=False, verbose=True):
    """
    Load the workshop response matrix, covariates and species groupings.

    Parameters
    ----------
    data_dir : str, optional
        Directory holding the CSV exports (default: config.DATA_DIR)
    standardize : bool
        If True, standardise every covariate to mean 0 and SD 1
    verbose : bool
        Print progress

    Returns
    -------
    dict
        'Y' : DataFrame, sites x species presence-absence
        'X' : DataFrame, sites x covariates
        'elevation_classes' : Series of int indexed by species, or None
        'colline_species' : list of str, or None

    Notes
    -----
    The covariates in the workshop export are already standardised.
    """
    data_dir = Path(data_dir or DATA_DIR)
    if not data_dir.exists():
        raise FileNotFoundError(f"Data directory not found: {data_dir}")

    if verbose:
        print(f"Loading workshop data...")
        print(f"  Directory: {data_dir}")

    y_path = get_data_path('Y', data_dir)
    x_path = get_data_path('X', data_dir)
    for path in (y_path, x_path):
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

    Y = pd.read_csv(y_path, index_col=0)
    X = pd.read_csv(x_path, index_col=0)

    if len(Y) != len(X):
        raise ValueError(f"Y has {len(Y)} sites but X has {len(X)}")

    if Y.isna().to_numpy().any():
        raise ValueError("Y contains missing values")
    if not np.isin(Y.to_numpy(), (0, 1)).all():
        raise ValueError("Y must be presence-absence (0/1) data")
    Y = Y.astype(int)

    unknown = [c for c in X.columns if c not in COVARIATES]
    if unknown:
        warnings.warn(f"Unrecognised covariates in X: {unknown}")

    if standardize:
        X = standardize_covariates(X)

    elevation_classes = None
    classes_path = get_data_path('elevation_classes', data_dir)
    if classes_path.exists():
        classes = pd.read_csv(classes_path, index_col=0).iloc[:, 0].astype(int)
        missing = set(Y.columns) - set(classes.index)
        if missing:
            warnings.warn(f"{len(missing)} species have no elevation class")
        elevation_classes = classes.reindex(Y.columns)

    colline_species = None
    colline_path = get_data_path('colline_species', data_dir)
    if colline_path.exists():
        colline_species = pd.read_csv(colline_path).iloc[:, 0].astype(str).tolist()

    if verbose:
        print(f"  Loaded {Y.shape[0]:,} sites x {Y.shape[1]:,} species")
        print(f"  Covariates: {list(X.columns)}")
        if elevation_classes is not None:
            print(f"  Elevation classes: {elevation_classes.notna().sum()} species")
        if colline_species is not None:
            print(f"  Colline species: {len(colline_species)}")

    return {
        'Y': Y,
        'X': X,
        'elevation_classes': elevation_classes,
        'colline_species': colline_species,
    }


def standardize_covariates(X):
    """
    Standardise covariates to mean 0 and SD 1.

    Uses the sample standard deviation (ddof=1) to match R's ``scale()``.

    Parameters
    ----------
    X : DataFrame
        Sites x covariates

    Returns
    -------
    DataFrame
        Standardised copy with the same index and columns
    """
    scaler = StandardScaler()
    scaled = scaler.fit_transform(X.to_numpy(dtype=float))
    n = len(X)
    if n > 1:
        # StandardScaler divides by the population SD
        scaled = scaled * np.sqrt((n - 1) / n)
    return pd.DataFrame(scaled, index=X.index, columns=X.columns)


def summarize_workshop_data(data, verbose=True):
    """
    Print and return basic statistics of the workshop data.

    Parameters
    ----------
    data : dict
        Output of load_workshop_data()

    Returns
    -------
    dict
        Summary statistics
    """
    Y = data['Y']
    X = data['X']

    prevalence = Y.mean(axis=0)
    richness = Y.sum(axis=1)

    summary = {
        'n_sites': Y.shape[0],
        'n_species': Y.shape[1],
        'prevalence_min': float(prevalence.min()),
        'prevalence_median': float(prevalence.median()),
        'prevalence_max': float(prevalence.max()),
        'richness_mean': float(richness.mean()),
        'empty_sites': int((richness == 0).sum()),
        'absent_species': int((prevalence == 0).sum()),
        'covariate_ranges': {c: (float(X[c].min()), float(X[c].max())) for c in X.columns},
    }

    if verbose:
        print("\n" + "=" * 60)
        print("WORKSHOP DATA SUMMARY")
        print("=" * 60)
        print(f"Sites: {summary['n_sites']:,}")
        print(f"Species: {summary['n_species']:,}")
        print(f"Prevalence: {summary['prevalence_min']:.3f} - {summary['prevalence_max']:.3f} "
              f"(median {summary['prevalence_median']:.3f})")
        print(f"Mean species richness per site: {summary['richness_mean']:.1f}")
        if summary['empty_sites']:
            print(f"  WARNING: {summary['empty_sites']} sites have no presences")
        if summary['absent_species']:
            print(f"  WARNING: {summary['absent_species']} species are never present")
        print(f"\nCovariates:")
        for c, (lo, hi) in summary['covariate_ranges'].items():
            desc = COVARIATES.get(c, '')
            print(f"  {c:<10} [{lo:7.2f}, {hi:7.2f}]  {desc}")
        print("=" * 60)

    return summary


def quick_data_check(data_dir=None, model_dir=None):
    """
    Check which configured data files and fitted models exist.

    Returns
    -------
    dict
        Component/model name -> bool
    """
    print("\n" + "=" * 60)
    print("DATA AVAILABILITY CHECK")
    print("=" * 60)

    status = {}
    print(f"\nWorkshop data ({data_dir or DATA_DIR}):")
    for component in DATA_FILES:
        path = get_data_path(component, data_dir)
        status[component] = os.path.exists(path)
        print(f"  [{'✓' if status[component] else '✗'}] {component}: {path}")

    print(f"\nFitted models ({model_dir or FITTED_MODEL_DIR}):")
    for name in FITTED_MODELS:
        path = get_model_path(name, model_dir)
        status[name] = os.path.exists(path)
        print(f"  [{'✓' if status[name] else '✗'}] {name}: {path}")

    print("=" * 60)
    return status


__all__ = [
    'load_workshop_data',
    'standardize_covariates',
    'summarize_workshop_data',
    'quick_data_check',
]
