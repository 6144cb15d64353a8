"""
Residual species correlations implied by the latent variables.

After covariate effects are removed, co-variation between species is carried
by the loadings: Sigma = Theta Theta^T. For probit models the latent
(linear predictor scale) error variance is 1, which is added to the
diagonal before converting to correlations. Positive values mean two species
co-occur more than the covariates explain, negative values that they avoid
each other.
"""

import numpy as np
import pandas as pd

from .exceptions import DimensionError
from .fitted_model import FittedGLLVM


def get_residual_covariance(model: FittedGLLVM) -> pd.DataFrame:
    """
    Residual covariance between species.

    Parameters
    ----------
    model : FittedGLLVM
        Fit with at least one latent variable

    Returns
    -------
    DataFrame
        p x p covariance labelled by species name
    """
    if model.num_lv == 0:
        raise DimensionError("Residual correlations need at least one latent variable")

    theta = model.theta
    covariance = theta @ theta.T
    if model.family == 'binomial' and model.link == 'probit':
        covariance = covariance + np.eye(theta.shape[0])

    return pd.DataFrame(covariance, index=model.species_names, columns=model.species_names)


def get_residual_correlation(model: FittedGLLVM, species=None) -> pd.DataFrame:
    """
    Residual correlation between species.

    Parameters
    ----------
    model : FittedGLLVM
    species : list of str, optional
        Restrict the result to these species, in this order

    Returns
    -------
    DataFrame
        Correlation matrix labelled by species name
    """
    covariance = get_residual_covariance(model)

    sd = np.sqrt(np.diag(covariance.to_numpy()))
    with np.errstate(divide='ignore', invalid='ignore'):
        correlation = covariance.to_numpy() / np.outer(sd, sd)
    # Species with all-zero loadings (non-probit) have undefined correlations
    correlation[np.outer(sd, sd) == 0] = np.nan
    np.fill_diagonal(correlation, np.where(sd > 0, 1.0, np.nan))

    correlation = pd.DataFrame(correlation, index=covariance.index, columns=covariance.columns)

    if species is not None:
        species = list(species)
        unknown = [s for s in species if s not in correlation.index]
        if unknown:
            raise KeyError(f"Unknown species: {unknown}")
        correlation = correlation.loc[species, species]

    return correlation


__all__ = [
    'get_residual_covariance',
    'get_residual_correlation',
]
