"""
Fitted GLLVM container
======================

Model fitting happens outside this package (the R ``gllvm`` package during the
workshop). A fit is exported to a ``.npz`` archive holding the arrays the
ordination needs, and this module loads it into a ``FittedGLLVM``.

Archive keys
------------
lvs                 n x k site scores (absent when num_lv = 0)
theta               p x k species loadings
species_names       p species names
num_lv              number of latent variables
method              'VA' (variational) or 'LA' (Laplace)
prediction_errors   n x k x k prediction covariances of the site scores (LA)
A                   variational covariances, n x (k+r) or n x (k+r) x (k+r)
A_adjustment        standard-error adjustment added to A, same shape as A
row_eff             'none', 'fixed' or 'random'
family, link        response distribution, e.g. 'binomial' / 'probit'
log_likelihood, n_params, n_obs, aicc, formula
uncertainty_mode    optional explicit tag, one of UncertaintyMode values
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .config import FITTED_MODEL_DIR, FITTED_MODELS, get_model_path
from .exceptions import DimensionError, MissingUncertaintyError


class DisplayMode(Enum):
    SCATTER = 'scatter'
    BIPLOT = 'biplot'


class UncertaintyMode(Enum):
    """Where per-site latent variable covariances come from."""
    NONE = 'none'
    DIRECT_TENSOR = 'direct_tensor'
    RECONSTRUCTED_DIAGONAL = 'reconstructed_diagonal'
    RECONSTRUCTED_DENSE = 'reconstructed_dense'


@dataclass(eq=False)
class FittedGLLVM:
    """Site scores, loadings and uncertainty exported from a GLLVM fit."""

    theta: Optional[np.ndarray]
    lvs: Optional[np.ndarray] = None
    num_lv: Optional[int] = None
    species_names: Optional[List[str]] = None
    method: str = 'VA'
    prediction_errors: Optional[np.ndarray] = None
    variational_cov: Optional[np.ndarray] = None
    variational_adjustment: Optional[np.ndarray] = None
    row_eff: Optional[str] = None
    family: str = 'binomial'
    link: str = 'probit'
    log_likelihood: Optional[float] = None
    n_params: Optional[int] = None
    n_obs: Optional[int] = None
    aicc: Optional[float] = None
    formula: Optional[str] = None
    uncertainty: Optional[UncertaintyMode] = None
    name: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        if self.lvs is not None:
            self.lvs = np.asarray(self.lvs, dtype=float)
            if self.lvs.ndim == 1:
                self.lvs = self.lvs.reshape(-1, 1)
            if self.lvs.ndim != 2:
                raise DimensionError(f"lvs must be a 2-D array, got shape {self.lvs.shape}")

        if self.theta is not None:
            self.theta = np.asarray(self.theta, dtype=float)
            if self.theta.ndim == 1:
                self.theta = self.theta.reshape(-1, 1)
            if self.theta.ndim != 2:
                raise DimensionError(f"theta must be a 2-D array, got shape {self.theta.shape}")

        k_lvs = 0 if self.lvs is None else self.lvs.shape[1]
        if self.num_lv is None:
            self.num_lv = k_lvs
        self.num_lv = int(self.num_lv)

        if self.num_lv != k_lvs:
            raise DimensionError(
                f"num_lv={self.num_lv} but lvs has {k_lvs} columns"
            )
        if self.num_lv > 0:
            if self.theta is None:
                raise DimensionError("Models with latent variables need species loadings (theta)")
            if self.theta.shape[1] != self.num_lv:
                raise DimensionError(
                    f"theta has {self.theta.shape[1]} columns but the model has {self.num_lv} latent variables"
                )

        if self.species_names is None and self.theta is not None:
            self.species_names = [f"V{j + 1}" for j in range(self.theta.shape[0])]
        elif self.species_names is not None:
            self.species_names = [str(s) for s in self.species_names]
            if self.theta is not None and len(self.species_names) != self.theta.shape[0]:
                raise DimensionError(
                    f"{len(self.species_names)} species names for {self.theta.shape[0]} loading rows"
                )

        if self.row_eff in ('none', ''):
            self.row_eff = None
        if isinstance(self.uncertainty, str):
            self.uncertainty = UncertaintyMode(self.uncertainty)

    @property
    def n_sites(self):
        return None if self.lvs is None else self.lvs.shape[0]

    @property
    def n_species(self):
        if self.theta is not None:
            return self.theta.shape[0]
        return None if self.species_names is None else len(self.species_names)

    @property
    def row_effect_offset(self):
        """Number of leading slots in A taken by a random row effect."""
        return 1 if self.row_eff == 'random' else 0

    @property
    def uncertainty_mode(self):
        """
        Representation of the per-site covariances carried by this fit.

        An explicit tag wins. Otherwise the mode follows from which arrays were
        exported: Laplace prediction errors, or the variational covariance as a
        matrix of diagonals (2-D) or a stack of full matrices (3-D).
        """
        if self.uncertainty is not None:
            return self.uncertainty
        if self.method == 'LA' and self.prediction_errors is not None:
            return UncertaintyMode.DIRECT_TENSOR
        if self.variational_cov is not None:
            ndim = np.ndim(self.variational_cov)
            if ndim == 2:
                return UncertaintyMode.RECONSTRUCTED_DIAGONAL
            if ndim == 3:
                return UncertaintyMode.RECONSTRUCTED_DENSE
        if self.prediction_errors is not None:
            return UncertaintyMode.DIRECT_TENSOR
        return UncertaintyMode.NONE

    def __repr__(self):
        label = f"'{self.name}' " if self.name else ''
        return (f"FittedGLLVM({label}n_sites={self.n_sites}, n_species={self.n_species}, "
                f"num_lv={self.num_lv}, method={self.method!r}, "
                f"uncertainty={self.uncertainty_mode.value})")


def site_covariance(model: FittedGLLVM, site_index: int) -> np.ndarray:
    """
    Covariance (k x k) of one site's latent variable scores.

    Parameters
    ----------
    model : FittedGLLVM
    site_index : int
        0-based row of the site

    Returns
    -------
    ndarray
        k x k covariance matrix

    Raises
    ------
    MissingUncertaintyError
        If the fit carries no usable covariance information
    """
    mode = model.uncertainty_mode
    k = model.num_lv
    n = model.n_sites

    if mode is UncertaintyMode.NONE:
        raise MissingUncertaintyError(
            "Model has no prediction errors or variational covariances; "
            "refit with sd.errors = TRUE or export them to draw prediction regions"
        )
    if n is None or not 0 <= site_index < n:
        raise IndexError(f"Site index {site_index} out of range for {n} sites")

    if mode is UncertaintyMode.DIRECT_TENSOR:
        if model.prediction_errors is None:
            raise MissingUncertaintyError("Direct tensor mode requested but prediction_errors is missing")
        tensor = np.asarray(model.prediction_errors, dtype=float)
        if tensor.shape != (n, k, k):
            raise DimensionError(f"prediction_errors must have shape {(n, k, k)}, got {tensor.shape}")
        return tensor[site_index]

    if model.variational_cov is None:
        raise MissingUncertaintyError(f"{mode.value} mode requested but the variational covariance is missing")

    A = np.asarray(model.variational_cov, dtype=float)
    if model.variational_adjustment is not None:
        A = A + np.asarray(model.variational_adjustment, dtype=float)

    r = model.row_effect_offset
    lv_slice = slice(r, r + k)

    if mode is UncertaintyMode.RECONSTRUCTED_DIAGONAL:
        if A.ndim != 2 or A.shape[0] != n or A.shape[1] < r + k:
            raise DimensionError(f"Diagonal variational covariance must be n x (k+r), got {A.shape}")
        return np.diag(A[site_index, lv_slice])

    if A.ndim != 3 or A.shape[0] != n or A.shape[1] < r + k or A.shape[2] < r + k:
        raise DimensionError(f"Dense variational covariance must be n x (k+r) x (k+r), got {A.shape}")
    return A[site_index, lv_slice, lv_slice]


# ============================================================================
# ARCHIVE I/O
# ============================================================================

def _optional(archive, key, cast=None):
    if key not in archive.files:
        return None
    value = archive[key]
    if value.ndim == 0:
        value = value.item()
        if cast is not None:
            value = cast(value)
    return value


def load_fitted_model(path, name=None) -> FittedGLLVM:
    """
    Load a fitted model exported to a .npz archive.

    Parameters
    ----------
    path : str or Path
        Archive path
    name : str, optional
        Label stored on the model (defaults to the file stem)

    Returns
    -------
    FittedGLLVM
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Fitted model not found: {path}")

    with np.load(path, allow_pickle=False) as archive:
        species_names = _optional(archive, 'species_names')
        uncertainty = _optional(archive, 'uncertainty_mode', str)
        model = FittedGLLVM(
            theta=_optional(archive, 'theta'),
            lvs=_optional(archive, 'lvs'),
            num_lv=_optional(archive, 'num_lv', int),
            species_names=None if species_names is None else list(species_names),
            method=_optional(archive, 'method', str) or 'VA',
            prediction_errors=_optional(archive, 'prediction_errors'),
            variational_cov=_optional(archive, 'A'),
            variational_adjustment=_optional(archive, 'A_adjustment'),
            row_eff=_optional(archive, 'row_eff', str),
            family=_optional(archive, 'family', str) or 'binomial',
            link=_optional(archive, 'link', str) or 'probit',
            log_likelihood=_optional(archive, 'log_likelihood', float),
            n_params=_optional(archive, 'n_params', int),
            n_obs=_optional(archive, 'n_obs', int),
            aicc=_optional(archive, 'aicc', float),
            formula=_optional(archive, 'formula', str),
            uncertainty=UncertaintyMode(uncertainty) if uncertainty else None,
            name=name or path.stem,
        )
    return model


def save_fitted_model(model: FittedGLLVM, path) -> Path:
    """Write a FittedGLLVM to a .npz archive readable by load_fitted_model()."""
    arrays = {
        'num_lv': np.asarray(model.num_lv),
        'method': np.asarray(model.method),
        'family': np.asarray(model.family),
        'link': np.asarray(model.link),
        'row_eff': np.asarray(model.row_eff or 'none'),
    }
    optional = {
        'theta': model.theta,
        'lvs': model.lvs,
        'species_names': model.species_names,
        'prediction_errors': model.prediction_errors,
        'A': model.variational_cov,
        'A_adjustment': model.variational_adjustment,
        'log_likelihood': model.log_likelihood,
        'n_params': model.n_params,
        'n_obs': model.n_obs,
        'aicc': model.aicc,
        'formula': model.formula,
    }
    for key, value in optional.items():
        if value is not None:
            arrays[key] = np.asarray(value)
    if model.uncertainty is not None:
        arrays['uncertainty_mode'] = np.asarray(model.uncertainty.value)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez(path, **arrays)
    return path


def load_fitted_models(names=None, model_dir=None, verbose=True) -> Dict[str, FittedGLLVM]:
    """
    Load several configured fits by logical name (see config.FITTED_MODELS).

    Missing archives are reported and skipped.
    """
    if names is None:
        names = list(FITTED_MODELS.keys())
    model_dir = model_dir or FITTED_MODEL_DIR

    models = {}
    for name in names:
        path = get_model_path(name, model_dir)
        if not path.exists():
            if verbose:
                print(f"  ✗ {name}: {path} not found, skipping")
            continue
        models[name] = load_fitted_model(path, name=name)
        if verbose:
            print(f"  ✓ {name}: {models[name]!r}")
    return models


__all__ = [
    'DisplayMode',
    'UncertaintyMode',
    'FittedGLLVM',
    'site_covariance',
    'load_fitted_model',
    'save_fitted_model',
    'load_fitted_models',
]
