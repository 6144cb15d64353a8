"""
Biplot scaling of GLLVM site scores and species loadings.

Site scores (n x k) and species loadings (p x k) live on different scales, so
they can't be overlaid as they come out of the fit. Both are put on a common
footing with the symmetric biplot construction:

1. SVD of the site scores; the right singular vectors V become a rotation
   shared by sites and species.
2. Column norms of both matrices; their product is the joint norm of each
   latent variable.
3. Site column j is rescaled to norm jointNorm_j ** alpha, species column j
   to norm jointNorm_j ** (1 - alpha).
4. Both scaled matrices are rotated by V and the two requested latent
   variables are extracted for display.

alpha = 1 puts all of the joint norm on the sites, alpha = 0 on the species.

Prediction ellipses push each site's k x k covariance through the same linear
map (B) that was applied to the site scores.

References
----------
Gabriel, K. R. (1971). The biplot graphic display of matrices with
application to principal component analysis. Biometrika 58, 453-467.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from .config import (
    DEFAULT_ALPHA, DEFAULT_WHICH_LVS, DEFAULT_LEVEL,
    DEFAULT_JITTER_AMOUNT, ELLIPSE_SEGMENTS
)
from .exceptions import (
    AxisOutOfRangeError, DimensionError, InvalidParameterError,
    MissingUncertaintyError, UnsupportedBiplotError
)
from .fitted_model import DisplayMode, FittedGLLVM, UncertaintyMode, site_covariance


@dataclass
class OrdinationCoordinates:
    """Scaled and rotated coordinates of one ordination."""
    sites: np.ndarray
    species: Optional[np.ndarray]
    sites_full: np.ndarray
    species_full: Optional[np.ndarray]
    B: Optional[np.ndarray]
    Bt: Optional[np.ndarray]
    rotation: Optional[np.ndarray]
    which_lvs: Tuple[int, ...]
    alpha: float
    display_mode: DisplayMode


@dataclass
class PredictionEllipse:
    """Prediction region of one site in the display plane."""
    site_index: int
    center: np.ndarray
    covariance: np.ndarray
    radius: float
    level: float

    def outline(self, segments=ELLIPSE_SEGMENTS):
        """
        Closed polyline tracing the ellipse.

        Returns
        -------
        ndarray
            (segments + 1) x 2 array; first and last rows coincide
        """
        angles = np.arange(segments + 1) * 2 * np.pi / segments
        unit_circle = np.column_stack([np.cos(angles), np.sin(angles)])

        # Covariances from a fit can be numerically semi-definite, so use the
        # eigen square root rather than a Cholesky factor
        eigvals, eigvecs = np.linalg.eigh(self.covariance)
        root = eigvecs @ np.diag(np.sqrt(np.clip(eigvals, 0, None)))
        return self.center + self.radius * unit_circle @ root.T


@dataclass
class OrdinationDisplay:
    """Everything a renderer needs to draw one ordination plot."""
    site_points: np.ndarray
    species_points: Optional[np.ndarray]
    species_labels: List[str]
    species_index: np.ndarray
    ellipses: List[PredictionEllipse]
    axis_labels: Tuple[str, str]
    display_mode: DisplayMode
    coordinates: OrdinationCoordinates
    site_labels: List[str] = field(default_factory=list)


# ============================================================================
# VALIDATION
# ============================================================================

def _as_matrix(values, name):
    matrix = np.asarray(values, dtype=float)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    if matrix.ndim != 2:
        raise DimensionError(f"{name} must be a 2-D matrix, got shape {matrix.shape}")
    return matrix


def _validate_alpha(alpha):
    if not np.isscalar(alpha) or not 0 <= alpha <= 1:
        raise InvalidParameterError(f"alpha must be in [0, 1], got {alpha}")
    return float(alpha)


def _validate_which_lvs(which_lvs, k):
    """Check a 1-based axis pair against k and return it 0-based."""
    try:
        axes = tuple(which_lvs)
    except TypeError:
        raise InvalidParameterError(f"which_lvs must be a pair of indices, got {which_lvs!r}")

    if len(axes) != 2:
        raise InvalidParameterError(f"which_lvs must contain exactly 2 indices, got {len(axes)}")
    if not all(isinstance(a, (int, np.integer)) and not isinstance(a, bool) for a in axes):
        raise InvalidParameterError(f"which_lvs must be integers, got {axes}")
    if axes[0] == axes[1]:
        raise InvalidParameterError(f"which_lvs must name two distinct latent variables, got {axes}")
    for a in axes:
        if not 1 <= a <= k:
            raise AxisOutOfRangeError(
                f"Latent variable {a} requested but the model has {k} latent variable(s)"
            )
    return [int(a) - 1 for a in axes]


def _as_display_mode(display_mode):
    if isinstance(display_mode, DisplayMode):
        return display_mode
    if isinstance(display_mode, bool):
        return DisplayMode.BIPLOT if display_mode else DisplayMode.SCATTER
    try:
        return DisplayMode(display_mode)
    except ValueError:
        raise InvalidParameterError(
            f"display_mode must be one of {[m.value for m in DisplayMode]}, got {display_mode!r}"
        )


# ============================================================================
# SCALING
# ============================================================================

def compute_scaled_coordinates(site_scores, species_loadings, alpha=DEFAULT_ALPHA,
                               which_lvs=DEFAULT_WHICH_LVS,
                               display_mode=DisplayMode.BIPLOT) -> OrdinationCoordinates:
    """
    Jointly scale and rotate site scores and species loadings.

    Parameters
    ----------
    site_scores : array-like
        n x k latent variable scores of the sites
    species_loadings : array-like
        p x k loadings of the species on the same latent variables
    alpha : float
        Share of the joint norm given to the sites, in [0, 1]
    which_lvs : pair of int
        1-based latent variables for the x and y axes
    display_mode : DisplayMode, str or bool
        SCATTER (sites only) or BIPLOT (sites and species)

    Returns
    -------
    OrdinationCoordinates
        ``sites``/``species`` hold the two selected axes; ``sites_full`` and
        ``species_full`` all k. ``B`` and ``Bt`` are the k x k maps with
        ``sites_full = site_scores @ B`` and ``species_full = species_loadings @ Bt``.

    Notes
    -----
    With a single latent variable there is nothing to rotate. SCATTER mode
    returns the raw n x 1 scores and no species; BIPLOT mode raises
    UnsupportedBiplotError.
    """
    sites = _as_matrix(site_scores, 'site_scores')
    species = _as_matrix(species_loadings, 'species_loadings')
    display_mode = _as_display_mode(display_mode)

    n, k = sites.shape
    p, k_species = species.shape

    if k < 1:
        raise DimensionError("Site scores have no latent variables")
    if k_species != k:
        raise DimensionError(
            f"Site scores have {k} latent variables but species loadings have {k_species}"
        )
    if n < 1:
        raise DimensionError("Site scores have no rows")
    if p < 1:
        raise DimensionError("Species loadings have no rows")

    alpha = _validate_alpha(alpha)

    if k == 1:
        if display_mode is DisplayMode.BIPLOT:
            raise UnsupportedBiplotError("A biplot needs at least 2 latent variables; the model has 1")
        return OrdinationCoordinates(
            sites=sites.copy(), species=None,
            sites_full=sites.copy(), species_full=None,
            B=None, Bt=None, rotation=None,
            which_lvs=(1,), alpha=alpha, display_mode=display_mode,
        )

    axes = _validate_which_lvs(which_lvs, k)

    # Full V is needed when there are fewer sites than latent variables
    _, _, vt = np.linalg.svd(sites, full_matrices=n < k)
    rotation = vt.T

    site_norms = np.sqrt(np.sum(sites ** 2, axis=0))
    species_norms = np.sqrt(np.sum(species ** 2, axis=0))
    if np.any(site_norms == 0) or np.any(species_norms == 0):
        raise DimensionError("Every latent variable needs non-zero site and species norms")

    joint_norms = site_norms * species_norms

    B = np.diag(joint_norms ** alpha / site_norms) @ rotation
    Bt = np.diag(joint_norms ** (1 - alpha) / species_norms) @ rotation

    sites_full = sites @ B
    species_full = species @ Bt

    return OrdinationCoordinates(
        sites=sites_full[:, axes],
        species=species_full[:, axes],
        sites_full=sites_full,
        species_full=species_full,
        B=B,
        Bt=Bt,
        rotation=rotation,
        which_lvs=tuple(a + 1 for a in axes),
        alpha=alpha,
        display_mode=display_mode,
    )


def select_top_species(species_loadings, ind_spp=None) -> np.ndarray:
    """
    Indices of the species with the largest loadings.

    Species are ranked by the sum of squared loadings, largest first. Ties keep
    their original order.

    Parameters
    ----------
    species_loadings : array-like
        p x k loadings
    ind_spp : int, 'all' or None
        Number of species to keep (capped at p); None or 'all' keeps all

    Returns
    -------
    ndarray
        0-based row indices, best first
    """
    loadings = _as_matrix(species_loadings, 'species_loadings')
    p = loadings.shape[0]

    if ind_spp is None or ind_spp == 'all':
        n_keep = p
    elif isinstance(ind_spp, (int, np.integer)) and not isinstance(ind_spp, bool) and ind_spp >= 1:
        n_keep = min(p, int(ind_spp))
    else:
        raise InvalidParameterError(f"ind_spp must be a positive integer or 'all', got {ind_spp!r}")

    squared_norms = np.sum(loadings ** 2, axis=1)
    order = np.argsort(-squared_norms, kind='stable')
    return order[:n_keep]


# ============================================================================
# PREDICTION REGIONS
# ============================================================================

def chi_squared_radius(level, df):
    """Radius sqrt(chi2_df quantile) of a prediction region at ``level``."""
    if not np.isscalar(level) or not 0 < level < 1:
        raise InvalidParameterError(f"level must be in (0, 1), got {level}")
    if df < 1:
        raise DimensionError(f"Degrees of freedom must be at least 1, got {df}")
    return float(np.sqrt(stats.chi2.ppf(level, df=df)))


def compute_prediction_ellipse(site_index, covariance_source, rotation_b,
                               level=DEFAULT_LEVEL, which_lvs=DEFAULT_WHICH_LVS,
                               *, site_points) -> PredictionEllipse:
    """
    Prediction ellipse of one site in the scaled display plane.

    Parameters
    ----------
    site_index : int
        0-based site row
    covariance_source : ndarray or FittedGLLVM
        The site's k x k covariance, or a fit to take it from
    rotation_b : ndarray
        k x k map applied to the site scores (OrdinationCoordinates.B)
    level : float
        Confidence level in (0, 1)
    which_lvs : pair of int
        1-based display axes
    site_points : ndarray
        n x 2 scaled site coordinates; the ellipse is centred on row site_index

    Returns
    -------
    PredictionEllipse
    """
    if covariance_source is None:
        raise MissingUncertaintyError("No covariance source given for the prediction region")
    if isinstance(covariance_source, FittedGLLVM):
        covariance = site_covariance(covariance_source, site_index)
    else:
        covariance = np.asarray(covariance_source, dtype=float)

    B = np.asarray(rotation_b, dtype=float)
    if B.ndim != 2 or B.shape[0] != B.shape[1]:
        raise DimensionError(f"rotation_b must be square, got shape {B.shape}")
    k = B.shape[0]
    if covariance.shape != (k, k):
        raise DimensionError(f"Site covariance must be {k} x {k}, got {covariance.shape}")

    radius = chi_squared_radius(level, df=k)
    axes = _validate_which_lvs(which_lvs, k)

    projected = B.T @ covariance @ B
    return PredictionEllipse(
        site_index=site_index,
        center=np.asarray(site_points, dtype=float)[site_index].copy(),
        covariance=projected[np.ix_(axes, axes)],
        radius=radius,
        level=level,
    )


def compute_prediction_ellipses(model: FittedGLLVM, coordinates: OrdinationCoordinates,
                                level=DEFAULT_LEVEL) -> List[PredictionEllipse]:
    """Prediction ellipses for every site of a scaled ordination."""
    if coordinates.B is None:
        raise DimensionError("Prediction regions need at least 2 latent variables")
    if model.uncertainty_mode is UncertaintyMode.NONE:
        raise MissingUncertaintyError(
            "Model has no prediction errors or variational covariances for prediction regions"
        )

    return [
        compute_prediction_ellipse(i, model, coordinates.B, level, coordinates.which_lvs,
                                   site_points=coordinates.sites)
        for i in range(coordinates.sites.shape[0])
    ]


# ============================================================================
# DISPLAY ASSEMBLY
# ============================================================================

def jitter_points(points, amount, random_state=None):
    """
    Add uniform(-amount, amount) noise to every coordinate.

    ``random_state`` is a seed or a numpy Generator; amount 0 returns a copy.
    """
    points = np.asarray(points, dtype=float)
    if amount < 0:
        raise InvalidParameterError(f"Jitter amount must be non-negative, got {amount}")
    if amount == 0:
        return points.copy()
    rng = np.random.default_rng(random_state)
    return points + rng.uniform(-amount, amount, size=points.shape)


def build_ordination(model: FittedGLLVM, display_mode=DisplayMode.SCATTER,
                     alpha=DEFAULT_ALPHA, which_lvs: Sequence[int] = DEFAULT_WHICH_LVS,
                     ind_spp=None, predict_region=False, level=DEFAULT_LEVEL,
                     jitter_amount=DEFAULT_JITTER_AMOUNT,
                     random_state=None) -> OrdinationDisplay:
    """
    Assemble display coordinates for an ordination plot of a fitted model.

    Parameters
    ----------
    model : FittedGLLVM
        Fit with at least one latent variable
    display_mode : DisplayMode, str or bool
        SCATTER for sites only, BIPLOT for sites and species
    alpha : float
        Scaling split between sites and species
    which_lvs : pair of int
        1-based latent variables to display
    ind_spp : int or 'all', optional
        Number of species (largest loadings) to label in a biplot
    predict_region : bool
        Compute prediction ellipses for the sites
    level : float
        Confidence level of the ellipses
    jitter_amount : float
        Half-width of uniform jitter added to the displayed points (0 = none)
    random_state : int or numpy.random.Generator, optional
        Source of the jitter

    Returns
    -------
    OrdinationDisplay
    """
    display_mode = _as_display_mode(display_mode)

    if model.num_lv == 0:
        raise DimensionError("No latent variables to plot.")

    n = model.n_sites
    site_labels = [str(i) for i in range(1, n + 1)]
    rng = np.random.default_rng(random_state)

    if model.num_lv == 1:
        coordinates = compute_scaled_coordinates(model.lvs, model.theta, alpha,
                                                 which_lvs, display_mode)
        site_points = np.column_stack([np.arange(1, n + 1), coordinates.sites[:, 0]])
        return OrdinationDisplay(
            site_points=site_points,
            species_points=None,
            species_labels=[],
            species_index=np.array([], dtype=int),
            ellipses=[],
            axis_labels=('Row index', 'LV1'),
            display_mode=display_mode,
            coordinates=coordinates,
            site_labels=site_labels,
        )

    coordinates = compute_scaled_coordinates(model.lvs, model.theta, alpha,
                                             which_lvs, display_mode)

    # Ellipses stay centred on the unjittered positions
    ellipses = compute_prediction_ellipses(model, coordinates, level) if predict_region else []

    site_points = jitter_points(coordinates.sites, jitter_amount, rng)

    species_points = None
    species_labels = []
    species_index = np.array([], dtype=int)
    if display_mode is DisplayMode.BIPLOT:
        species_index = select_top_species(model.theta, ind_spp)
        species_points = jitter_points(coordinates.species[species_index], jitter_amount, rng)
        species_labels = [model.species_names[j] for j in species_index]

    x_lv, y_lv = coordinates.which_lvs
    return OrdinationDisplay(
        site_points=site_points,
        species_points=species_points,
        species_labels=species_labels,
        species_index=species_index,
        ellipses=ellipses,
        axis_labels=(f"Latent variable {x_lv}", f"Latent variable {y_lv}"),
        display_mode=display_mode,
        coordinates=coordinates,
        site_labels=site_labels,
    )


__all__ = [
    'OrdinationCoordinates',
    'PredictionEllipse',
    'OrdinationDisplay',
    'compute_scaled_coordinates',
    'select_top_species',
    'chi_squared_radius',
    'compute_prediction_ellipse',
    'compute_prediction_ellipses',
    'jitter_points',
    'build_ordination',
]
