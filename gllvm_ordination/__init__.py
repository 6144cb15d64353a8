"""
GLLVM Ordination Analysis Package
=================================

Ordination workflow for generalized linear latent variable models (GLLVMs)
fitted to species presence-absence data: covariate screening, comparison of
latent variable counts, covariate-coloured site ordinations, species biplots
with prediction ellipses, and residual species correlations.

Core Innovation: a symmetric biplot scaling that rotates site scores and
species loadings into one display space with a shared SVD rotation.

Modules:
    config               - Configuration settings and paths
    data_loading         - Load the workshop data
    fitted_model         - Fitted model container and archive I/O
    biplot_scaling       - Biplot scaling, species selection, prediction ellipses
    collinearity         - Covariate collinearity screening
    model_selection      - AICc comparison of latent variable counts
    residual_correlation - Residual species correlations
    visualization        - Plotting
    main                 - Orchestration and pipeline

Quick Start:
    >>> from gllvm_ordination import load_fitted_model, plot_ordination
    >>> fit = load_fitted_model('data/fits/fit_lv2.npz')
    >>> plot_ordination(fit, display_mode='biplot')
"""

__version__ = '0.1.0'

# Import key functions for convenient access
from .config import (
    COVARIATES, DEFAULT_ALPHA, DEFAULT_WHICH_LVS, DEFAULT_LEVEL,
    ensure_output_dir, print_config_summary
)

from .exceptions import (
    OrdinationError,
    DimensionError,
    InvalidParameterError,
    AxisOutOfRangeError,
    UnsupportedBiplotError,
    MissingUncertaintyError
)

from .fitted_model import (
    DisplayMode,
    UncertaintyMode,
    FittedGLLVM,
    site_covariance,
    load_fitted_model,
    save_fitted_model,
    load_fitted_models
)

from .biplot_scaling import (
    OrdinationCoordinates,
    OrdinationDisplay,
    PredictionEllipse,
    compute_scaled_coordinates,
    select_top_species,
    chi_squared_radius,
    compute_prediction_ellipse,
    compute_prediction_ellipses,
    jitter_points,
    build_ordination
)

from .data_loading import (
    load_workshop_data,
    standardize_covariates,
    summarize_workshop_data,
    quick_data_check
)

from .collinearity import (
    compute_correlation_matrix,
    compute_correlation_table,
    find_collinear_pairs
)

from .model_selection import (
    compute_aicc,
    model_aicc,
    compare_latent_variable_models,
    select_best_model
)

from .residual_correlation import (
    get_residual_covariance,
    get_residual_correlation
)

from .visualization import (
    setup_plot_style,
    create_render_context,
    covariate_colors,
    plot_ordination,
    plot_covariate_ordinations,
    plot_species_groups_biplot,
    plot_correlation_matrix,
    plot_residual_correlation,
    plot_model_comparison
)

from .main import (
    load_data,
    load_models,
    analyze_collinearity,
    analyze_covariate_gradients,
    analyze_latent_variable_count,
    analyze_species_groups,
    analyze_residual_correlation,
    run_full_analysis,
    quick_start
)
