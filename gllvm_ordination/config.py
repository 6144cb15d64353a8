"""
Configuration settings for GLLVM Ordination Analysis
=====================================================

This module contains all paths, parameters, and constants for the analysis.
Users should modify the PATHS section for their specific system.

Project: GLLVM ordinations of Swiss Alps plant presence-absence data
"""

import os
from pathlib import Path

# ============================================================================
# PATHS - USER MODIFIES THESE FOR THEIR SYSTEM
# ============================================================================

# Workshop data exported from WorkshopData.RDA (one CSV per component)
DATA_DIR = r"data/workshop"

DATA_FILES = {
    'Y': 'Y.csv',                                   # sites x species (0/1)
    'X': 'X.csv',                                   # sites x covariates
    'elevation_classes': 'elevation_classes.csv',   # species -> class (1, 2, 3)
    'colline_species': 'colline_species.csv',       # single column of species names
}

# Fitted models exported from the external gllvm fitting step (.npz archives)
FITTED_MODEL_DIR = r"data/fits"

FITTED_MODELS = {
    'base': 'fit_base.npz',                 # num.lv = 2, no covariates
    'lv0': 'fit_lv0.npz',                   # ~ SLOPE + MIND, num.lv = 0
    'lv1': 'fit_lv1.npz',                   # ~ SLOPE + MIND, num.lv = 1
    'lv2': 'fit_lv2.npz',                   # ~ SLOPE + MIND, num.lv = 2
    'lv3': 'fit_lv3.npz',                   # ~ SLOPE + MIND, num.lv = 3
    'degree_days': 'fit_degree_days.npz',   # ~ SLOPE + MIND + DDEG0, num.lv = 2
}

# Output directory (will be created if it doesn't exist)
OUTPUT_DIR = r"outputs"

# ============================================================================
# COVARIATES
# ============================================================================
# Each covariate is standardised to mean 0 and SD 1 (helps model convergence)

COVARIATES = {
    'DDEG0': 'Days over zero degrees',
    'SOLRAD': 'Summed annual solar radiation',
    'SLOPE': 'Slope angle in degrees',
    'MIND': 'Moisture index',
    'TPI': 'Topographic position index',
    'ELEVATION': 'Elevation',
}

# Covariates used in the latent variable count comparison
SELECTED_COVARIATES = ['SLOPE', 'MIND']

# Covariates checked against the latent variables of the selected model
REMAINING_COVARIATES = ['DDEG0', 'SOLRAD', 'ELEVATION', 'TPI']

# Elevation classes of species, in order of the integer codes 1, 2, 3
ELEVATION_CLASSES = ['montane', 'subalpine', 'alpine']

# ============================================================================
# ORDINATION PARAMETERS
# ============================================================================

# Share of the joint norm given to sites (1 = all to sites, 0 = all to species)
DEFAULT_ALPHA = 0.5

# Latent variables shown on the x and y axes (1-based)
DEFAULT_WHICH_LVS = (1, 2)

# Confidence level for prediction ellipses
DEFAULT_LEVEL = 0.95

# Jitter is off unless an amount is given
DEFAULT_JITTER_AMOUNT = 0.0
JITTER_AMOUNT_WHEN_ENABLED = 0.2

# Number of segments used to draw an ellipse outline
ELLIPSE_SEGMENTS = 51

# Axis limits used for the site ordinations and species biplots
SITE_ORDINATION_LIMITS = ((-1.2, 1.2), (-1.2, 1.2))
BIPLOT_LIMITS = ((-4, 4), (-3, 3))

# ============================================================================
# ANALYSIS PARAMETERS
# ============================================================================

# |r| above which two covariates are reported as collinear
COLLINEARITY_THRESHOLD = 0.5

# Random seed for reproducibility (jitter)
RANDOM_SEED = 1234

# ============================================================================
# VISUALIZATION PARAMETERS
# ============================================================================

PLOT_STYLE = 'seaborn-v0_8-whitegrid'

PLOT_PARAMS = {
    'font.size': 11,
    'axes.labelsize': 12,
    'axes.titlesize': 13,
    'legend.fontsize': 10,
    'figure.dpi': 100,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
    'figure.figsize': (10, 8),
}

# Low -> high covariate values
COVARIATE_COLOR_RAMP = ('mediumspringgreen', 'blue')
COVARIATE_COLOR_BINS = 20

# Montane, subalpine, alpine
ELEVATION_CLASS_COLORS = ('red', 'blue', 'green')

COLORMAPS = {
    'correlation': 'RdBu_r',
    'residual': 'RdBu',    # negative red, positive blue
}


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def ensure_output_dir():
    """Create output directory if it doesn't exist."""
    Path(OUTPUT_DIR).mkdir(parents=True, exist_ok=True)
    return OUTPUT_DIR


def get_model_path(model_name, model_dir=None):
    """Get path for a named fitted model archive."""
    if model_name not in FITTED_MODELS:
        raise ValueError(f"Unknown model: {model_name}. Available: {list(FITTED_MODELS.keys())}")
    return Path(model_dir or FITTED_MODEL_DIR) / FITTED_MODELS[model_name]


def get_data_path(component, data_dir=None):
    """Get path for a workshop data component ('Y', 'X', ...)."""
    if component not in DATA_FILES:
        raise ValueError(f"Unknown data component: {component}. Available: {list(DATA_FILES.keys())}")
    return Path(data_dir or DATA_DIR) / DATA_FILES[component]


def print_config_summary():
    """Print summary of current configuration."""
    print("=" * 60)
    print("GLLVM ORDINATION ANALYSIS - Configuration Summary")
    print("=" * 60)
    print(f"\nWorkshop Data ({DATA_DIR}):")
    for component in DATA_FILES:
        path = get_data_path(component)
        exists = "✓" if os.path.exists(path) else "✗"
        print(f"  [{exists}] {component}: {path}")
    print(f"\nFitted Models ({FITTED_MODEL_DIR}):")
    for name in FITTED_MODELS:
        path = get_model_path(name)
        exists = "✓" if os.path.exists(path) else "✗"
        print(f"  [{exists}] {name}: {path}")
    print(f"\nOrdination: alpha={DEFAULT_ALPHA}, axes={DEFAULT_WHICH_LVS}, level={DEFAULT_LEVEL}")
    print(f"Output Directory: {OUTPUT_DIR}")
    print("=" * 60)


if __name__ == "__main__":
    print_config_summary()
