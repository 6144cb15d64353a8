"""
Example script demonstrating the biplot scaling functions.

Builds a small synthetic fit, shows how alpha moves the joint norm between
sites and species, and draws a biplot with prediction ellipses. No workshop
data or exported fits are needed.
"""

from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt

from gllvm_ordination import (
    FittedGLLVM,
    compute_scaled_coordinates,
    select_top_species,
    build_ordination,
    plot_ordination,
    get_residual_correlation,
    plot_residual_correlation,
    setup_plot_style,
)

OUTPUT_DIR = Path('output')
OUTPUT_DIR.mkdir(exist_ok=True)

rng = np.random.default_rng(1234)

# ==============================================================================
# EXAMPLE 1: A synthetic fit
# ==============================================================================

print("=" * 80)
print("EXAMPLE 1: SYNTHETIC FIT")
print("=" * 80)

n_sites, n_species, num_lv = 40, 12, 2
factors = rng.normal(scale=0.2, size=(n_sites, num_lv, num_lv))

fit = FittedGLLVM(
    theta=rng.normal(scale=1.5, size=(n_species, num_lv)),
    lvs=rng.normal(size=(n_sites, num_lv)),
    species_names=[f"Species {j + 1}" for j in range(n_species)],
    method='LA',
    prediction_errors=factors @ np.transpose(factors, (0, 2, 1)) + 0.01 * np.eye(num_lv),
    name='synthetic',
)
print(fit)

# ==============================================================================
# EXAMPLE 2: Where the joint norm goes
# ==============================================================================

print("\n" + "=" * 80)
print("EXAMPLE 2: ALPHA")
print("=" * 80)

print(f"{'alpha':<8} {'site SS':>12} {'species SS':>12}")
for alpha in (0.0, 0.25, 0.5, 0.75, 1.0):
    coords = compute_scaled_coordinates(fit.lvs, fit.theta, alpha=alpha)
    print(f"{alpha:<8.2f} {np.sum(coords.sites ** 2):>12.2f} {np.sum(coords.species ** 2):>12.2f}")

top = select_top_species(fit.theta, 5)
print(f"\nLargest loadings: {[fit.species_names[j] for j in top]}")

# ==============================================================================
# EXAMPLE 3: Biplot with prediction ellipses
# ==============================================================================

print("\n" + "=" * 80)
print("EXAMPLE 3: BIPLOT")
print("=" * 80)

setup_plot_style()

display = build_ordination(fit, display_mode='biplot', ind_spp=5, predict_region=True)
print(f"Axes: {display.axis_labels}")
print(f"Ellipses: {len(display.ellipses)}, first radius {display.ellipses[0].radius:.3f}")

fig, axes = plt.subplots(1, 2, figsize=(14, 6))
plot_ordination(fit, ax=axes[0], symbols=True, predict_region=True, col_ellips='gray',
                title='Sites with 95% prediction regions')
plot_ordination(fit, ax=axes[1], display_mode='biplot', ind_spp=5, symbols=True,
                jitter_amount=0.2, random_state=1, spp_colors='darkred',
                title='Biplot, top 5 species')
fig.tight_layout()
fig.savefig(OUTPUT_DIR / 'example_biplot.png', dpi=150)

# ==============================================================================
# EXAMPLE 4: Residual correlations
# ==============================================================================

corr = get_residual_correlation(fit)
plot_residual_correlation(corr, label_size=8, save_path=OUTPUT_DIR / 'example_residual_correlation.png')

print("\n" + "=" * 80)
print(f"Figures written to {OUTPUT_DIR}/")
print("=" * 80)
