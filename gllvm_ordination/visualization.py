"""
Visualization Module for GLLVM Ordination Analysis
===================================================

This module renders the outputs of the analysis:
- Site ordinations coloured by environmental covariates
- Species biplots coloured by elevation class, with optional
  prediction ellipses and jitter
- Covariate collinearity heatmaps
- Residual species correlation (co-occurrence) plots
- AICc comparison of latent variable counts

Coordinates are computed in biplot_scaling; the functions here only draw.
Figure layout is passed around explicitly as a RenderContext instead of
relying on pyplot's current figure.
"""

import warnings
from dataclasses import dataclass, field
from typing import List

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import matplotlib.colors as mcolors
import seaborn as sns
from matplotlib.patches import Patch

from .biplot_scaling import build_ordination
from .config import (
    PLOT_STYLE, PLOT_PARAMS, COLORMAPS, COVARIATE_COLOR_RAMP, COVARIATE_COLOR_BINS,
    ELEVATION_CLASS_COLORS, ELEVATION_CLASSES, SITE_ORDINATION_LIMITS, BIPLOT_LIMITS,
    DEFAULT_ALPHA, DEFAULT_WHICH_LVS, DEFAULT_LEVEL, DEFAULT_JITTER_AMOUNT, ELLIPSE_SEGMENTS
)
from .exceptions import InvalidParameterError, MissingUncertaintyError
from .fitted_model import DisplayMode


# ============================================================================
# PLOT SETUP
# ============================================================================

def setup_plot_style():
    """Apply publication-quality plot settings."""
    try:
        plt.style.use(PLOT_STYLE)
    except OSError:
        plt.style.use('default')
    plt.rcParams.update(PLOT_PARAMS)


@dataclass
class RenderContext:
    """A figure and its panels, handed out one at a time."""
    fig: plt.Figure
    axes: List[plt.Axes]
    position: int = field(default=0)

    def next_axes(self):
        """Return the next unused panel (row-major)."""
        if self.position >= len(self.axes):
            raise IndexError(f"All {len(self.axes)} panels of this figure are in use")
        ax = self.axes[self.position]
        self.position += 1
        return ax

    def hide_unused(self):
        """Switch off panels that were never drawn on."""
        for ax in self.axes[self.position:]:
            ax.set_visible(False)


def create_render_context(nrows=1, ncols=1, figsize=None):
    """Create a figure with an nrows x ncols panel grid."""
    if figsize is None:
        figsize = (5 * ncols, 4.5 * nrows)
    fig, axes = plt.subplots(nrows, ncols, figsize=figsize, squeeze=False)
    return RenderContext(fig=fig, axes=list(axes.ravel()))


# ============================================================================
# COLOURS
# ============================================================================

def covariate_colors(values, n_bins=COVARIATE_COLOR_BINS, ramp=COVARIATE_COLOR_RAMP,
                     missing_color='lightgray'):
    """
    Map covariate values onto a colour ramp in equal-width bins.

    The covariate range is split into ``n_bins`` intervals; the lowest bin
    gets the first ramp colour and the highest the last.

    Parameters
    ----------
    values : array-like
        Covariate values, one per site
    n_bins : int
        Number of colour bins
    ramp : sequence of colours
        Colours from low to high values

    Returns
    -------
    list of str
        Hex colour per site
    """
    values = np.asarray(values, dtype=float)
    if n_bins < 1:
        raise InvalidParameterError(f"n_bins must be at least 1, got {n_bins}")

    cmap = mcolors.LinearSegmentedColormap.from_list('covariate', list(ramp), N=n_bins)
    palette = [mcolors.to_hex(cmap(i / max(n_bins - 1, 1))) for i in range(n_bins)]

    valid = ~np.isnan(values)
    if not valid.any():
        return [missing_color] * len(values)

    edges = np.linspace(np.nanmin(values), np.nanmax(values), n_bins + 1)
    bins = np.digitize(values, edges[1:-1], right=True)

    return [palette[b] if ok else missing_color for b, ok in zip(bins, valid)]


def expand_colors(colors, n, name='colors'):
    """Return a list of n colours from a single colour or a length-n sequence."""
    if isinstance(colors, str) or np.isscalar(colors):
        return [colors] * n
    colors = list(colors)
    if len(colors) == 1:
        return colors * n
    if len(colors) != n:
        raise InvalidParameterError(f"{name} needs to be of length {n} or 1.")
    return colors


# ============================================================================
# ORDINATION PLOTS
# ============================================================================

def plot_ordination(model, ax=None, display_mode=DisplayMode.SCATTER, alpha=DEFAULT_ALPHA,
                    which_lvs=DEFAULT_WHICH_LVS, ind_spp=None, predict_region=False,
                    level=DEFAULT_LEVEL, jitter_amount=DEFAULT_JITTER_AMOUNT, random_state=None,
                    symbols=False, s_colors='black', spp_colors='blue', cex_spp=0.7,
                    col_ellips='blue', lwd_ellips=0.5, lty_ellips='-',
                    xlim=None, ylim=None, title=None, save_path=None):
    """
    Ordination plot of sites, or a biplot of sites and species.

    Parameters
    ----------
    model : FittedGLLVM
        Fit to plot
    ax : Axes, optional
        Panel to draw on (a new figure is created if None)
    display_mode : DisplayMode, str or bool
        'scatter' (sites only) or 'biplot' (sites and species)
    alpha, which_lvs, ind_spp, predict_region, level, jitter_amount, random_state
        Passed to build_ordination()
    symbols : bool
        Draw sites as circles; otherwise as row-number labels
    s_colors : colour or sequence
        Site colours (one, or one per site)
    spp_colors : colour or sequence
        Species label colours (one, or one per species)
    cex_spp : float
        Species label size relative to the base font size
    col_ellips, lwd_ellips, lty_ellips
        Ellipse colour(s), line width and line style
    xlim, ylim : tuple, optional
        Axis limits
    title : str, optional
    save_path : str, optional
        If provided, save figure to this path

    Returns
    -------
    tuple
        (fig, ax)
    """
    spp_colors = expand_colors(spp_colors, model.n_species, 'spp_colors')

    try:
        display = build_ordination(model, display_mode, alpha, which_lvs, ind_spp,
                                   predict_region, level, jitter_amount, random_state)
    except MissingUncertaintyError as e:
        warnings.warn(f"Prediction regions skipped: {e}")
        display = build_ordination(model, display_mode, alpha, which_lvs, ind_spp,
                                   False, level, jitter_amount, random_state)

    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 7))
    else:
        fig = ax.figure

    n = display.site_points.shape[0]
    s_colors = expand_colors(s_colors, n, 's_colors')
    extent = [display.site_points]

    if display.ellipses:
        ellipse_colors = expand_colors(col_ellips, n, 'col_ellips')
        for ellipse in display.ellipses:
            outline = ellipse.outline(ELLIPSE_SEGMENTS)
            ax.plot(outline[:, 0], outline[:, 1], color=ellipse_colors[ellipse.site_index],
                    linewidth=lwd_ellips, linestyle=lty_ellips)
            extent.append(outline)

    x, y = display.site_points[:, 0], display.site_points[:, 1]
    if symbols:
        ax.scatter(x, y, facecolors='none', edgecolors=s_colors, s=25, linewidths=1)
    else:
        for xi, yi, label, color in zip(x, y, display.site_labels, s_colors):
            ax.text(xi, yi, label, color=color, fontsize=9, ha='center', va='center')

    if display.species_points is not None:
        base_size = plt.rcParams['font.size']
        for (xi, yi), label, j in zip(display.species_points, display.species_labels,
                                      display.species_index):
            ax.text(xi, yi, label, color=spp_colors[j], fontsize=base_size * cex_spp,
                    ha='center', va='center')
        extent.append(display.species_points)

    # Text artists don't update data limits
    ax.update_datalim(np.vstack(extent))
    ax.autoscale_view()
    if xlim is not None:
        ax.set_xlim(xlim)
    if ylim is not None:
        ax.set_ylim(ylim)

    ax.set_xlabel(display.axis_labels[0])
    ax.set_ylabel(display.axis_labels[1])
    if title:
        ax.set_title(title, fontweight='bold')

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Figure saved to: {save_path}")

    return fig, ax


def plot_covariate_ordinations(model, X, covariates=None, ncols=2, limits=SITE_ORDINATION_LIMITS,
                               n_bins=COVARIATE_COLOR_BINS, figsize=None, save_path=None,
                               **ordination_kws):
    """
    Grid of site ordinations, one panel per covariate, sites coloured by value.

    Darker blue marks higher covariate values.

    Parameters
    ----------
    model : FittedGLLVM
    X : DataFrame
        Sites x covariates, rows aligned with the model's sites
    covariates : list of str, optional
        Covariates to show (default: all columns of X)
    ncols : int
        Panels per row
    limits : ((xmin, xmax), (ymin, ymax)) or None
    n_bins : int
        Colour bins per covariate
    save_path : str, optional

    Returns
    -------
    tuple
        (fig, axes)
    """
    if covariates is None:
        covariates = list(X.columns)
    missing = [c for c in covariates if c not in X.columns]
    if missing:
        raise ValueError(f"Covariates not found in X: {missing}")
    if len(X) != model.n_sites:
        raise ValueError(f"X has {len(X)} rows but the model has {model.n_sites} sites")

    nrows = int(np.ceil(len(covariates) / ncols))
    context = create_render_context(nrows, ncols, figsize)
    xlim, ylim = limits if limits is not None else (None, None)

    for covariate in covariates:
        colors = covariate_colors(X[covariate].to_numpy(), n_bins=n_bins)
        plot_ordination(model, ax=context.next_axes(), symbols=True, s_colors=colors,
                        xlim=xlim, ylim=ylim,
                        title=f"Ordination of sites, color: {covariate}", **ordination_kws)

    context.hide_unused()
    context.fig.tight_layout()

    if save_path:
        context.fig.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Figure saved to: {save_path}")

    return context.fig, context.axes


def species_group_colors(model, elevation_classes, class_colors=ELEVATION_CLASS_COLORS,
                         missing_color='gray'):
    """Colour per model species from its integer elevation class (1-based)."""
    classes = pd.Series(elevation_classes).reindex(model.species_names)
    colors = []
    for value in classes:
        if pd.isna(value) or not 1 <= int(value) <= len(class_colors):
            colors.append(missing_color)
        else:
            colors.append(class_colors[int(value) - 1])
    return colors


def plot_species_groups_biplot(model, elevation_classes, ax=None, class_colors=ELEVATION_CLASS_COLORS,
                               class_names=ELEVATION_CLASSES, limits=BIPLOT_LIMITS, title=None,
                               save_path=None, **ordination_kws):
    """
    Biplot with species labels coloured by elevation class.

    Sites are drawn as white symbols so only the species stand out.

    Parameters
    ----------
    model : FittedGLLVM
    elevation_classes : Series
        Species name -> class code (1 = montane, 2 = subalpine, 3 = alpine)
    ax : Axes, optional
    limits : ((xmin, xmax), (ymin, ymax)) or None
    title : str, optional
    save_path : str, optional

    Returns
    -------
    tuple
        (fig, ax)
    """
    colors = species_group_colors(model, elevation_classes, class_colors)
    xlim, ylim = limits if limits is not None else (None, None)

    ordination_kws.setdefault('symbols', True)
    ordination_kws.setdefault('s_colors', 'white')
    fig, ax = plot_ordination(model, ax=ax, display_mode=DisplayMode.BIPLOT,
                              spp_colors=colors, xlim=xlim, ylim=ylim, title=title,
                              **ordination_kws)

    legend_elements = [Patch(facecolor=c, edgecolor='black', label=name)
                       for c, name in zip(class_colors, class_names)]
    ax.legend(handles=legend_elements, loc='upper right', framealpha=0.9)

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Figure saved to: {save_path}")

    return fig, ax


# ============================================================================
# CORRELATION PLOTS
# ============================================================================

def plot_correlation_matrix(corr_matrix, figsize=(8, 7), save_path=None):
    """
    Plot covariate correlation matrix as heatmap.

    Parameters
    ----------
    corr_matrix : DataFrame
        Correlation matrix
    figsize : tuple
        Figure size
    save_path : str, optional
        Path to save figure

    Returns
    -------
    tuple
        (fig, ax)
    """
    fig, ax = plt.subplots(figsize=figsize)

    sns.heatmap(
        corr_matrix,
        annot=True,
        fmt='.2f',
        cmap=COLORMAPS['correlation'],
        center=0,
        vmin=-1,
        vmax=1,
        square=True,
        linewidths=0.5,
        cbar_kws={'label': 'Correlation'},
        ax=ax
    )

    ax.set_title('Covariate Correlation Matrix', fontsize=14, fontweight='bold', pad=20)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Saved: {save_path}")

    return fig, ax


def plot_residual_correlation(corr_matrix, figsize=(9, 8), label_size=5, save_path=None):
    """
    Lower-triangle heatmap of residual species correlations.

    Blue squares mark species that co-occur more than the covariates explain,
    red squares species that are unlikely to co-occur.

    Parameters
    ----------
    corr_matrix : DataFrame
        Species x species residual correlation
    figsize : tuple
    label_size : float
        Font size of species labels
    save_path : str, optional

    Returns
    -------
    tuple
        (fig, ax)
    """
    fig, ax = plt.subplots(figsize=figsize)

    # Diagonal and upper triangle hidden
    mask = np.triu(np.ones(corr_matrix.shape, dtype=bool))

    sns.heatmap(
        corr_matrix,
        mask=mask,
        cmap=COLORMAPS['residual'],
        center=0,
        vmin=-1,
        vmax=1,
        square=True,
        linewidths=0.2,
        cbar_kws={'label': 'Residual correlation', 'shrink': 0.7},
        ax=ax
    )

    ax.tick_params(labelsize=label_size, colors='red')
    plt.setp(ax.get_xticklabels(), rotation=45, ha='right')
    ax.set_title('Residual Species Correlations', fontsize=13, fontweight='bold')

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Saved: {save_path}")

    return fig, ax


# ============================================================================
# MODEL SELECTION
# ============================================================================

def plot_model_comparison(comparison, figsize=(12, 5), save_path=None):
    """
    AICc and Akaike weights of fits with different numbers of latent variables.

    Parameters
    ----------
    comparison : dict
        Output from compare_latent_variable_models()
    figsize : tuple
    save_path : str, optional

    Returns
    -------
    tuple
        (fig, axes)
    """
    table = comparison['table']
    best = comparison['best_model']

    fig, axes = plt.subplots(1, 2, figsize=figsize)
    colors = ['#E63946' if m == best else '#457B9D' for m in table['model']]

    # Panel A: AICc
    axes[0].bar(table['model'], table['AICc'], color=colors, edgecolor='black', alpha=0.8)
    span = table['AICc'].max() - table['AICc'].min()
    pad = 0.1 * span if span > 0 else 1.0
    axes[0].set_ylim(table['AICc'].min() - pad, table['AICc'].max() + pad)
    for i, value in enumerate(table['AICc']):
        axes[0].text(i, value, f'{value:.1f}', ha='center', va='bottom', fontsize=10)
    axes[0].set_ylabel('AICc', fontsize=12)
    axes[0].set_title('A. AICc by Model', fontsize=13, fontweight='bold')
    axes[0].grid(axis='y', alpha=0.3)

    # Panel B: Akaike weights
    axes[1].bar(table['model'], table['weight'], color=colors, edgecolor='black', alpha=0.8)
    axes[1].set_ylim([0, 1])
    axes[1].set_ylabel('Akaike Weight', fontsize=12)
    axes[1].set_title('B. Model Probabilities', fontsize=13, fontweight='bold')
    axes[1].grid(axis='y', alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Model comparison figure saved: {save_path}")

    return fig, axes


__all__ = [
    'setup_plot_style',
    'RenderContext',
    'create_render_context',
    'covariate_colors',
    'expand_colors',
    'plot_ordination',
    'plot_covariate_ordinations',
    'species_group_colors',
    'plot_species_groups_biplot',
    'plot_correlation_matrix',
    'plot_residual_correlation',
    'plot_model_comparison',
]
