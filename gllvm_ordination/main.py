"""
GLLVM Ordination Analysis - Main Orchestration Script
======================================================

This script provides the main entry point for the ordination workflow of the
Swiss Alps plant data. It can be run directly or individual functions can be
called interactively in Spyder/IPython.

Usage:
    # Run full analysis
    python -m gllvm_ordination --full

    # Or import and run specific steps:
    from gllvm_ordination.main import *
    data = load_data()
    models = load_models()
    analyze_latent_variable_count(models)

Workflow:
    1. Collinearity among environmental covariates
    2. Do the latent variables of a covariate-free model follow covariates?
    3. How many latent variables (AICc, models ~ SLOPE + MIND)?
    4. Do the remaining covariates still structure the selected model?
    5. Species biplots coloured by elevation class, with 0, 2, 3 covariates
    6. Residual co-occurrence of colline species
"""

import os
import time
from pathlib import Path
from contextlib import contextmanager
from datetime import timedelta

import matplotlib.pyplot as plt

from .config import (
    DATA_DIR, FITTED_MODEL_DIR, OUTPUT_DIR, COLLINEARITY_THRESHOLD,
    REMAINING_COVARIATES, ensure_output_dir, print_config_summary
)
from .data_loading import load_workshop_data, summarize_workshop_data, quick_data_check
from .fitted_model import load_fitted_models
from .collinearity import compute_correlation_matrix, find_collinear_pairs
from .model_selection import compare_latent_variable_models, select_best_model
from .residual_correlation import get_residual_correlation
from .visualization import (
    setup_plot_style, plot_correlation_matrix, plot_covariate_ordinations,
    plot_model_comparison, plot_species_groups_biplot, plot_residual_correlation
)


# ============================================================================
# RUNTIME TRACKING AND PROGRESS UTILITIES
# ============================================================================

class AnalysisTimer:
    """
    Track runtime for analysis steps with formatted output.

    Usage:
        timer = AnalysisTimer()
        timer.start("Loading data")
        # ... do work ...
        timer.stop()
        timer.summary()
    """

    def __init__(self):
        self.steps = []
        self.current_step = None
        self.start_time = None
        self.overall_start = None

    def start(self, step_name):
        """Start timing a new step."""
        if self.overall_start is None:
            self.overall_start = time.time()

        self.current_step = step_name
        self.start_time = time.time()

    def stop(self):
        """Stop timing current step and record."""
        if self.start_time is None:
            return None

        elapsed = time.time() - self.start_time
        self.steps.append({
            'step': self.current_step,
            'duration': elapsed,
        })
        self.start_time = None
        self.current_step = None
        return elapsed

    @staticmethod
    def elapsed_str(seconds):
        """Format seconds as human-readable string."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            return f"{seconds/60:.1f}min"
        else:
            return str(timedelta(seconds=int(seconds)))

    def summary(self):
        """Print summary of all step timings."""
        if not self.steps:
            print("\nNo timing data recorded.")
            return None

        total = sum(s['duration'] for s in self.steps)
        overall = time.time() - self.overall_start if self.overall_start else total

        print("\n" + "=" * 60)
        print("RUNTIME SUMMARY")
        print("=" * 60)
        print(f"{'Step':<40} {'Duration':>15}")
        print("-" * 60)

        for step in self.steps:
            duration_str = self.elapsed_str(step['duration'])
            pct = (step['duration'] / total) * 100 if total > 0 else 0
            print(f"{step['step']:<40} {duration_str:>10} ({pct:>4.1f}%)")

        print("-" * 60)
        print(f"{'Total (all steps)':<40} {self.elapsed_str(total):>15}")
        print(f"{'Overall runtime':<40} {self.elapsed_str(overall):>15}")
        print("=" * 60)

        return {
            'steps': self.steps.copy(),
            'total': total,
            'overall': overall,
        }


@contextmanager
def timed_step(timer, step_name):
    """Context manager for timing analysis steps."""
    timer.start(step_name)
    try:
        yield
    finally:
        elapsed = timer.stop()
        if elapsed is not None:
            print(f"  [DONE] {step_name} completed in {timer.elapsed_str(elapsed)}")


def print_step_header(step_num, total_steps, title):
    """Print a formatted step header with progress."""
    bar_width = 30
    pct = step_num / total_steps
    filled = int(bar_width * pct)
    bar = "█" * filled + "░" * (bar_width - filled)

    print(f"\n[{bar}] Step {step_num}/{total_steps}")
    print("-" * 60)
    print(f"  {title}")
    print("-" * 60)


def _figure_path(filename, output_dir):
    if output_dir is None:
        return None
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    return os.path.join(output_dir, filename)


# ============================================================================
# DATA LOADING
# ============================================================================

def load_data(data_dir=None):
    """
    Load and summarise the workshop data.

    Returns
    -------
    dict
        Output of load_workshop_data()
    """
    data = load_workshop_data(data_dir or DATA_DIR)
    summarize_workshop_data(data)
    return data


def load_models(names=None, model_dir=None):
    """
    Load fitted models exported by the external gllvm fitting step.

    Returns
    -------
    dict
        Logical name -> FittedGLLVM
    """
    print(f"\nLoading fitted models from {model_dir or FITTED_MODEL_DIR}...")
    return load_fitted_models(names, model_dir or FITTED_MODEL_DIR)


# ============================================================================
# ANALYSIS STEPS
# ============================================================================

def analyze_collinearity(data, threshold=COLLINEARITY_THRESHOLD, output_dir=None):
    """
    Report collinear covariate pairs and plot the correlation matrix.

    Returns
    -------
    dict
        'collinear_pairs' : DataFrame, 'correlation_matrix' : DataFrame
    """
    X = data['X']
    pairs = find_collinear_pairs(X, threshold=threshold)
    corr = compute_correlation_matrix(X)

    save_path = _figure_path('covariate_correlation_matrix.png', output_dir)
    plot_correlation_matrix(corr, save_path=save_path)

    return {'collinear_pairs': pairs, 'correlation_matrix': corr}


def analyze_covariate_gradients(model, data, covariates=None, output_dir=None,
                                filename='ordination_by_covariate.png'):
    """
    Site ordinations of ``model`` coloured by each covariate.

    Clear colour gradients along a latent variable suggest it is picking up
    an environmental effect that isn't in the model.
    """
    covariates = covariates or list(data['X'].columns)
    save_path = _figure_path(filename, output_dir)
    fig, axes = plot_covariate_ordinations(model, data['X'], covariates, save_path=save_path)
    return {'figure': fig, 'axes': axes, 'covariates': covariates}


def analyze_latent_variable_count(models, output_dir=None):
    """
    Compare fits with 0..3 latent variables by AICc.

    Parameters
    ----------
    models : dict
        Logical name -> FittedGLLVM; names starting with 'lv' are compared

    Returns
    -------
    dict
        Output of compare_latent_variable_models() plus 'best' (FittedGLLVM)
    """
    candidates = {f"LV-{m.num_lv}": m for name, m in models.items() if name.startswith('lv')}
    if not candidates:
        raise ValueError("No latent variable count candidates (lv0..lv3) loaded")

    comparison = compare_latent_variable_models(candidates)
    comparison['best'] = select_best_model(candidates)

    save_path = _figure_path('latent_variable_count_aicc.png', output_dir)
    plot_model_comparison(comparison, save_path=save_path)
    return comparison


def analyze_species_groups(models, data, output_dir=None):
    """
    Species biplots coloured by elevation class for models with 0, 2 and 3 covariates.

    Species groups separate more clearly as covariates take over variation
    that the latent variables absorbed before.
    """
    if data.get('elevation_classes') is None:
        print("  WARNING: No elevation classes loaded, skipping species group biplots")
        return {}

    panels = [
        ('base', "Ordination of sites: no covariates"),
        ('lv2', "Ordination of sites: two covariates"),
        ('degree_days', "Ordination of species: three covariates"),
    ]

    figures = {}
    for name, title in panels:
        if name not in models:
            print(f"  WARNING: model '{name}' not loaded, skipping")
            continue
        save_path = _figure_path(f"biplot_species_groups_{name}.png", output_dir)
        figures[name] = plot_species_groups_biplot(models[name], data['elevation_classes'],
                                                   title=title, save_path=save_path)
    return figures


def analyze_residual_correlation(model, data, output_dir=None):
    """Residual correlation among the colline species."""
    species = data.get('colline_species')
    corr = get_residual_correlation(model, species=species)

    save_path = _figure_path('residual_correlation_colline.png', output_dir)
    fig, ax = plot_residual_correlation(corr, save_path=save_path)
    return {'correlation': corr, 'figure': fig}


# ============================================================================
# FULL PIPELINE
# ============================================================================

def run_full_analysis(data_dir=None, model_dir=None, output_dir=None, show=False):
    """
    Run every workflow step with progress tracking.

    Parameters
    ----------
    data_dir, model_dir : str, optional
        Override config.DATA_DIR / config.FITTED_MODEL_DIR
    output_dir : str, optional
        Figure directory (default: config.OUTPUT_DIR)
    show : bool
        Display figures at the end

    Returns
    -------
    dict
        Results of every step
    """
    if output_dir is None:
        output_dir = ensure_output_dir()

    setup_plot_style()
    timer = AnalysisTimer()
    total_steps = 6
    results = {}

    print_step_header(1, total_steps, "Loading data and fitted models")
    with timed_step(timer, "Loading"):
        data = load_data(data_dir)
        models = load_models(model_dir=model_dir)
    results['models'] = models

    print_step_header(2, total_steps, "Collinearity among covariates")
    with timed_step(timer, "Collinearity"):
        results['collinearity'] = analyze_collinearity(data, output_dir=output_dir)

    print_step_header(3, total_steps, "Latent variables vs covariates (no covariates in model)")
    if 'base' in models:
        with timed_step(timer, "Covariate gradients (base)"):
            results['gradients_base'] = analyze_covariate_gradients(
                models['base'], data, output_dir=output_dir,
                filename='ordination_by_covariate_base.png')
    else:
        print("  WARNING: base model not loaded, skipping")

    print_step_header(4, total_steps, "Number of latent variables (AICc)")
    best = None
    with timed_step(timer, "Latent variable count"):
        try:
            results['selection'] = analyze_latent_variable_count(models, output_dir=output_dir)
            best = results['selection']['best']
        except ValueError as e:
            print(f"  WARNING: {e}")

    if best is not None and best.num_lv >= 1:
        available = [c for c in REMAINING_COVARIATES if c in data['X'].columns]
        with timed_step(timer, "Covariate gradients (selected)"):
            results['gradients_selected'] = analyze_covariate_gradients(
                best, data, covariates=available, output_dir=output_dir,
                filename='ordination_by_covariate_selected.png')

    print_step_header(5, total_steps, "Species biplots by elevation class")
    with timed_step(timer, "Species group biplots"):
        results['species_groups'] = analyze_species_groups(models, data, output_dir=output_dir)

    print_step_header(6, total_steps, "Residual co-occurrence")
    if best is not None and best.num_lv >= 1:
        with timed_step(timer, "Residual correlation"):
            results['residual_correlation'] = analyze_residual_correlation(
                best, data, output_dir=output_dir)
    else:
        print("  WARNING: no model with latent variables selected, skipping")

    results['timing'] = timer.summary()
    print(f"\nFigures saved to: {output_dir}")

    if show:
        plt.show()
    else:
        plt.close('all')

    return results


def quick_start():
    """
    Quick start guide for interactive use.
    """
    print("""
GLLVM ORDINATION ANALYSIS - Quick Start Guide
=============================================

1. Check data availability:
   >>> quick_data_check()

2. Load data and fitted models:
   >>> data = load_data()
   >>> models = load_models()

3. Run individual steps:
   >>> analyze_collinearity(data)
   >>> analyze_covariate_gradients(models['base'], data)
   >>> selection = analyze_latent_variable_count(models)
   >>> analyze_species_groups(models, data)
   >>> analyze_residual_correlation(selection['best'], data)

4. Low-level ordination:
   >>> from gllvm_ordination import build_ordination, plot_ordination
   >>> plot_ordination(models['lv2'], display_mode='biplot', predict_region=True)

5. Run full pipeline:
   >>> results = run_full_analysis()

Tips:
- Fit the models with the R gllvm package and export them to .npz
  (see fitted_model.py for the archive keys)
- Update paths in config.py before running
""")


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description='GLLVM Ordination Analysis')
    parser.add_argument('--check', action='store_true',
                        help='Check data availability only')
    parser.add_argument('--config', action='store_true',
                        help='Print configuration summary')
    parser.add_argument('--full', action='store_true',
                        help='Run full analysis pipeline')
    parser.add_argument('--step', choices=['collinearity', 'gradients', 'selection',
                                           'groups', 'cooccurrence'],
                        help='Run a single workflow step')
    parser.add_argument('--data-dir', default=None, help='Workshop data directory')
    parser.add_argument('--model-dir', default=None, help='Fitted model directory')
    parser.add_argument('--output-dir', default=None, help='Figure output directory')

    args = parser.parse_args(argv)
    output_dir = args.output_dir or OUTPUT_DIR

    if args.check:
        quick_data_check(args.data_dir, args.model_dir)
    elif args.config:
        print_config_summary()
    elif args.full:
        run_full_analysis(args.data_dir, args.model_dir, output_dir)
    elif args.step:
        setup_plot_style()
        data = load_data(args.data_dir)
        if args.step == 'collinearity':
            analyze_collinearity(data, output_dir=output_dir)
            return
        models = load_models(model_dir=args.model_dir)
        if args.step == 'gradients':
            if 'base' not in models:
                print("  WARNING: base model not loaded")
                return
            analyze_covariate_gradients(models['base'], data, output_dir=output_dir)
        elif args.step == 'selection':
            analyze_latent_variable_count(models, output_dir=output_dir)
        elif args.step == 'groups':
            analyze_species_groups(models, data, output_dir=output_dir)
        elif args.step == 'cooccurrence':
            best = select_best_model({k: m for k, m in models.items() if k.startswith('lv')})
            if best is None or best.num_lv == 0:
                print("  WARNING: no model with latent variables selected")
                return
            analyze_residual_correlation(best, data, output_dir=output_dir)
    else:
        quick_start()


if __name__ == "__main__":
    main()
