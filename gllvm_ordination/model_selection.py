"""
Latent Variable Count Selection

Compares GLLVMs fitted with the same covariates but different numbers of
latent variables, using the small-sample corrected Akaike Information
Criterion (AICc).

In the workshop data (~ SLOPE + MIND, binomial probit):

    AICc      model
    14687.36  LV-0
    12957.51  LV-1
    12625.36  LV-2
    12970.21  LV-3

so two latent variables are retained.
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Union

from .fitted_model import FittedGLLVM


def compute_aicc(log_likelihood: float, n_params: int, n_obs: int) -> float:
    """
    AICc = -2 logL + 2k + 2k(k + 1) / (n - k - 1)

    Parameters
    ----------
    log_likelihood : float
        Maximised log-likelihood
    n_params : int
        Number of estimated parameters (k)
    n_obs : int
        Number of observations (sites x species for a GLLVM)

    Returns
    -------
    float
    """
    denominator = n_obs - n_params - 1
    if denominator <= 0:
        raise ValueError(
            f"AICc undefined: n_obs ({n_obs}) must exceed n_params + 1 ({n_params + 1})"
        )
    k = n_params
    return -2 * log_likelihood + 2 * k + 2 * k * (k + 1) / denominator


def model_aicc(model: FittedGLLVM) -> float:
    """AICc of a fit: the exported value, or computed from its log-likelihood."""
    if model.aicc is not None:
        return float(model.aicc)
    if model.log_likelihood is None or model.n_params is None or model.n_obs is None:
        raise ValueError(
            f"Model {model.name or ''} has neither an AICc nor log_likelihood/n_params/n_obs"
        )
    return compute_aicc(model.log_likelihood, model.n_params, model.n_obs)


def _label_models(models: Union[Dict[str, FittedGLLVM], List[FittedGLLVM]]) -> Dict[str, FittedGLLVM]:
    if isinstance(models, dict):
        return dict(models)
    labelled = {}
    for model in models:
        label = f"LV-{model.num_lv}"
        if label in labelled:
            raise ValueError(f"Two models labelled {label}; pass a dict with explicit labels")
        labelled[label] = model
    return labelled


def compare_latent_variable_models(
    models: Union[Dict[str, FittedGLLVM], List[FittedGLLVM]],
    verbose: bool = True
) -> Dict:
    """
    Compare fits by AICc and select the best number of latent variables.

    Parameters
    ----------
    models : dict or list of FittedGLLVM
        Labelled fits; a list is labelled 'LV-<num_lv>'
    verbose : bool
        Print comparison table

    Returns
    -------
    dict
        - 'table': DataFrame with model, num_lv, AICc, delta_AICc, weight
        - 'best_model': label of the lowest AICc
        - 'delta_aicc': AICc differences from best
        - 'akaike_weights': model probabilities
        - 'recommendation': text summary

    Notes
    -----
    ΔAICc < 2: Models are essentially equivalent
    ΔAICc 2-10: Best model has substantial support
    ΔAICc > 10: Best model strongly preferred

    References
    ----------
    Burnham, K. P., & Anderson, D. R. (2002). Model Selection and
    Multimodel Inference (2nd ed.). Springer.
    """
    labelled = _label_models(models)
    if len(labelled) == 0:
        raise ValueError("No models to compare")

    aiccs = {label: model_aicc(model) for label, model in labelled.items()}
    best_model = min(aiccs, key=aiccs.get)
    best_aicc = aiccs[best_model]

    delta_aicc = {k: v - best_aicc for k, v in aiccs.items()}
    weight_sum = sum(np.exp(-0.5 * delta) for delta in delta_aicc.values())
    akaike_weights = {k: np.exp(-0.5 * delta) / weight_sum for k, delta in delta_aicc.items()}

    table = pd.DataFrame({
        'model': list(labelled.keys()),
        'num_lv': [m.num_lv for m in labelled.values()],
        'AICc': [aiccs[k] for k in labelled],
        'delta_AICc': [delta_aicc[k] for k in labelled],
        'weight': [akaike_weights[k] for k in labelled],
    })

    comparison = {
        'table': table,
        'models': labelled,
        'best_model': best_model,
        'delta_aicc': delta_aicc,
        'akaike_weights': akaike_weights,
        'recommendation': _get_model_recommendation(delta_aicc, akaike_weights),
    }

    if verbose:
        print("\n" + "=" * 70)
        print("LATENT VARIABLE COUNT COMPARISON (AICc)")
        print("=" * 70)
        print(f"{'Model':<15} {'LVs':<6} {'AICc':<12} {'ΔAICc':<10} {'Weight':<10} {'Best':<5}")
        print("-" * 70)
        for _, row in table.iterrows():
            status = "✓" if row['model'] == best_model else ""
            print(f"{row['model']:<15} {row['num_lv']:<6} {row['AICc']:<12.2f} "
                  f"{row['delta_AICc']:<10.2f} {row['weight']:<10.3f} {status:<5}")
        print("-" * 70)
        print(f"\nBest model: {best_model} (AICc = {best_aicc:.2f}, "
              f"{labelled[best_model].num_lv} latent variables)")
        print(f"\n{comparison['recommendation']}")

    return comparison


def _get_model_recommendation(delta_aicc: Dict[str, float], weights: Dict[str, float]) -> str:
    """Generate model selection recommendation."""
    best_model = min(delta_aicc, key=delta_aicc.get)
    best_weight = weights[best_model]

    competing = [k for k, v in delta_aicc.items() if v < 2]

    if len(competing) == 1:
        if best_weight > 0.9:
            return f"STRONG SUPPORT for {best_model} (weight = {best_weight:.3f})"
        else:
            return f"MODERATE SUPPORT for {best_model} (weight = {best_weight:.3f})"
    else:
        return (f"MODEL UNCERTAINTY: {len(competing)} models within ΔAICc < 2 "
                f"({', '.join(competing)}).")


def select_best_model(
    models: Union[Dict[str, FittedGLLVM], List[FittedGLLVM]]
) -> Optional[FittedGLLVM]:
    """Fitted model with the lowest AICc."""
    labelled = _label_models(models)
    if not labelled:
        return None
    return min(labelled.values(), key=model_aicc)


__all__ = [
    'compute_aicc',
    'model_aicc',
    'compare_latent_variable_models',
    'select_best_model',
]
