"""
Tests for the analysis helpers: data loading, collinearity screening,
latent variable count selection and residual correlations.
"""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose

from gllvm_ordination import (
    FittedGLLVM, DimensionError,
    load_workshop_data, standardize_covariates, summarize_workshop_data,
    compute_correlation_matrix, compute_correlation_table, find_collinear_pairs,
    compute_aicc, model_aicc, compare_latent_variable_models, select_best_model,
    get_residual_covariance, get_residual_correlation
)


def write_workshop_csvs(directory, n_sites=30, n_species=5, seed=0):
    """Write a small synthetic workshop export and return (Y, X)."""
    rng = np.random.default_rng(seed)
    sites = [f"site{i}" for i in range(n_sites)]
    species = [f"sp{j}" for j in range(n_species)]

    Y = pd.DataFrame(rng.integers(0, 2, size=(n_sites, n_species)), index=sites, columns=species)
    elevation = rng.normal(size=n_sites)
    X = pd.DataFrame({
        'ELEVATION': elevation,
        'DDEG0': -elevation + rng.normal(scale=0.1, size=n_sites),
        'SLOPE': rng.normal(size=n_sites),
    }, index=sites)

    directory.mkdir(parents=True, exist_ok=True)
    Y.to_csv(directory / 'Y.csv')
    X.to_csv(directory / 'X.csv')
    pd.DataFrame({'species': species, 'class': [1, 2, 3, 1, 2][:n_species]}).to_csv(
        directory / 'elevation_classes.csv', index=False)
    pd.DataFrame({'species': species[:2]}).to_csv(directory / 'colline_species.csv', index=False)
    return Y, X


# ============================================================================
# DATA LOADING
# ============================================================================

def test_load_workshop_data(tmp_path):
    Y, X = write_workshop_csvs(tmp_path)

    data = load_workshop_data(tmp_path, verbose=False)

    assert data['Y'].shape == (30, 5)
    assert list(data['X'].columns) == ['ELEVATION', 'DDEG0', 'SLOPE']
    assert list(data['elevation_classes']) == [1, 2, 3, 1, 2]
    assert data['colline_species'] == ['sp0', 'sp1']
    assert_allclose(data['X'].to_numpy(), X.to_numpy())


def test_optional_components_absent(tmp_path):
    write_workshop_csvs(tmp_path)
    (tmp_path / 'elevation_classes.csv').unlink()
    (tmp_path / 'colline_species.csv').unlink()

    data = load_workshop_data(tmp_path, verbose=False)

    assert data['elevation_classes'] is None
    assert data['colline_species'] is None


def test_non_binary_response_rejected(tmp_path):
    Y, _ = write_workshop_csvs(tmp_path)
    Y.iloc[0, 0] = 3
    Y.to_csv(tmp_path / 'Y.csv')

    with pytest.raises(ValueError):
        load_workshop_data(tmp_path, verbose=False)


def test_site_count_mismatch(tmp_path):
    _, X = write_workshop_csvs(tmp_path)
    X.iloc[:-1].to_csv(tmp_path / 'X.csv')

    with pytest.raises(ValueError):
        load_workshop_data(tmp_path, verbose=False)


def test_missing_data_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_workshop_data(tmp_path / 'nowhere', verbose=False)


def test_unknown_covariate_warns(tmp_path):
    _, X = write_workshop_csvs(tmp_path)
    X['PH'] = 1.0
    X.to_csv(tmp_path / 'X.csv')

    with pytest.warns(UserWarning):
        load_workshop_data(tmp_path, verbose=False)


def test_standardize_matches_sample_sd():
    X = pd.DataFrame({'a': [1.0, 2.0, 3.0, 4.0, 10.0], 'b': [5.0, 3.0, 1.0, 0.0, 2.0]})

    scaled = standardize_covariates(X)

    assert_allclose(scaled.mean().to_numpy(), 0.0, atol=1e-12)
    assert_allclose(scaled.std(ddof=1).to_numpy(), 1.0)
    assert list(scaled.columns) == ['a', 'b']


def test_summary(tmp_path):
    write_workshop_csvs(tmp_path)
    data = load_workshop_data(tmp_path, verbose=False)

    summary = summarize_workshop_data(data, verbose=False)

    assert summary['n_sites'] == 30
    assert summary['n_species'] == 5
    assert set(summary['covariate_ranges']) == {'ELEVATION', 'DDEG0', 'SLOPE'}


# ============================================================================
# COLLINEARITY
# ============================================================================

@pytest.fixture
def covariates():
    rng = np.random.default_rng(11)
    elevation = rng.normal(size=200)
    return pd.DataFrame({
        'ELEVATION': elevation,
        'DDEG0': -elevation + rng.normal(scale=0.1, size=200),
        'MIND': 0.8 * elevation + rng.normal(scale=0.4, size=200),
        'SLOPE': rng.normal(size=200),
    })


def test_correlation_matrix(covariates):
    corr = compute_correlation_matrix(covariates)

    assert corr.shape == (4, 4)
    assert_allclose(np.diag(corr), 1.0)
    assert corr.loc['ELEVATION', 'DDEG0'] < -0.9


def test_correlation_table_has_every_pair(covariates):
    table = compute_correlation_table(covariates)

    assert len(table) == 6
    assert list(table.columns) == ['row', 'column', 'cor', 'p']
    first = table.iloc[0]
    assert (first['row'], first['column']) == ('ELEVATION', 'DDEG0')
    assert first['cor'] == pytest.approx(covariates['ELEVATION'].corr(covariates['DDEG0']))


def test_collinear_pairs_sorted_by_strength(covariates):
    pairs = find_collinear_pairs(covariates, threshold=0.5, verbose=False)

    assert len(pairs) == 3
    assert 'SLOPE' not in set(pairs['row']) | set(pairs['column'])
    strengths = pairs['cor'].abs().to_numpy()
    assert np.all(np.diff(strengths) <= 0)
    assert (pairs.iloc[0]['row'], pairs.iloc[0]['column']) == ('ELEVATION', 'DDEG0')


def test_collinear_pairs_invalid_threshold(covariates):
    with pytest.raises(ValueError):
        find_collinear_pairs(covariates, threshold=1.5, verbose=False)


def test_correlation_needs_two_covariates():
    with pytest.raises(ValueError):
        compute_correlation_table(pd.DataFrame({'a': [1.0, 2.0, 3.0]}))


# ============================================================================
# MODEL SELECTION
# ============================================================================

def fit_with_aicc(num_lv, aicc):
    theta = np.ones((3, num_lv)) if num_lv else None
    lvs = np.ones((4, num_lv)) if num_lv else None
    return FittedGLLVM(theta=theta, lvs=lvs, num_lv=num_lv,
                       species_names=['a', 'b', 'c'], aicc=aicc)


@pytest.fixture
def workshop_fits():
    return [
        fit_with_aicc(0, 14687.36),
        fit_with_aicc(1, 12957.51),
        fit_with_aicc(2, 12625.36),
        fit_with_aicc(3, 12970.21),
    ]


def test_aicc_formula():
    assert compute_aicc(-100.0, 5, 50) == pytest.approx(210 + 60 / 44)


def test_aicc_undefined_for_small_samples():
    with pytest.raises(ValueError):
        compute_aicc(-100.0, 10, 11)


def test_model_aicc_falls_back_to_likelihood():
    model = FittedGLLVM(theta=np.ones((2, 1)), lvs=np.ones((3, 1)),
                        log_likelihood=-100.0, n_params=5, n_obs=50)
    assert model_aicc(model) == pytest.approx(compute_aicc(-100.0, 5, 50))


def test_model_aicc_missing():
    with pytest.raises(ValueError):
        model_aicc(FittedGLLVM(theta=np.ones((2, 1)), lvs=np.ones((3, 1))))


def test_compare_selects_two_latent_variables(workshop_fits):
    comparison = compare_latent_variable_models(workshop_fits, verbose=False)

    assert comparison['best_model'] == 'LV-2'
    assert list(comparison['table']['model']) == ['LV-0', 'LV-1', 'LV-2', 'LV-3']
    assert comparison['delta_aicc']['LV-2'] == 0
    assert comparison['delta_aicc']['LV-1'] == pytest.approx(332.15)
    assert sum(comparison['akaike_weights'].values()) == pytest.approx(1.0)
    assert comparison['recommendation'].startswith('STRONG SUPPORT for LV-2')


def test_compare_reports_uncertainty_for_close_models():
    comparison = compare_latent_variable_models(
        {'two': fit_with_aicc(2, 100.0), 'three': fit_with_aicc(3, 101.0)}, verbose=False)

    assert comparison['best_model'] == 'two'
    assert comparison['recommendation'].startswith('MODEL UNCERTAINTY')


def test_duplicate_list_labels_rejected():
    with pytest.raises(ValueError):
        compare_latent_variable_models([fit_with_aicc(2, 1.0), fit_with_aicc(2, 2.0)], verbose=False)


def test_select_best_model(workshop_fits):
    assert select_best_model(workshop_fits) is workshop_fits[2]
    assert select_best_model([]) is None


# ============================================================================
# RESIDUAL CORRELATION
# ============================================================================

@pytest.fixture
def loading_model():
    return FittedGLLVM(
        theta=np.array([[1.0, 0.0], [1.0, 0.0], [0.0, 2.0]]),
        lvs=np.ones((4, 2)),
        species_names=['a', 'b', 'c'],
    )


def test_probit_covariance_adds_unit_variance(loading_model):
    covariance = get_residual_covariance(loading_model)

    assert_allclose(covariance.to_numpy(), [[2, 1, 0], [1, 2, 0], [0, 0, 5]])
    assert list(covariance.index) == ['a', 'b', 'c']


def test_residual_correlation(loading_model):
    correlation = get_residual_correlation(loading_model)

    assert_allclose(np.diag(correlation), 1.0)
    assert_allclose(correlation.to_numpy(), correlation.to_numpy().T)
    assert correlation.loc['a', 'b'] == pytest.approx(0.5)
    assert correlation.loc['a', 'c'] == pytest.approx(0.0)


def test_residual_correlation_other_family(loading_model):
    loading_model.family = 'poisson'
    loading_model.link = 'log'

    assert get_residual_correlation(loading_model).loc['a', 'b'] == pytest.approx(1.0)


def test_residual_correlation_subset(loading_model):
    subset = get_residual_correlation(loading_model, species=['c', 'a'])

    assert list(subset.index) == ['c', 'a']
    assert subset.shape == (2, 2)


def test_residual_correlation_unknown_species(loading_model):
    with pytest.raises(KeyError):
        get_residual_correlation(loading_model, species=['z'])


def test_residual_correlation_without_latent_variables():
    model = FittedGLLVM(theta=None, num_lv=0, species_names=['a', 'b'])
    with pytest.raises(DimensionError):
        get_residual_covariance(model)
