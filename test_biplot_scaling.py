"""
Tests for the biplot scaling core: coordinates, species selection,
prediction ellipses, jitter and display assembly.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from gllvm_ordination import (
    DisplayMode, FittedGLLVM,
    DimensionError, InvalidParameterError, UnsupportedBiplotError, MissingUncertaintyError,
    compute_scaled_coordinates, select_top_species, chi_squared_radius,
    compute_prediction_ellipse, compute_prediction_ellipses, jitter_points, build_ordination,
)


def pairwise_distances(points):
    diff = points[:, None, :] - points[None, :, :]
    return np.sqrt((diff ** 2).sum(axis=-1))


# ============================================================================
# SCALED COORDINATES
# ============================================================================

def test_worked_example_matches_joint_norm_formula():
    sites = np.array([[1.0, 0.5], [-0.5, 1.5], [2.0, -1.0], [0.3, 0.2]])
    species = np.array([[1.0, -2.0], [0.5, 0.5], [-1.5, 1.0]])

    coords = compute_scaled_coordinates(sites, species, alpha=0.5, which_lvs=(1, 2))

    assert coords.sites.shape == (4, 2)
    assert coords.species.shape == (3, 2)

    joint = np.sqrt((sites ** 2).sum(axis=0)) * np.sqrt((species ** 2).sum(axis=0))
    expected = np.sum(joint ** (2 * 0.5)) + np.sum(joint ** (2 * (1 - 0.5)))
    total = np.sum(coords.sites ** 2) + np.sum(coords.species ** 2)
    assert_allclose(total, expected, rtol=1e-10)


def test_column_norms_follow_alpha_split_before_rotation(site_scores, species_loadings):
    alpha = 0.3
    coords = compute_scaled_coordinates(site_scores, species_loadings, alpha=alpha)

    joint = np.sqrt((site_scores ** 2).sum(axis=0)) * np.sqrt((species_loadings ** 2).sum(axis=0))
    unrotated_sites = coords.sites_full @ coords.rotation.T
    unrotated_species = coords.species_full @ coords.rotation.T

    assert_allclose(np.sqrt((unrotated_sites ** 2).sum(axis=0)), joint ** alpha)
    assert_allclose(np.sqrt((unrotated_species ** 2).sum(axis=0)), joint ** (1 - alpha))


def test_linear_maps_reproduce_full_coordinates(site_scores, species_loadings):
    coords = compute_scaled_coordinates(site_scores, species_loadings)

    assert coords.B.shape == (3, 3)
    assert coords.Bt.shape == (3, 3)
    assert_allclose(site_scores @ coords.B, coords.sites_full)
    assert_allclose(species_loadings @ coords.Bt, coords.species_full)
    assert_allclose(coords.rotation.T @ coords.rotation, np.eye(3), atol=1e-12)


def test_selected_axes_are_columns_of_full_coordinates(site_scores, species_loadings):
    coords = compute_scaled_coordinates(site_scores, species_loadings, which_lvs=(3, 1))

    assert coords.which_lvs == (3, 1)
    assert_allclose(coords.sites, coords.sites_full[:, [2, 0]])
    assert_allclose(coords.species, coords.species_full[:, [2, 0]])


def test_deterministic(site_scores, species_loadings):
    first = compute_scaled_coordinates(site_scores, species_loadings, alpha=0.7)
    second = compute_scaled_coordinates(site_scores, species_loadings, alpha=0.7)

    assert_allclose(first.sites, second.sites)
    assert_allclose(first.species, second.species)


def test_signed_permutation_of_latent_variables_preserves_configuration(site_scores, species_loadings):
    Q = np.array([[0.0, -1.0, 0.0],
                  [0.0, 0.0, 1.0],
                  [1.0, 0.0, 0.0]])

    original = compute_scaled_coordinates(site_scores, species_loadings)
    rotated = compute_scaled_coordinates(site_scores @ Q, species_loadings @ Q)

    both_original = np.vstack([original.sites_full, original.species_full])
    both_rotated = np.vstack([rotated.sites_full, rotated.species_full])

    assert_allclose(pairwise_distances(both_rotated), pairwise_distances(both_original), atol=1e-10)
    assert_allclose(np.sum(both_rotated ** 2), np.sum(both_original ** 2))


def test_species_shrink_relative_to_sites_as_alpha_grows():
    rng = np.random.default_rng(7)
    sites = rng.normal(scale=3.0, size=(20, 2))
    species = rng.normal(scale=3.0, size=(8, 2))

    ratios = []
    for alpha in (0.0, 0.5, 1.0):
        coords = compute_scaled_coordinates(sites, species, alpha=alpha)
        ratios.append(np.sum(coords.species ** 2) / np.sum(coords.sites ** 2))

    assert ratios[0] > ratios[1] > ratios[2]

    # alpha = 1 leaves species with unit column norms
    coords = compute_scaled_coordinates(sites, species, alpha=1.0)
    assert_allclose(np.sum(coords.species_full ** 2), 2.0)


def test_fewer_sites_than_latent_variables():
    rng = np.random.default_rng(3)
    coords = compute_scaled_coordinates(rng.normal(size=(2, 3)), rng.normal(size=(4, 3)))

    assert coords.rotation.shape == (3, 3)
    assert coords.sites.shape == (2, 2)


# ============================================================================
# VALIDATION
# ============================================================================

def test_mismatched_latent_dimensions():
    with pytest.raises(DimensionError):
        compute_scaled_coordinates(np.ones((4, 3)), np.ones((5, 2)))


@pytest.mark.parametrize("which_lvs", [(1, 1), (2, 2)])
def test_non_distinct_axes(site_scores, species_loadings, which_lvs):
    with pytest.raises(InvalidParameterError):
        compute_scaled_coordinates(site_scores, species_loadings, which_lvs=which_lvs)


def test_axis_beyond_latent_dimensions(site_scores, species_loadings):
    with pytest.raises(DimensionError):
        compute_scaled_coordinates(site_scores, species_loadings, which_lvs=(1, 5))


@pytest.mark.parametrize("which_lvs", [(1,), (1, 2, 3), (0.5, 2)])
def test_malformed_axes(site_scores, species_loadings, which_lvs):
    with pytest.raises(InvalidParameterError):
        compute_scaled_coordinates(site_scores, species_loadings, which_lvs=which_lvs)


@pytest.mark.parametrize("alpha", [-0.1, 1.5, np.nan])
def test_alpha_outside_unit_interval(site_scores, species_loadings, alpha):
    with pytest.raises(InvalidParameterError):
        compute_scaled_coordinates(site_scores, species_loadings, alpha=alpha)


def test_no_latent_variables():
    with pytest.raises(DimensionError):
        compute_scaled_coordinates(np.zeros((4, 0)), np.zeros((3, 0)))


def test_empty_species():
    with pytest.raises(DimensionError):
        compute_scaled_coordinates(np.ones((4, 2)), np.zeros((0, 2)))


def test_zero_norm_latent_variable():
    sites = np.array([[1.0, 0.0], [2.0, 0.0], [-1.0, 0.0]])
    with pytest.raises(DimensionError):
        compute_scaled_coordinates(sites, np.ones((3, 2)))


def test_single_latent_variable_biplot_unsupported():
    with pytest.raises(UnsupportedBiplotError):
        compute_scaled_coordinates(np.ones((5, 1)), np.ones((3, 1)), display_mode=DisplayMode.BIPLOT)


def test_single_latent_variable_scatter_passthrough():
    sites = np.array([[0.5], [-1.0], [2.0]])
    coords = compute_scaled_coordinates(sites, np.ones((4, 1)), display_mode='scatter')

    assert coords.sites.shape == (3, 1)
    assert_allclose(coords.sites, sites)
    assert coords.species is None
    assert coords.B is None


# ============================================================================
# SPECIES SELECTION
# ============================================================================

def test_top_species_ties_keep_original_order():
    # Squared row norms: 5, 9, 1, 9
    loadings = np.array([[1.0, 2.0], [0.0, 3.0], [1.0, 0.0], [3.0, 0.0]])

    assert list(select_top_species(loadings, 2)) == [1, 3]
    assert list(select_top_species(loadings)) == [1, 3, 0, 2]
    assert list(select_top_species(loadings, 'all')) == [1, 3, 0, 2]


def test_top_species_capped_at_p():
    loadings = np.array([[1.0, 2.0], [0.0, 3.0]])
    assert len(select_top_species(loadings, 10)) == 2


@pytest.mark.parametrize("ind_spp", [0, -1, 'some', 1.5])
def test_top_species_invalid_size(ind_spp):
    with pytest.raises(InvalidParameterError):
        select_top_species(np.ones((3, 2)), ind_spp)


# ============================================================================
# PREDICTION ELLIPSES
# ============================================================================

def test_chi_squared_radius_two_dimensions():
    # chi2 with 2 df: quantile = -2 log(1 - level)
    assert_allclose(chi_squared_radius(0.95, 2), np.sqrt(-2 * np.log(0.05)))


@pytest.mark.parametrize("level", [0.0, 1.0, 1.2, -0.5])
def test_level_outside_open_interval(level):
    with pytest.raises(InvalidParameterError):
        chi_squared_radius(level, 2)


def test_ellipse_projects_covariance_through_b():
    covariance = np.array([[0.4, 0.1, 0.0],
                           [0.1, 0.3, 0.05],
                           [0.0, 0.05, 0.2]])
    B = np.array([[2.0, 0.0, 0.0],
                  [0.0, 0.5, 0.0],
                  [0.0, 0.0, 1.0]])
    site_points = np.array([[0.0, 0.0], [1.0, -1.0]])

    ellipse = compute_prediction_ellipse(1, covariance, B, level=0.9, which_lvs=(1, 3),
                                         site_points=site_points)

    projected = B.T @ covariance @ B
    assert_allclose(ellipse.covariance, projected[np.ix_([0, 2], [0, 2])])
    assert_allclose(ellipse.center, [1.0, -1.0])
    assert_allclose(ellipse.radius, chi_squared_radius(0.9, 3))


def test_ellipse_outline_lies_on_contour():
    covariance = np.array([[0.5, 0.2], [0.2, 0.3]])
    ellipse = compute_prediction_ellipse(0, covariance, np.eye(2), level=0.95,
                                         site_points=np.array([[1.0, 2.0]]))

    outline = ellipse.outline(40)
    assert outline.shape == (41, 2)
    assert_allclose(outline[0], outline[-1])

    centred = outline - ellipse.center
    mahalanobis = np.einsum('ij,jk,ik->i', centred, np.linalg.inv(ellipse.covariance), centred)
    assert_allclose(mahalanobis, ellipse.radius ** 2)


def test_ellipse_from_model_uses_site_covariance(la_model):
    coords = compute_scaled_coordinates(la_model.lvs, la_model.theta)

    ellipse = compute_prediction_ellipse(3, la_model, coords.B, site_points=coords.sites)

    expected = coords.B.T @ la_model.prediction_errors[3] @ coords.B
    assert_allclose(ellipse.covariance, expected)
    assert_allclose(ellipse.center, coords.sites[3])


def test_ellipses_for_every_site(la_model):
    coords = compute_scaled_coordinates(la_model.lvs, la_model.theta)
    ellipses = compute_prediction_ellipses(la_model, coords, level=0.95)

    assert len(ellipses) == la_model.n_sites
    assert [e.site_index for e in ellipses] == list(range(la_model.n_sites))


def test_ellipse_without_covariance_source():
    with pytest.raises(MissingUncertaintyError):
        compute_prediction_ellipse(0, None, np.eye(2), site_points=np.zeros((1, 2)))


def test_ellipses_for_model_without_uncertainty(bare_model):
    coords = compute_scaled_coordinates(bare_model.lvs, bare_model.theta)
    with pytest.raises(MissingUncertaintyError):
        compute_prediction_ellipses(bare_model, coords)


def test_ellipse_covariance_shape_mismatch():
    with pytest.raises(DimensionError):
        compute_prediction_ellipse(0, np.eye(3), np.eye(2), site_points=np.zeros((1, 2)))


# ============================================================================
# JITTER AND DISPLAY
# ============================================================================

def test_jitter_is_bounded_and_seeded():
    points = np.zeros((50, 2))

    first = jitter_points(points, 0.2, random_state=42)
    second = jitter_points(points, 0.2, random_state=42)

    assert_allclose(first, second)
    assert np.all(np.abs(first) <= 0.2)
    assert not np.allclose(first, points)


def test_zero_jitter_returns_copy():
    points = np.ones((3, 2))
    result = jitter_points(points, 0.0)

    assert_allclose(result, points)
    assert result is not points


def test_negative_jitter():
    with pytest.raises(InvalidParameterError):
        jitter_points(np.ones((3, 2)), -0.1)


def test_build_biplot_with_species_subset(la_model):
    display = build_ordination(la_model, display_mode='biplot', ind_spp=2)

    order = select_top_species(la_model.theta)
    assert list(display.species_index) == list(order[:2])
    assert display.species_labels == [la_model.species_names[j] for j in order[:2]]
    assert display.species_points.shape == (2, 2)
    assert display.axis_labels == ('Latent variable 1', 'Latent variable 2')
    assert display.ellipses == []


def test_build_scatter_with_prediction_region(la_model):
    display = build_ordination(la_model, display_mode=DisplayMode.SCATTER,
                               predict_region=True, jitter_amount=0.1, random_state=0)

    assert display.species_points is None
    assert len(display.ellipses) == la_model.n_sites
    # Ellipses stay on the unjittered coordinates
    assert_allclose(display.ellipses[0].center, display.coordinates.sites[0])
    assert np.all(np.abs(display.site_points - display.coordinates.sites) <= 0.1)


def test_build_single_latent_variable_scatter(rng):
    model = FittedGLLVM(theta=rng.normal(size=(3, 1)), lvs=rng.normal(size=(6, 1)))
    display = build_ordination(model)

    assert display.axis_labels == ('Row index', 'LV1')
    assert_allclose(display.site_points[:, 0], np.arange(1, 7))
    assert_allclose(display.site_points[:, 1], model.lvs[:, 0])


def test_build_single_latent_variable_biplot(rng):
    model = FittedGLLVM(theta=rng.normal(size=(3, 1)), lvs=rng.normal(size=(6, 1)))
    with pytest.raises(UnsupportedBiplotError):
        build_ordination(model, display_mode=True)


def test_build_without_latent_variables():
    model = FittedGLLVM(theta=None, num_lv=0, species_names=['a', 'b'], aicc=100.0)
    with pytest.raises(DimensionError):
        build_ordination(model)


def test_unknown_display_mode(la_model):
    with pytest.raises(InvalidParameterError):
        build_ordination(la_model, display_mode='triplot')
