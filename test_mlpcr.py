import pickle
import warnings
import numpy as np
import pytest
from numpy.testing import assert_allclose
from sklearn.base import clone
from mlpcr import (MultilevelPCR, MLPCRConfig, fit_mlpcr, GroupStructureError, MLPCRWarning,
                   DimensionClampWarning, BlockDroppedWarning)


def make_data(sizes, p, seed=0):
    """Grouped data with a subject offset and a within-subject slope."""
    rng = np.random.default_rng(seed)
    groups = np.repeat(np.arange(len(sizes)), sizes)
    offsets = rng.normal(scale=3.0, size=(len(sizes), p))
    X = offsets[groups] + rng.normal(size=(len(groups), p))
    y = X @ rng.normal(size=p) + rng.normal(scale=0.1, size=len(groups))
    return X, y, groups


def pcr_coefficients(X, y):
    """Ordinary PCR keeping every non-null component, intercept first."""
    Xc = X - X.mean(axis=0)
    _, s, Vt = np.linalg.svd(Xc, full_matrices=False)
    V = Vt[s > s.max() * max(X.shape) * np.finfo(float).eps].T
    design = np.column_stack([np.ones(len(y)), X @ V])
    b = np.linalg.lstsq(design, y, rcond=None)[0]
    return np.concatenate([[b[0]], V @ b[1:]])


def test_defaults_reproduce_pcr():
    X, y, groups = make_data([3, 4, 5], p=20)
    with warnings.catch_warnings():
        warnings.simplefilter("error", MLPCRWarning)
        result = fit_mlpcr(X, y, groups)

    assert result.within_basis.shape == (20, 9)
    assert result.between_basis.shape == (20, 2)
    assert result.n_retained == 11
    assert result.solver == 'ols'
    assert_allclose(result.B, pcr_coefficients(X, y), rtol=1e-6, atol=1e-8)
    assert_allclose(result.predict(X), y, atol=1e-8)


def test_two_group_example_low_dimensional():
    X = np.array([[1, 2], [2, 3], [3, 2], [10, 10], [11, 12]], dtype=float)
    y = np.array([1, 2, 1.5, 10, 11])
    # two within axes span the whole feature space, so no between signal remains
    with pytest.warns(BlockDroppedWarning) as record:
        result = fit_mlpcr(X, y, [1, 1, 1, 2, 2])

    assert record[0].message.level == 'between'
    assert result.within_basis.shape[1] <= 3
    assert result.between_basis.shape[1] <= 1
    assert result.solver == 'ols'
    assert result.Bw[0] == 0
    assert len(result.B) == len(result.Bb) == len(result.Bw) == 3
    assert_allclose(result.Bb[1:], 0.0)


def test_two_group_example_high_dimensional():
    rng = np.random.default_rng(11)
    base = np.array([[1, 2], [2, 3], [3, 2], [10, 10], [11, 12]], dtype=float)
    X = np.hstack([base, rng.normal(size=(5, 4))])
    y = np.array([1, 2, 1.5, 10, 11])
    with warnings.catch_warnings():
        warnings.simplefilter("error", MLPCRWarning)
        result = fit_mlpcr(X, y, ['a', 'a', 'a', 'b', 'b'])

    assert result.within_basis.shape == (6, 3)
    assert result.between_basis.shape == (6, 1)
    assert result.solver == 'ols'
    assert result.Bw[0] == 0
    assert result.Bb[0] == result.B[0]
    assert np.any(np.abs(result.Bb[1:]) > 1e-8)
    assert_allclose(result.B[1:], result.Bb[1:] + result.Bw[1:], atol=1e-10)
    assert_allclose(result.predict(X), y, atol=1e-8)


def test_requests_above_degrees_of_freedom_are_clamped():
    X, y, groups = make_data([3, 4, 5], p=20)
    with pytest.warns(DimensionClampWarning) as record:
        result = fit_mlpcr(X, y, groups, MLPCRConfig(n_components=(5, 10)))

    clamped = {w.message.level: w.message.clamped for w in record if isinstance(w.message, DimensionClampWarning)}
    assert clamped == {'within': 9, 'between': 2}
    assert result.within_basis.shape[1] == 9
    assert result.between_basis.shape[1] == 2


@pytest.mark.parametrize("n_components", [(0, 0), (1, 0), (0, 2), (2, 3), (None, 1), (None, None)])
def test_coefficient_vectors_are_consistent(n_components):
    X, y, groups = make_data([4, 2, 6, 3], p=8, seed=3)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MLPCRWarning)
        result = fit_mlpcr(X, y, groups, MLPCRConfig(n_components=n_components))

    p = X.shape[1]
    assert len(result.B) == len(result.Bb) == len(result.Bw) == p + 1
    assert result.Bw[0] == 0
    assert result.Bb[0] == result.B[0] == result.coefficients[0]
    assert len(result.coefficients) == 1 + result.n_retained
    assert_allclose(result.B[1:], result.Bb[1:] + result.Bw[1:], atol=1e-10)
    assert_allclose(result.predict(X), result.predict(X, 'between') + result.predict(X, 'within'), atol=1e-8)


def test_no_components_fits_the_mean():
    X, y, groups = make_data([3, 3], p=4)
    result = fit_mlpcr(X, y, groups, MLPCRConfig(n_components=(0, 0)))
    assert result.n_retained == 0
    assert_allclose(result.B, np.concatenate([[y.mean()], np.zeros(4)]))


def test_rank_deficient_scores_do_not_fail():
    rng = np.random.default_rng(5)
    X = rng.normal(size=(12, 2)) @ rng.normal(size=(2, 20))
    y = rng.normal(size=12)
    groups = np.repeat([0, 1, 2], 4)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MLPCRWarning)
        result = fit_mlpcr(X, y, groups)

    k = result.scores.shape[1]
    assert result.rank == np.linalg.matrix_rank(result.scores)
    assert result.rank < k
    assert result.n_retained == result.rank - 1

    retained = set(result.retained.tolist())
    kept = set(result.between_dims.tolist()) | set(result.within_dims.tolist())
    assert kept == retained
    assert set(result.between_dims.tolist()).isdisjoint(result.within_dims.tolist())
    assert all(c < result.between_basis.shape[1] for c in result.between_dims)
    assert np.all(np.isfinite(result.B))


def test_consensus_weighting_changes_between_basis():
    X, y, groups = make_data([2, 3, 7, 4], p=15, seed=7)
    config = dict(n_components=(None, 2))
    plain = fit_mlpcr(X, y, groups, MLPCRConfig(**config))
    consensus = fit_mlpcr(X, y, groups, MLPCRConfig(consensus=True, **config))

    assert_allclose(plain.groups.scale, 1.0)
    assert not np.allclose(np.abs(plain.between_basis), np.abs(consensus.between_basis), atol=1e-6)


def test_consensus_weighting_is_neutral_for_balanced_groups():
    X, y, groups = make_data([4, 4, 4], p=10, seed=9)
    plain = fit_mlpcr(X, y, groups, MLPCRConfig(n_components=(1, 3)))
    consensus = fit_mlpcr(X, y, groups, MLPCRConfig(n_components=(1, 3), consensus=True))
    assert_allclose(plain.B, consensus.B, rtol=1e-6, atol=1e-8)


def test_label_type_does_not_matter():
    X, y, groups = make_data([3, 2, 4], p=6)
    numeric = fit_mlpcr(X, y, groups)
    named = fit_mlpcr(X, y, np.array(['s0', 's1', 's2'])[groups])
    assert_allclose(numeric.B, named.B)


def test_input_errors():
    X, y, groups = make_data([3, 3], p=4)
    with pytest.raises(GroupStructureError):
        fit_mlpcr(X, y, None)
    with pytest.raises(GroupStructureError):
        fit_mlpcr(None, None, [])
    with pytest.raises(ValueError):
        fit_mlpcr(X, y, groups[:-1])
    with pytest.raises(ValueError):
        fit_mlpcr(X, y[:-1], groups)
    with pytest.raises(ValueError):
        fit_mlpcr(X[:, 0], y, groups)
    X_nan = X.copy()
    X_nan[0, 0] = np.nan
    with pytest.raises(ValueError):
        fit_mlpcr(X_nan, y, groups)


def test_estimator_fit_predict_and_pickle():
    X, y, groups = make_data([5, 6, 4, 5], p=12, seed=2)
    X_test, _, _ = make_data([3, 3], p=12, seed=4)

    model = MultilevelPCR(n_components=(2, 5), consensus=True)
    result = model.fit(X, y, groups)
    assert result is model.results_
    assert_allclose(model.coef_, result.B[1:])
    assert model.intercept_ == result.B[0]
    assert model.predict(X_test).shape == (6,)
    assert 0.0 < model.score(X, y) <= 1.0

    loaded = pickle.loads(pickle.dumps(model))
    assert_allclose(loaded.predict(X_test, level='within'), model.predict(X_test, level='within'))

    cloned = clone(model)
    assert cloned.get_params() == model.get_params()
    assert cloned.results_ is None


def test_unfitted_estimator_raises():
    with pytest.raises(RuntimeError):
        MultilevelPCR().predict(np.zeros((2, 3)))


def test_results_report():
    X, y, groups = make_data([4, 5, 3], p=7, seed=6)
    result = fit_mlpcr(X, y, groups, MLPCRConfig(n_components=(None, 4)))

    metrics = result.evaluate(X, y, level='between')
    assert set(metrics) == {'MAE', 'MSE', 'RMSE', 'r2', 'r'}
    assert metrics['RMSE'] == pytest.approx(np.sqrt(metrics['MSE']))

    text = result.summary()
    assert "Solver: ols" in text or "Solver: pinv" in text
    assert "No. Groups: 3" in text

    with pytest.raises(ValueError):
        result.predict(X, level='subject')
    with pytest.raises(ValueError):
        result.predict(X[:, :3])
