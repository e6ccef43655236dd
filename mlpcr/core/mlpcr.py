import logging
import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin
from .config import MLPCRConfig
from .decomposition import within_decompose, extract_between_residual, between_decompose
from .groups import GroupStructure
from .mlpcr_result import MultilevelPCRResults
from .projection import project_coefficients
from .selection import assemble_scores
from .solver import RegressionSolver

logger = logging.getLogger(__name__)


def _check_inputs(X, y):
    """
    Coerce X to a finite (n, p) float array and y to a finite (n,) float array.
    """
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if X.ndim != 2:
        raise ValueError(f"X must be a 2D array of shape (n, p), got {X.ndim}D")
    if y.ndim == 2 and y.shape[1] == 1:
        y = y.ravel()
    if y.ndim != 1:
        raise ValueError(f"y must be a 1D array of shape (n,), got shape {y.shape}")
    if y.shape[0] != X.shape[0]:
        raise ValueError(f"X has {X.shape[0]} observations but y has {y.shape[0]}")
    if not (np.all(np.isfinite(X)) and np.all(np.isfinite(y))):
        raise ValueError("X and y must not contain NaN or infinite values")
    return X, y


def fit_mlpcr(X, y, groups, config: MLPCRConfig | None = None):
    """
    Fit a multilevel principal component regression.

    Within-group and between-group PCA decompose X, y is regressed jointly on
    both score sets and the coefficients are projected back to feature space
    as a combined, a between-only and a within-only model. With the default
    options the combined model equals ordinary PCR on (X, y).

    Parameters
    ----------
    X : array-like
        Features, shape (n, p).
    y : array-like
        Outcome, shape (n,).
    groups : array-like
        Group label of each observation, shape (n,) or (n, k) for composite keys.
    config : MLPCRConfig, optional
        Fit options; defaults to MLPCRConfig().

    Returns
    -------
    MultilevelPCRResults
        Fitted result object.
    """
    config = MLPCRConfig() if config is None else config
    structure = GroupStructure.from_labels(groups, config.consensus)
    X, y = _check_inputs(X, y)
    if structure.n != X.shape[0]:
        raise ValueError(f"X has {X.shape[0]} observations but groups has {structure.n} labels")

    # 1. Within-group basis, scores from the full data
    within, Xw = within_decompose(X, structure, config.within_dim)

    # 2. Between-group basis on the group-level residual
    Xb = extract_between_residual(X, Xw, within, structure)
    between = between_decompose(Xb, config.between_dim)

    # 3. Joint scores and rank-based selection
    selection = assemble_scores(structure.expand(between.scores), within.scores, config.tol)

    # 4. Regression on retained scores
    solver = RegressionSolver(structure.scale, config.tol)
    coef = solver.solve(selection.design(), y)

    # 5. Back to feature space
    basis = np.hstack([between.vectors, within.vectors])
    projected = project_coefficients(coef, basis, selection)

    logger.debug("Fitted MLPCR: n=%d, p=%d, groups=%d, between=%d, within=%d, retained=%d, solver=%s",
                 X.shape[0], X.shape[1], structure.n_groups, between.n_components,
                 within.n_components, selection.n_retained, solver.method)
    return MultilevelPCRResults(config, structure, between, within, selection, coef, solver.method, projected)


class MultilevelPCR(RegressorMixin, BaseEstimator):
    """
    Multilevel Principal Component Regression (MLPCR).

    Identifies within-group eigenvectors (optionally balanced across groups),
    scores the full dataset on them, runs a second PCA on the residual group
    level signal, regresses the outcome jointly on both score sets and
    projects the coefficients back to feature space. Yields the combined model
    plus between-only and within-only models from one fit.

    Parameters
    ----------
    n_components : tuple, default=(None, None)
        (between, within) number of components; None or inf selects as many
        as the degrees of freedom allow.
    consensus : bool, default=False
        Consensus PCA: weight each group equally instead of by its size.
    tol : float or None, default=None
        Numerical rank threshold.
    """
    def __init__(self, n_components: tuple = (None, None), consensus: bool = False, tol: float | None = None):
        self.n_components = n_components
        self.consensus = consensus
        self.tol = tol

        self.results_: MultilevelPCRResults = None

    def fit(self, X: np.ndarray, y: np.ndarray, groups: np.ndarray):
        """
        Fit the MLPCR model.

        Parameters
        ----------
        X : np.ndarray
            Features, shape (n, p).
        y : np.ndarray
            Outcome, shape (n,).
        groups : np.ndarray
            Group labels, shape (n,).

        Returns
        -------
        MultilevelPCRResults
            Fitted result object.
        """
        config = MLPCRConfig(n_components=self.n_components, consensus=self.consensus, tol=self.tol)
        self.results_ = fit_mlpcr(X, y, groups, config)
        self.coef_ = self.results_.coef_
        self.intercept_ = self.results_.intercept
        self.n_features_in_ = self.coef_.shape[0]
        return self.results_

    def predict(self, X: np.ndarray, level: str = 'combined'):
        """
        Predict using the combined, between-only or within-only model.

        Parameters
        ----------
        X : np.ndarray
            Features, shape (n, p).
        level : {'combined', 'between', 'within'}, default='combined'

        Returns
        -------
        np.ndarray
            Predictions of shape (n,).
        """
        if self.results_ is None:
            raise RuntimeError("Model is not fitted.")
        return self.results_.predict(X, level)
