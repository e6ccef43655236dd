import numpy as np
from .config import MLPCRConfig
from .groups import GroupStructure
from .projection import ProjectedCoefficients
from .selection import ScoreSelection
from .terms import EigenBasis
from ..utils.metrics import evaluate_metrics

_LEVELS = ('combined', 'between', 'within')


class MultilevelPCRResults:
    """
    Result class for Multilevel Principal Component Regression.

    Parameters
    ----------
    config : MLPCRConfig
        Options the model was fitted with.
    groups : GroupStructure
        Group bookkeeping of the training data.
    between : EigenBasis
        Between basis with group-level scores.
    within : EigenBasis
        Within basis with observation-level scores.
    selection : ScoreSelection
        Concatenated scores and retained index sets.
    coefficients : np.ndarray
        Score-space coefficients, intercept first.
    solver : str
        'ols' or 'pinv', the regression branch taken.
    projected : ProjectedCoefficients
        Feature-space coefficient vectors.

    Attributes
    ----------
    B, Bb, Bw : np.ndarray
        Combined, between-only and within-only coefficient vectors of length
        p + 1; element 0 is the intercept (always 0 for Bw).
    between_basis, within_basis : np.ndarray
        Feature-space eigenvectors of shape (p, kb) and (p, kw).
    between_scores, within_scores : np.ndarray
        Scores on those eigenvectors, both with one row per observation.
    scores : np.ndarray
        [between_scores, within_scores].
    rank : int
        Numerical rank of `scores`.
    retained : np.ndarray
        Retained columns of `scores`, in the order they entered the regression.
    between_dims, within_dims : np.ndarray
        Retained columns of each block.
    """
    def __init__(self, config: MLPCRConfig, groups: GroupStructure, between: EigenBasis, within: EigenBasis,
                 selection: ScoreSelection, coefficients: np.ndarray, solver: str, projected: ProjectedCoefficients):
        self.config = config
        self.groups = groups
        self.n, self.p = groups.n, within.vectors.shape[0]

        self.between_basis = between.vectors
        self.between_scores = selection.scores[:, :between.n_components]
        self.between_singular_values = between.singular_values
        self.within_basis = within.vectors
        self.within_scores = within.scores
        self.within_singular_values = within.singular_values

        self.scores = selection.scores
        self.rank = selection.rank
        self.component_variance = selection.variance
        self.retained = selection.retained
        self.between_dims = selection.between_dims
        self.within_dims = selection.within_dims

        self.coefficients = coefficients
        self.solver = solver
        self.B = projected.B
        self.Bb = projected.Bb
        self.Bw = projected.Bw

    @property
    def intercept(self):
        return self.B[0]

    @property
    def coef_(self):
        return self.B[1:]

    @property
    def n_retained(self):
        return len(self.retained)

    def coefficient_vector(self, level: str = 'combined') -> np.ndarray:
        """
        Feature-space coefficient vector (intercept first) of one model variant.
        """
        if level not in _LEVELS:
            raise ValueError(f"level must be one of {_LEVELS}, got {level!r}")
        return {'combined': self.B, 'between': self.Bb, 'within': self.Bw}[level]

    def predict(self, X: np.ndarray, level: str = 'combined') -> np.ndarray:
        """
        Predict responses with the combined, between-only or within-only model.

        Parameters:
            X: (n_samples, n_features) array of features.
            level: 'combined', 'between' or 'within'.

        Returns:
            (n_samples,) array of predicted responses.
        """
        b = self.coefficient_vector(level)
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2 or X.shape[1] != self.p:
            raise ValueError(f"X must have shape (n, {self.p}), got {X.shape}")
        return X @ b[1:] + b[0]

    def evaluate(self, X: np.ndarray, y: np.ndarray, level: str = 'combined') -> dict:
        """
        Prediction metrics (MAE, MSE, RMSE, r2, r) of one model variant on (X, y).
        """
        return evaluate_metrics(np.ravel(y), self.predict(X, level))

    def summary(self) -> str:
        """
        Text summary of the fitted multilevel PCR model.
        """
        indent1 = "   "
        between_req, within_req = self.config.n_components
        lines = [
            "",
            "Multilevel Principal Component Regression Summary",
            "=" * 50,
            indent1 + f"No. Observations: {self.n}",
            indent1 + f"No. Features: {self.p}",
            indent1 + f"No. Groups: {self.groups.n_groups}",
            indent1 + f"Consensus Weighting: {self.config.consensus}",
            "-" * 50,
            indent1 + "{:<10} {:>10} {:>10} {:>10}".format("Level", "Requested", "Extracted", "Retained"),
            indent1 + "{:<10} {:>10} {:>10} {:>10}".format(
                "Between", "max" if between_req is None else between_req,
                self.between_basis.shape[1], len(self.between_dims)),
            indent1 + "{:<10} {:>10} {:>10} {:>10}".format(
                "Within", "max" if within_req is None else within_req,
                self.within_basis.shape[1], len(self.within_dims)),
            "-" * 50,
            indent1 + f"Score Rank: {self.rank}",
            indent1 + f"Solver: {self.solver}",
            indent1 + f"Intercept: {self.intercept:.4f}",
            "",
        ]
        return "\n".join(lines)
