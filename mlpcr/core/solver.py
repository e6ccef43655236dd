import logging
import numpy as np
from scipy.linalg import solve
from .selection import numeric_rank, rank_threshold

logger = logging.getLogger(__name__)


class RegressionSolver:
    """
    Fits the outcome on the intercept-augmented score design.

    Full-rank designs are solved by weighted least squares,
    b = (Xᵀ W X)⁻¹ Xᵀ W y with W = diag(scale²). Rank-deficient designs use the
    pseudoinverse of scale² ⊙ X applied to y; singular values at or below the
    rank threshold are left uninverted (with tol=0 only exact zeros are).

    Parameters
    ----------
    scale : np.ndarray
        Per-observation scale factors, shape (n,).
    tol : float or None, default=None
        Rank threshold for choosing the branch and for the pseudoinverse cutoff.
    """
    def __init__(self, scale: np.ndarray, tol: float | None = None):
        self.scale = scale
        self.tol = tol
        self.method = None

    def solve(self, design: np.ndarray, y: np.ndarray) -> np.ndarray:
        """
        Solve for the score-space coefficients.

        Parameters
        ----------
        design : np.ndarray
            Design matrix with a leading column of ones, shape (n, 1 + k).
        y : np.ndarray
            Outcome, shape (n,).

        Returns
        -------
        np.ndarray
            Coefficients of shape (1 + k,), intercept first.
        """
        weights = self.scale ** 2
        if numeric_rank(design, self.tol) == design.shape[1]:
            self.method = 'ols'
            XtW = design.T * weights
            coef = solve(a=XtW @ design, b=XtW @ y, assume_a='sym')
        else:
            self.method = 'pinv'
            coef = self.weighted_pinv(design, weights, self.tol) @ y
        logger.debug("Solved %s design with %s", design.shape, self.method)
        return coef

    @staticmethod
    def weighted_pinv(design: np.ndarray, weights: np.ndarray, tol: float | None = None):
        """
        Moore-Penrose pseudoinverse of the row-weighted design, V S⁺ Uᵀ.
        """
        A = weights[:, None] * design
        U, s, Vt = np.linalg.svd(A, full_matrices=False)
        invertible = s > rank_threshold(s, A.shape, tol)
        s_inv = np.divide(1.0, s, out=np.zeros_like(s), where=invertible)
        return (Vt.T * s_inv) @ U.T
