import logging
import warnings
import numpy as np
from .errors import BlockDroppedWarning

logger = logging.getLogger(__name__)


def rank_threshold(s: np.ndarray, shape: tuple, tol: float | None = None):
    """
    Singular-value threshold used for numerical rank.

    With tol=None this is S.max() * max(M, N) * eps for an (M, N) matrix.
    """
    if tol is not None:
        return tol
    if s.size == 0:
        return 0.0
    return s.max() * max(shape) * np.finfo(s.dtype).eps


def numeric_rank(A: np.ndarray, tol: float | None = None):
    """
    Number of singular values of A above the rank threshold.
    """
    if A.size == 0:
        return 0
    s = np.linalg.svd(A, compute_uv=False)
    return int(np.sum(s > rank_threshold(s, A.shape, tol)))


class ScoreSelection:
    """
    Concatenated between/within scores and the columns retained for regression.

    Attributes
    ----------
    scores : np.ndarray
        Between scores (expanded to observations) followed by within scores, shape (n, kb + kw).
    rank : int
        Numerical rank of `scores`.
    variance : np.ndarray
        Sample variance of each score column.
    retained : np.ndarray
        Retained column indices, ordered as they enter the regression design.
    between_dims : np.ndarray
        Retained indices belonging to the between block, ascending.
    within_dims : np.ndarray
        Retained indices belonging to the within block, ascending.
    """
    __slots__ = ('scores', 'rank', 'variance', 'retained', 'between_dims', 'within_dims', 'n_between')

    def __init__(self, scores, rank, variance, retained, between_dims, within_dims, n_between):
        self.scores = scores
        self.rank = rank
        self.variance = variance
        self.retained = retained
        self.between_dims = between_dims
        self.within_dims = within_dims
        self.n_between = n_between

    @property
    def n_retained(self):
        return len(self.retained)

    @property
    def truncated(self):
        return self.n_retained < self.scores.shape[1]

    def design(self):
        """
        Intercept-augmented regression design [1, scores[:, retained]].
        """
        n = self.scores.shape[0]
        return np.hstack([np.ones((n, 1)), self.scores[:, self.retained]])

    def positions(self, dims: np.ndarray):
        """
        Position of each retained index within `retained` (its coefficient slot minus the intercept).
        """
        lookup = {int(c): j for j, c in enumerate(self.retained)}
        return np.array([lookup[int(c)] for c in dims], dtype=np.intp)


def assemble_scores(between_scores: np.ndarray, within_scores: np.ndarray, tol: float | None = None):
    """
    Concatenate between and within scores and select the columns that survive.

    A full-rank score matrix keeps every column. Otherwise rank - 1 columns are
    kept, those with the largest variance (ties broken by column order), and a
    BlockDroppedWarning is issued for any block that loses all of its columns.

    Parameters
    ----------
    between_scores : np.ndarray
        Between scores expanded to observations, shape (n, kb).
    within_scores : np.ndarray
        Within scores, shape (n, kw).
    tol : float or None
        Rank threshold, see `numeric_rank`.

    Returns
    -------
    ScoreSelection
    """
    kb, kw = between_scores.shape[1], within_scores.shape[1]
    scores = np.hstack([between_scores, within_scores])
    n, k = scores.shape
    between_idx = np.arange(kb)
    within_idx = np.arange(kb, kb + kw)

    rank = numeric_rank(scores, tol)
    variance = scores.var(axis=0, ddof=1) if n > 1 else np.zeros(k)

    if rank >= k:
        retained = np.arange(k)
    else:
        n_keep = max(rank - 1, 0)
        order = np.argsort(-variance, kind='stable')
        retained = order[:n_keep]

    keep = set(retained.tolist())
    between_dims = np.array([c for c in between_idx if c in keep], dtype=np.intp)
    within_dims = np.array([c for c in within_idx if c in keep], dtype=np.intp)

    if kb > 0 and between_dims.size == 0:
        warnings.warn(BlockDroppedWarning('between'), stacklevel=2)
    if kw > 0 and within_dims.size == 0:
        warnings.warn(BlockDroppedWarning('within'), stacklevel=2)

    logger.debug("Score matrix %s has rank %d; retaining %d columns (%d between, %d within)",
                 scores.shape, rank, len(retained), between_dims.size, within_dims.size)
    return ScoreSelection(scores, rank, variance, retained.astype(np.intp), between_dims, within_dims, kb)
