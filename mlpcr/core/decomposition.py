import logging
import warnings
import numpy as np
from scipy import linalg
from .errors import DimensionClampWarning
from .groups import GroupStructure
from .terms import EigenBasis

logger = logging.getLogger(__name__)


def clamp_dim(requested: int | None, max_dim: int, level: str):
    """
    Clamp a component-count request to its degrees-of-freedom bound.

    An explicit request above the bound is signalled with a DimensionClampWarning;
    an unbounded request (None) silently takes the bound.
    """
    max_dim = max(0, max_dim)
    if requested is None:
        return max_dim
    if requested > max_dim:
        warnings.warn(DimensionClampWarning(level, requested, max_dim), stacklevel=3)
        return max_dim
    return requested


def _leading_vectors(A: np.ndarray, k: int):
    """
    Leading k left singular vectors of A with their singular values, descending.
    """
    U, s, _ = linalg.svd(A, full_matrices=False)
    return U[:, :k], s[:k]


def within_decompose(X: np.ndarray, groups: GroupStructure, requested: int | None):
    """
    Within-group PCA.

    The basis is extracted from the group-centered data weighted by the group
    scale factors (consensus PCA when those are 1/√m); scores are the projection
    of the full, uncentered X so that between-group variance lying along the
    within axes is absorbed into the within scores.

    Parameters
    ----------
    X : np.ndarray
        Data of shape (n, p).
    groups : GroupStructure
        Group bookkeeping for the rows of X.
    requested : int or None
        Number of within components; None for as many as the df allow.

    Returns
    -------
    basis : EigenBasis
        Within basis (p, kw) and scores (n, kw).
    Xw : np.ndarray
        Group-centered data C @ X, shape (n, p).
    """
    n, p = X.shape
    Xw = groups.center(X)
    k = clamp_dim(requested, min(n - groups.n_groups, p), 'within')
    logger.debug("Within dimension: requested %s, using %d", requested, k)
    if k == 0:
        return EigenBasis.empty('within', p, n), Xw

    vectors, s = _leading_vectors((groups.scale[:, None] * Xw).T, k)
    return EigenBasis('within', vectors, X @ vectors, s), Xw


def extract_between_residual(X: np.ndarray, Xw: np.ndarray, within: EigenBasis, groups: GroupStructure):
    """
    Group-level residual carrying the between-group signal.

    Removes the within reconstruction from X, then whatever within-group
    variance an incomplete within basis left behind, and keeps one exemplar
    row per group.

    Returns
    -------
    np.ndarray
        Residual of shape (G, p).
    """
    if within.n_components == 0:
        Xb = X - Xw
    else:
        Xr = X - within.reconstruct()
        Xb = Xr - groups.center(Xr)
    return Xb[groups.exemplars]


def between_decompose(Xb: np.ndarray, requested: int | None):
    """
    Between-group PCA on the group-level residual.

    The basis comes from the column-centered residual; scores are the
    projection of the residual as given (not re-centered).

    Parameters
    ----------
    Xb : np.ndarray
        Group-level residual of shape (G, p).
    requested : int or None
        Number of between components; None for as many as the df allow.

    Returns
    -------
    EigenBasis
        Between basis (p, kb) and group-level scores (G, kb).
    """
    n_groups, p = Xb.shape
    k = clamp_dim(requested, min(n_groups - 1, p), 'between')
    logger.debug("Between dimension: requested %s, using %d", requested, k)
    if k == 0:
        return EigenBasis.empty('between', p, n_groups)

    vectors, s = _leading_vectors((Xb - Xb.mean(axis=0)).T, k)
    return EigenBasis('between', vectors, Xb @ vectors, s)
