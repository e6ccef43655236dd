import logging
import numpy as np
import pandas as pd
from scipy import sparse
from scipy.sparse.linalg import LinearOperator
from .errors import GroupStructureError

logger = logging.getLogger(__name__)


class CenteringOperator(LinearOperator):
    """
    Block-diagonal within-group centering operator C.

    C = blkdiag(I_m - (1/m) 1 1ᵀ) over groups, applied as x - E (Eᵀ x / m)
    without forming the n x n matrix.

    Parameters
    ----------
    expansion : scipy.sparse.csr_array
        Group-to-observation expansion operator E of shape (n, G).
    sizes : np.ndarray
        Observations per group, shape (G,).
    """
    def __init__(self, expansion: sparse.csr_array, sizes: np.ndarray):
        self.expansion = expansion
        self.sizes = sizes
        n = expansion.shape[0]
        super().__init__(dtype=np.float64, shape=(n, n))

    def _group_means(self, x: np.ndarray):
        """Eᵀ x / m for a vector or a stack of columns."""
        sums = self.expansion.T @ x
        return sums / (self.sizes if sums.ndim == 1 else self.sizes[:, None])

    def _matvec(self, x_vec: np.ndarray):
        """
        Compute C @ x_vec.

        Parameters
        ----------
        x_vec : np.ndarray
            Input vector of shape (n,).

        Returns
        -------
        np.ndarray
            Input minus its group means, shape (n,).
        """
        x_vec = np.ravel(x_vec)
        return x_vec - self.expansion @ self._group_means(x_vec)

    def _matmat(self, X: np.ndarray):
        """Compute C @ X column-wise in one pass."""
        X = np.asarray(X, dtype=np.float64)
        return X - self.expansion @ self._group_means(X)

    def _adjoint(self):
        """C is symmetric."""
        return self

    def toarray(self):
        """
        Materialise the dense block-diagonal matrix (for inspection only).
        """
        return self._matmat(np.eye(self.shape[0]))

    def __reduce__(self):
        return (self.__class__, (self.expansion, self.sizes))


class GroupStructure:
    """
    Group bookkeeping derived once from the label vector.

    Parameters
    ----------
    codes : np.ndarray
        Dense group index per observation, 0..G-1 in first-appearance order.
    labels : np.ndarray
        Distinct labels in first-appearance order, shape (G,).
    consensus : bool, default=False
        If True the per-observation scale is 1/√m (consensus weighting),
        otherwise 1.

    Attributes
    ----------
    n : int
        Number of observations.
    n_groups : int
        Number of groups G.
    sizes : np.ndarray
        Observation count per group.
    expansion : scipy.sparse.csr_array
        Expansion operator E of shape (n, G).
    centering : CenteringOperator
        Within-group centering operator of shape (n, n).
    scale : np.ndarray
        Per-observation scale factors, shape (n,).
    exemplars : np.ndarray
        First observation index of each group, shape (G,).
    """
    __slots__ = ('codes', 'labels', 'consensus', 'n', 'n_groups', 'sizes',
                 'expansion', 'centering', 'scale', 'exemplars')

    def __init__(self, codes: np.ndarray, labels: np.ndarray, consensus: bool = False):
        self.codes = np.asarray(codes, dtype=np.intp)
        self.labels = labels
        self.consensus = bool(consensus)
        self.n = self.codes.shape[0]
        self.n_groups = len(labels)
        self.sizes = np.bincount(self.codes, minlength=self.n_groups).astype(np.float64)

        self.expansion = self.design_expansion(self.codes, self.n_groups)
        self.centering = CenteringOperator(self.expansion, self.sizes)

        if self.consensus:
            self.scale = 1.0 / np.sqrt(self.sizes[self.codes])
        else:
            self.scale = np.ones(self.n)

        _, self.exemplars = np.unique(self.codes, return_index=True)

    @classmethod
    def from_labels(cls, groups, consensus: bool = False):
        """
        Build the group structure from a label vector.

        Parameters
        ----------
        groups : array-like
            Labels of shape (n,) of any hashable type, or (n, k) where each row
            is one composite key.
        consensus : bool, default=False
            Enable consensus (equal per-group) weighting.

        Returns
        -------
        GroupStructure
        """
        if groups is None:
            raise GroupStructureError("Cannot perform multilevel PCR without group labels.")

        keys = np.asarray(groups, dtype=object)
        if keys.ndim not in (1, 2):
            raise ValueError(f"groups must be 1D or 2D, got {keys.ndim}D")
        if keys.shape[0] == 0:
            raise GroupStructureError("Cannot perform multilevel PCR without group labels.")

        if keys.ndim == 2:
            # each row is one composite key
            keys = keys[:, 0] if keys.shape[1] == 1 else pd.Series([tuple(row) for row in keys], dtype=object)

        codes, uniques = pd.factorize(keys, use_na_sentinel=False)
        structure = cls(codes, np.asarray(uniques, dtype=object), consensus)
        logger.debug("Built %d groups from %d observations (sizes %s)",
                     structure.n_groups, structure.n, structure.sizes.astype(int).tolist())
        return structure

    @staticmethod
    def design_expansion(codes: np.ndarray, n_groups: int):
        """
        Construct the sparse group-indicator matrix E.

        Returns
        -------
        scipy.sparse.csr_array
            Matrix of shape (n, G) with E[i, g] = 1 iff observation i is in group g.
        """
        n = codes.shape[0]
        return sparse.csr_array((np.ones(n), (np.arange(n), codes)), shape=(n, n_groups))

    def expand(self, group_rows: np.ndarray):
        """Map one row per group to all of that group's observations (E @ x)."""
        if group_rows.ndim == 2 and group_rows.shape[1] == 0:
            return np.zeros((self.n, 0))
        return self.expansion @ group_rows

    def center(self, X: np.ndarray):
        """Subtract each observation's group mean (C @ X)."""
        return self.centering @ X

    def group_slices(self):
        """Observation indices of each group, in group order."""
        order = np.argsort(self.codes, kind='stable')
        bounds = np.cumsum(self.sizes.astype(int))[:-1]
        return np.split(order, bounds)
