import math
import numbers
from dataclasses import dataclass


def _normalize_dim(value, level: str):
    """
    Normalise one component-count request: None/inf -> None (unbounded), else a non-negative int.
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValueError(f"{level} component count must be a non-negative integer or None/inf, got {value!r}")
    if math.isinf(value) and value > 0:
        return None
    if math.isnan(value) or value < 0 or value != int(value):
        raise ValueError(f"{level} component count must be a non-negative integer or None/inf, got {value!r}")
    return int(value)


@dataclass(frozen=True)
class MLPCRConfig:
    """
    Options of a multilevel PCR fit, validated once on construction.

    Parameters
    ----------
    n_components : tuple or int, default=(None, None)
        (between, within) number of components to retain. Each entry is a
        non-negative int, or None/inf to take every component the degrees of
        freedom allow. A single value applies to both levels.
    consensus : bool, default=False
        Use consensus PCA: weight every group equally in the within-group
        decomposition and in the regression, instead of in proportion to its
        number of observations.
    tol : float or None, default=None
        Singular-value threshold for numerical rank. None uses
        S.max() * max(M, N) * eps of the matrix being ranked.
    """
    n_components: tuple = (None, None)
    consensus: bool = False
    tol: float | None = None

    def __post_init__(self):
        dims = self.n_components
        if dims is None or isinstance(dims, numbers.Real):
            dims = (dims, dims)
        dims = tuple(dims)
        if len(dims) != 2:
            raise ValueError(f"n_components must have 2 entries (between, within), got {len(dims)}")
        dims = (_normalize_dim(dims[0], 'between'), _normalize_dim(dims[1], 'within'))
        object.__setattr__(self, 'n_components', dims)
        object.__setattr__(self, 'consensus', bool(self.consensus))

        if self.tol is not None:
            if not isinstance(self.tol, numbers.Real) or math.isnan(self.tol) or self.tol < 0:
                raise ValueError(f"tol must be a non-negative number or None, got {self.tol!r}")
            object.__setattr__(self, 'tol', float(self.tol))

    @property
    def between_dim(self):
        return self.n_components[0]

    @property
    def within_dim(self):
        return self.n_components[1]
