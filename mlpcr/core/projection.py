import numpy as np
from .selection import ScoreSelection


class ProjectedCoefficients:
    """
    Feature-space coefficient vectors, each of length p + 1 with the intercept first.

    Attributes
    ----------
    B : np.ndarray
        Combined model (all retained components).
    Bb : np.ndarray
        Between-only model; carries the full intercept.
    Bw : np.ndarray
        Within-only model; intercept is always zero.
    """
    __slots__ = ('B', 'Bb', 'Bw')

    def __init__(self, B: np.ndarray, Bb: np.ndarray, Bw: np.ndarray):
        self.B = B
        self.Bb = Bb
        self.Bw = Bw


def project_coefficients(coef: np.ndarray, basis: np.ndarray, selection: ScoreSelection):
    """
    Map score-space coefficients back to feature space.

    Parameters
    ----------
    coef : np.ndarray
        Fitted coefficients, intercept first, shape (1 + n_retained,).
    basis : np.ndarray
        Between vectors followed by within vectors, shape (p, kb + kw), in the
        same column order as the concatenated scores.
    selection : ScoreSelection
        Retained index sets.

    Returns
    -------
    ProjectedCoefficients
    """
    p = basis.shape[0]
    intercept = coef[0]
    slopes = coef[1:]

    def _project(dims):
        if len(dims) == 0:
            return np.zeros(p)
        return basis[:, dims] @ slopes[selection.positions(dims)]

    if selection.n_retained > 0:
        B = np.concatenate([[intercept], basis[:, selection.retained] @ slopes])
    else:
        # intercept-only fit; no component carries a slope
        B = np.concatenate([[intercept], np.zeros(p)])

    Bb = np.concatenate([[intercept], _project(selection.between_dims)])
    Bw = np.concatenate([[0.0], _project(selection.within_dims)])
    return ProjectedCoefficients(B, Bb, Bw)
