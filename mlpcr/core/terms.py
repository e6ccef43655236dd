import numpy as np


class EigenBasis:
    """
    Orthonormal feature-space basis of one decomposition level and its scores.

    Parameters
    ----------
    level : str
        'between' or 'within'.
    vectors : np.ndarray
        Basis vectors as columns, shape (p, k).
    scores : np.ndarray
        Projection of the data on the basis, shape (rows, k).
    singular_values : np.ndarray
        Singular values of the retained vectors, descending, shape (k,).
    """
    __slots__ = ('level', 'vectors', 'scores', 'singular_values')

    def __init__(self, level: str, vectors: np.ndarray, scores: np.ndarray, singular_values: np.ndarray):
        if vectors.shape[1] != scores.shape[1]:
            raise ValueError(f"Basis/score shape mismatch. Got {vectors.shape[1]} vectors and {scores.shape[1]} score columns")
        self.level = level
        self.vectors = vectors
        self.scores = scores
        self.singular_values = singular_values

    @classmethod
    def empty(cls, level: str, n_features: int, n_rows: int):
        """
        Basis with no components (zero requested or available dimensions).
        """
        return cls(level, np.zeros((n_features, 0)), np.zeros((n_rows, 0)), np.zeros(0))

    @property
    def n_components(self):
        return self.vectors.shape[1]

    def reconstruct(self):
        """
        Scores mapped back to feature space: scores @ vectorsᵀ.
        """
        return self.scores @ self.vectors.T
