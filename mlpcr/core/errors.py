class GroupStructureError(ValueError):
    """
    Raised when the multilevel decomposition has no group structure to work with.
    """


class MLPCRWarning(UserWarning):
    """
    Base class for recoverable conditions signalled during a fit.
    """


class DimensionClampWarning(MLPCRWarning):
    """
    A requested component count exceeded the degrees-of-freedom bound and was clamped.

    Parameters
    ----------
    level : str
        'between' or 'within'.
    requested : int
        Count asked for by the caller.
    clamped : int
        Count actually used.
    """
    def __init__(self, level: str, requested: int, clamped: int):
        self.level = level
        self.requested = requested
        self.clamped = clamped
        super().__init__(f"Max {level} dimension exceeds max df, resetting {level} dimension "
                         f"from {requested} to {clamped}")

    def __reduce__(self):
        return (self.__class__, (self.level, self.requested, self.clamped))


class BlockDroppedWarning(MLPCRWarning):
    """
    Rank deficiency of the assembled scores dropped every component of one block.

    Parameters
    ----------
    level : str
        'between' or 'within'.
    """
    def __init__(self, level: str):
        self.level = level
        super().__init__(f"All {level} dimensions dropped due to rank deficiency")

    def __reduce__(self):
        return (self.__class__, (self.level,))
