from .core.mlpcr import MultilevelPCR, fit_mlpcr
from .core.mlpcr_result import MultilevelPCRResults
from .core.config import MLPCRConfig
from .core.groups import GroupStructure
from .core.errors import GroupStructureError, MLPCRWarning, DimensionClampWarning, BlockDroppedWarning

__version__ = '0.1.0'
__all__ = ['MultilevelPCR', 'MultilevelPCRResults', 'MLPCRConfig', 'GroupStructure', 'fit_mlpcr',
           'GroupStructureError', 'MLPCRWarning', 'DimensionClampWarning', 'BlockDroppedWarning']
