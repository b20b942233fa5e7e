from . import pattern, primitive_basis, rate_tables, momentum_blocks

from .pattern import *
from .primitive_basis import *
from .rate_tables import *
from .momentum_blocks import *

# All modules have an __all__ defined
__all__ = pattern.__all__.copy()
__all__ += primitive_basis.__all__.copy()
__all__ += rate_tables.__all__.copy()
__all__ += momentum_blocks.__all__.copy()
