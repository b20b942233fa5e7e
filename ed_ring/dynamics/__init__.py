from . import spectrum, evolution

from .spectrum import *
from .evolution import *

# All modules have an __all__ defined
__all__ = spectrum.__all__.copy()
__all__ += evolution.__all__.copy()
