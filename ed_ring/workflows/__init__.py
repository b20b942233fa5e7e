from . import diffusion

from .diffusion import *

# All modules have an __all__ defined
__all__ = diffusion.__all__.copy()
