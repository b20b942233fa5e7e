from . import householder, tridiagonal_qr, eigensolver

from .householder import *
from .tridiagonal_qr import *
from .eigensolver import *

# All modules have an __all__ defined
__all__ = householder.__all__.copy()
__all__ += tridiagonal_qr.__all__.copy()
__all__ += eigensolver.__all__.copy()
