from . import checks, errors, manage_data, plotting, report

from .checks import *
from .errors import *
from .manage_data import *
from .plotting import *
from .report import *

# All modules have an __all__ defined
__all__ = checks.__all__.copy()
__all__ += errors.__all__.copy()
__all__ += manage_data.__all__.copy()
__all__ += plotting.__all__.copy()
__all__ += report.__all__.copy()
