#
# Arbitrary-precision decimal arithmetic with General Decimal Arithmetic semantics
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#

from .flags import *
from .number import *
from .context import *
from .text import *

__all__ = (flags.__all__ + number.__all__ + context.__all__ + text.__all__)
