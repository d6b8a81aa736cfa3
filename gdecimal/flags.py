#
# Condition flags, rounding policies and the exceptions signalled by decimal operations
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#

import re
from enum import IntFlag


__all__ = ('Flags', 'ConditionTracker', 'DEFAULT_TRAPS', 'GUARD_FLAGS',
           'DecimalError', 'InvalidOperation', 'RangeError', 'Overflow', 'Underflow',
           'Subnormal', 'Clamped', 'PrecisionLoss', 'Inexact', 'Rounded',
           'DivisionFailure', 'DivisionByZero', 'DivisionUndefined', 'DivisionImpossible',
           'EngineGuardFailure', 'SystemOverflow', 'SystemUnderflow',
           'ROUND_CEILING', 'ROUND_FLOOR', 'ROUND_DOWN', 'ROUND_UP',
           'ROUND_HALF_EVEN', 'ROUND_HALF_UP', 'ROUND_HALF_DOWN', 'ROUND_05UP',
           'ROUNDINGS')


# Rounding policies.  The values are the canonical names used in text interchange.
ROUND_CEILING   = 'ceiling'         # Towards +infinity
ROUND_FLOOR     = 'floor'           # Towards -infinity
ROUND_DOWN      = 'down'            # Towards zero
ROUND_UP        = 'up'              # Away from zero
ROUND_HALF_EVEN = 'half_even'       # To nearest with ties towards even
ROUND_HALF_DOWN = 'half_down'       # To nearest with ties towards zero
ROUND_HALF_UP   = 'half_up'         # To nearest with ties away from zero
ROUND_05UP      = '05up'            # Away from zero if the last retained digit is 0 or 5

ROUNDINGS = frozenset((ROUND_CEILING, ROUND_FLOOR, ROUND_DOWN, ROUND_UP,
                       ROUND_HALF_EVEN, ROUND_HALF_DOWN, ROUND_HALF_UP, ROUND_05UP))


# Operation condition flags.
class Flags(IntFlag):
    INEXACT             = 0x0001
    ROUNDED             = 0x0002
    OVERFLOW            = 0x0004
    UNDERFLOW           = 0x0008
    SUBNORMAL           = 0x0010
    CLAMPED             = 0x0020
    DIVISION_BY_ZERO    = 0x0040
    DIVISION_UNDEFINED  = 0x0080
    DIVISION_IMPOSSIBLE = 0x0100
    INVALID_OPERATION   = 0x0200
    # Engine protection, not GDA conditions
    SYSTEM_OVERFLOW     = 0x0400
    SYSTEM_UNDERFLOW    = 0x0800

    def names(self):
        '''Return the canonical names of the set flags in definition order.'''
        return [name for flag, name in _FLAG_NAMES.items() if self & flag]

    def __str__(self):
        return ', '.join(self.names())

    @classmethod
    def from_names(cls, names):
        '''Return the flags named by names, an iterable of canonical names or a string of them
        separated by commas or whitespace.  Names are case-insensitive.'''
        if isinstance(names, str):
            names = [name for name in re.split('[\\s,]+', names) if name]
        result = cls(0)
        for name in names:
            flag = _NAMED_FLAGS.get(name.lower())
            if flag is None:
                raise ValueError(f'unknown condition: {name}')
            result |= flag
        return result


_FLAG_NAMES = {
    Flags.INEXACT: 'inexact',
    Flags.ROUNDED: 'rounded',
    Flags.OVERFLOW: 'overflow',
    Flags.UNDERFLOW: 'underflow',
    Flags.SUBNORMAL: 'subnormal',
    Flags.CLAMPED: 'clamped',
    Flags.DIVISION_UNDEFINED: 'division_undefined',
    Flags.DIVISION_BY_ZERO: 'division_by_zero',
    Flags.DIVISION_IMPOSSIBLE: 'division_impossible',
    Flags.INVALID_OPERATION: 'invalid_operation',
    Flags.SYSTEM_OVERFLOW: 'system_overflow',
    Flags.SYSTEM_UNDERFLOW: 'system_underflow',
}
_NAMED_FLAGS = {name: flag for flag, name in _FLAG_NAMES.items()}

# These are fatal whatever the trap mask says.
GUARD_FLAGS = Flags.SYSTEM_OVERFLOW | Flags.SYSTEM_UNDERFLOW

DEFAULT_TRAPS = (GUARD_FLAGS | Flags.OVERFLOW | Flags.UNDERFLOW | Flags.SUBNORMAL
                 | Flags.DIVISION_UNDEFINED | Flags.DIVISION_BY_ZERO
                 | Flags.DIVISION_IMPOSSIBLE | Flags.INVALID_OPERATION)


class ConditionTracker:
    '''Accumulates the conditions incurred by a single operation.  Flags are only ever
    added.'''

    __slots__ = ('flags', )

    def __init__(self):
        self.flags = Flags(0)

    def raise_flags(self, flags):
        self.flags |= flags

    def incurred(self, flags):
        '''Return True if any of flags has been raised.'''
        return bool(self.flags & flags)

    def __repr__(self):
        return f'<ConditionTracker flags={self.flags!r}>'


class EngineLimitExceeded(Exception):
    '''Raised internally when an iteration cap or size limit of the engine is reached.  The
    operation entry point converts it to the carried guard flag.'''

    def __init__(self, flag=Flags.SYSTEM_OVERFLOW):
        super().__init__(flag)

    @property
    def flag(self):
        return self.args[0]


#
# Signals
#

class DecimalError(ArithmeticError):
    '''All arithmetic exceptions raised by this package subclass from this.

    DecimalError expects three arguments:

         def __init__(self, op_tuple, result, flags):

    op_tuple is a tuple of the operation name and operands causing the signal.  result
    is the value the operation would have delivered had the condition not been trapped;
    it is None if the operation produced no value.  flags are all the conditions the
    operation incurred, which can be more than the one that is trapped.
    '''

    flag_to_raise = Flags(0)

    @property
    def op_tuple(self):
        return self.args[0]

    @property
    def default_result(self):
        return self.args[1]

    @property
    def flags(self):
        return self.args[2]


class InvalidOperation(DecimalError):
    '''Signalled when an operation is mathematically undefined for its operands, such as the
    square root of a negative number or 0 ** 0.'''

    flag_to_raise = Flags.INVALID_OPERATION


#
# RangeError - the exponent of the result falls outside the context bounds
#

class RangeError(DecimalError):
    '''Base class of exponent range conditions.'''


class Overflow(RangeError):
    '''The adjusted exponent of the rounded result exceeds the maximum exponent.  The default
    result is the finite number of largest magnitude.'''

    flag_to_raise = Flags.OVERFLOW


class Underflow(RangeError):
    '''A subnormal result was also inexact.'''

    flag_to_raise = Flags.UNDERFLOW


class Subnormal(RangeError):
    '''The adjusted exponent of the result is below the minimum exponent.'''

    flag_to_raise = Flags.SUBNORMAL


class Clamped(RangeError):
    '''The exponent of the result was altered to fit the context's exponent range.'''

    flag_to_raise = Flags.CLAMPED


#
# PrecisionLoss - digits were discarded
#

class PrecisionLoss(DecimalError):
    '''Base class of advisory digit-loss conditions.'''


class Inexact(PrecisionLoss):
    '''Non-zero digits were discarded.'''

    flag_to_raise = Flags.INEXACT


class Rounded(PrecisionLoss):
    '''Digits, possibly all zero, were discarded.'''

    flag_to_raise = Flags.ROUNDED


#
# DivisionFailure - sub-exceptions are DivisionByZero, DivisionUndefined, DivisionImpossible
#

class DivisionFailure(DecimalError, ZeroDivisionError):
    '''Base class of division errors.'''


class DivisionByZero(DivisionFailure):
    '''A non-zero dividend was divided by zero.'''

    flag_to_raise = Flags.DIVISION_BY_ZERO


class DivisionUndefined(DivisionFailure):
    '''Zero was divided by zero.'''

    flag_to_raise = Flags.DIVISION_UNDEFINED


class DivisionImpossible(DivisionFailure):
    '''An integer quotient would need more digits than the precision.'''

    flag_to_raise = Flags.DIVISION_IMPOSSIBLE


#
# EngineGuardFailure - always fatal
#

class EngineGuardFailure(DecimalError):
    '''An internal engine limit was reached.  Raised regardless of the trap mask.'''


class SystemOverflow(EngineGuardFailure):
    '''An iteration cap, a coefficient size limit or the largest engine exponent was
    exceeded.'''

    flag_to_raise = Flags.SYSTEM_OVERFLOW


class SystemUnderflow(EngineGuardFailure):
    '''An exponent fell below the smallest engine exponent.'''

    flag_to_raise = Flags.SYSTEM_UNDERFLOW


# When more than one trapped condition is incurred the earliest listed is raised.
_PRECEDENCE = (SystemOverflow, SystemUnderflow, InvalidOperation, DivisionUndefined,
               DivisionByZero, DivisionImpossible, Overflow, Underflow, Subnormal, Clamped,
               Inexact, Rounded)


def exception_class(flags):
    '''Return the exception class to raise for the given trapped flags.'''
    for cls in _PRECEDENCE:
        if flags & cls.flag_to_raise:
            return cls
    raise ValueError(f'no condition is set in {flags!r}')
