#
# Evaluation contexts and the operation entry points
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#

import logging
import threading
from typing import NamedTuple

import attr

from . import arith, text, transcendental
from .flags import (
    Flags, ConditionTracker, EngineLimitExceeded, DEFAULT_TRAPS, GUARD_FLAGS, ROUNDINGS,
    ROUND_HALF_UP, ROUND_HALF_EVEN, exception_class,
)
from .number import Decimal, MAX_INTERNAL_EXPONENT, MIN_INTERNAL_EXPONENT, MAX_COEFFICIENT_DIGITS


__all__ = ('Context', 'Result', 'DefaultContext', 'BasicContext', 'ExtendedContext',
           'get_context', 'set_context', 'local_context',
           'OP_ADD', 'OP_SUBTRACT', 'OP_MULTIPLY', 'OP_DIVIDE', 'OP_DIVIDE_INTEGER',
           'OP_REMAINDER', 'OP_ABS', 'OP_MINUS', 'OP_PLUS', 'OP_COMPARE', 'OP_QUANTIZE',
           'OP_RESCALE', 'OP_REDUCE', 'OP_TO_INTEGRAL', 'OP_TO_INTEGRAL_EXACT', 'OP_EXP',
           'OP_LN', 'OP_LOG10', 'OP_SQRT', 'OP_CBRT', 'OP_POWER', 'OP_PARSE')


logger = logging.getLogger(__name__)


# Operation names
OP_ADD = 'add'
OP_SUBTRACT = 'subtract'
OP_MULTIPLY = 'multiply'
OP_DIVIDE = 'divide'
OP_DIVIDE_INTEGER = 'divide_integer'
OP_REMAINDER = 'remainder'
OP_ABS = 'abs'
OP_MINUS = 'minus'
OP_PLUS = 'plus'
OP_COMPARE = 'compare'
OP_QUANTIZE = 'quantize'
OP_RESCALE = 'rescale'
OP_REDUCE = 'reduce'
OP_TO_INTEGRAL = 'to_integral'
OP_TO_INTEGRAL_EXACT = 'to_integral_exact'
OP_EXP = 'exp'
OP_LN = 'ln'
OP_LOG10 = 'log10'
OP_SQRT = 'sqrt'
OP_CBRT = 'cbrt'
OP_POWER = 'power'
OP_PARSE = 'parse'


class Result(NamedTuple):
    '''The value an operation delivered and every condition it incurred.'''
    value: Decimal
    flags: Flags


def _check_int(instance, attribute, value):
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f'{attribute.name} must be an integer')


def _check_precision(instance, attribute, value):
    if not 0 <= value <= MAX_COEFFICIENT_DIGITS:
        raise ValueError(f'precision {value:,d} out of range')


def _check_max_exponent(instance, attribute, value):
    if not 0 <= value <= MAX_INTERNAL_EXPONENT:
        raise ValueError(f'max_exponent {value:,d} out of range')


def _check_min_exponent(instance, attribute, value):
    if not MIN_INTERNAL_EXPONENT <= value <= 0:
        raise ValueError(f'min_exponent {value:,d} out of range')


def _check_rounding(instance, attribute, value):
    if value not in ROUNDINGS:
        raise ValueError(f'unknown rounding: {value!r}')


def _check_traps(instance, attribute, value):
    if not isinstance(value, Flags):
        raise TypeError('traps must be a Flags instance')


def _setting_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


@attr.s(slots=True, frozen=True, kw_only=True)
class Context:
    '''The evaluation context of operations.  Contexts are immutable; the with_ methods
    derive new ones.

    Operations are methods taking Decimal operands.  They return a Result of the
    delivered value and the conditions incurred, unless a condition is trapped, in which
    case the DecimalError for the most important trapped condition is raised.  The guard
    conditions SYSTEM_OVERFLOW and SYSTEM_UNDERFLOW are always trapped.
    '''

    # Significant digits of results.  0 means unbounded; operations that would need to
    # discard digits then signal invalid operation instead, with the exception of
    # divide_integer and remainder which are exact anyway.
    precision = attr.ib(default=0, validator=[_check_int, _check_precision])
    # The largest adjusted exponent of a finite number
    max_exponent = attr.ib(default=100000, validator=[_check_int, _check_max_exponent])
    # The smallest adjusted exponent of a normal number
    min_exponent = attr.ib(default=-100000, validator=[_check_int, _check_min_exponent])
    # One of the ROUND_ constants
    rounding = attr.ib(default=ROUND_HALF_UP, validator=_check_rounding)
    # Conditions that are promoted to exceptions
    traps = attr.ib(default=DEFAULT_TRAPS, validator=_check_traps)
    # If True, exponents above etop() are folded into the coefficient
    clamp = attr.ib(default=False, converter=bool)

    def __attrs_post_init__(self):
        if self.precision and self.min_exponent - self.precision + 1 < MIN_INTERNAL_EXPONENT:
            raise ValueError('precision too large for min_exponent')

    @classmethod
    def from_settings(cls, settings, base=None):
        '''Build a context from a mapping of directive names to values, applied to base or
        DefaultContext.  Values may be strings as read from a test corpus.

        The directives are precision, maxexponent, minexponent, rounding, clamp, traps and
        extended.  Names are case-insensitive.  extended, if true, stops subnormal and
        underflow being trapped.
        '''
        changes = {}
        extended = False
        for key, value in settings.items():
            key = key.lower()
            if key == 'precision':
                changes['precision'] = int(value)
            elif key == 'maxexponent':
                changes['max_exponent'] = int(value)
            elif key == 'minexponent':
                changes['min_exponent'] = int(value)
            elif key == 'rounding':
                changes['rounding'] = value.lower()
            elif key == 'clamp':
                changes['clamp'] = _setting_bool(value)
            elif key == 'traps':
                changes['traps'] = value if isinstance(value, Flags) else Flags.from_names(value)
            elif key == 'extended':
                extended = _setting_bool(value)
            else:
                raise ValueError(f'unknown setting: {key}')

        context = attr.evolve(base or DefaultContext, **changes)
        if extended:
            context = context.with_traps(context.traps & ~(Flags.SUBNORMAL | Flags.UNDERFLOW))
        return context

    def evolve(self, **changes):
        '''Return a copy of the context with the given attributes changed.'''
        return attr.evolve(self, **changes)

    def with_precision(self, precision):
        return attr.evolve(self, precision=precision)

    def with_rounding(self, rounding):
        return attr.evolve(self, rounding=rounding)

    def with_traps(self, traps):
        return attr.evolve(self, traps=traps)

    def etiny(self):
        '''The smallest exponent of a subnormal result.'''
        if not self.precision:
            return MIN_INTERNAL_EXPONENT
        return self.min_exponent - self.precision + 1

    def etop(self):
        '''The largest exponent of a full-precision result.'''
        if not self.precision:
            return self.max_exponent
        return self.max_exponent - self.precision + 1

    def _deliver(self, op_tuple, value, flags):
        trapped = flags & (self.traps | GUARD_FLAGS)
        if trapped:
            exc_class = exception_class(trapped)
            logger.debug('%s trapped %s (flags: %s)', op_tuple[0], exc_class.__name__, flags)
            raise exc_class(op_tuple, value, flags)
        return Result(value, flags)

    def _run(self, op_tuple, func, *args):
        tracker = ConditionTracker()
        try:
            value = func(*args, self, tracker)
        except EngineLimitExceeded as e:
            logger.debug('%s reached an engine limit: %s', op_tuple[0], e.flag)
            tracker.raise_flags(e.flag)
            value = None
        return self._deliver(op_tuple, value, tracker.flags)

    def _operation(self, name, func, *operands):
        for operand in operands:
            if not isinstance(operand, Decimal):
                raise TypeError(f'{name} operands must be Decimal, not {type(operand).__name__}')
        return self._run((name, ) + operands, func, *operands)

    ##
    ## Arithmetic
    ##

    def add(self, lhs, rhs):
        '''Return lhs + rhs.'''
        return self._operation(OP_ADD, arith.add, lhs, rhs)

    def subtract(self, lhs, rhs):
        '''Return lhs - rhs.'''
        return self._operation(OP_SUBTRACT, arith.subtract, lhs, rhs)

    def multiply(self, lhs, rhs):
        '''Return lhs * rhs.'''
        return self._operation(OP_MULTIPLY, arith.multiply, lhs, rhs)

    def divide(self, lhs, rhs):
        '''Return lhs / rhs.'''
        return self._operation(OP_DIVIDE, arith.divide, lhs, rhs)

    def divide_integer(self, lhs, rhs):
        '''Return the integer part of lhs / rhs, truncated.'''
        return self._operation(OP_DIVIDE_INTEGER, arith.divide_integer, lhs, rhs)

    def remainder(self, lhs, rhs):
        '''Return the remainder of truncating division; it has the sign of lhs.'''
        return self._operation(OP_REMAINDER, arith.remainder, lhs, rhs)

    def abs(self, value):
        return self._operation(OP_ABS, arith.absolute, value)

    def minus(self, value):
        return self._operation(OP_MINUS, arith.minus, value)

    def plus(self, value):
        return self._operation(OP_PLUS, arith.plus, value)

    def compare(self, lhs, rhs):
        '''Return a Result whose value is the Decimal -1, 0 or 1 as lhs is less than, equal to
        or greater than rhs.  Operands that are not Decimals are an invalid operation.'''
        if not isinstance(lhs, Decimal) or not isinstance(rhs, Decimal):
            return self._deliver((OP_COMPARE, lhs, rhs), None, Flags.INVALID_OPERATION)
        return self._operation(OP_COMPARE, arith.compare, lhs, rhs)

    ##
    ## Exponent and integral rounding
    ##

    def quantize(self, value, reference):
        '''Return value rounded to the exponent of reference.'''
        return self._operation(OP_QUANTIZE, arith.quantize, value, reference)

    def rescale(self, value, exponent):
        '''Return value rounded to the given integer exponent.'''
        if not isinstance(value, Decimal):
            raise TypeError(f'{OP_RESCALE} operand must be Decimal')
        if not isinstance(exponent, int):
            raise TypeError('exponent must be an integer')
        return self._run((OP_RESCALE, value, exponent), arith.rescale_to, value, exponent)

    def reduce(self, value):
        '''Return value rounded to the context with trailing zeroes stripped.'''
        return self._operation(OP_REDUCE, arith.reduce, value)

    def to_integral(self, value):
        return self._operation(OP_TO_INTEGRAL, arith.to_integral, value)

    def to_integral_exact(self, value):
        return self._operation(OP_TO_INTEGRAL_EXACT, arith.to_integral_exact, value)

    ##
    ## Roots, exponentials, logarithms and powers
    ##

    def exp(self, value):
        return self._operation(OP_EXP, transcendental.exp, value)

    def ln(self, value):
        return self._operation(OP_LN, transcendental.ln, value)

    def log10(self, value):
        return self._operation(OP_LOG10, transcendental.log10, value)

    def sqrt(self, value):
        return self._operation(OP_SQRT, transcendental.sqrt, value)

    def cbrt(self, value):
        return self._operation(OP_CBRT, transcendental.cbrt, value)

    def power(self, lhs, rhs):
        '''Return lhs raised to the power rhs.'''
        return self._operation(OP_POWER, transcendental.power, lhs, rhs)

    ##
    ## Text
    ##

    def parse(self, string):
        '''Convert a literal to a Decimal rounded to the context.  Malformed literals raise
        SyntaxError.'''
        if not isinstance(string, str):
            raise TypeError('can only parse a string')
        return self._run((OP_PARSE, string), text.parse, string)


#
# Predefined contexts and the current context
#

DefaultContext = Context()
BasicContext = Context(precision=9, rounding=ROUND_HALF_UP)
ExtendedContext = Context(precision=9, rounding=ROUND_HALF_EVEN, traps=Flags(0))
_tls = threading.local()


def get_context():
    '''Return the current thread's context.'''
    try:
        return _tls.context
    except AttributeError:
        _tls.context = DefaultContext
        return _tls.context


def set_context(context):
    '''Sets the current thread's context to context.'''
    if not isinstance(context, Context):
        raise TypeError('context must be a Context instance')
    _tls.context = context


class LocalContext:
    '''A context manager that sets the current context for the active thread to context on
    entry to the with-statement and restores the previous context on exit.  If no context
    is specified the current one is kept.
    '''

    def __init__(self, context=None):
        self.saved_context = None
        self.context_to_set = context

    def __enter__(self):
        self.saved_context = get_context()
        context = self.context_to_set or self.saved_context
        set_context(context)
        return context

    def __exit__(self, etype, value, traceback):
        set_context(self.saved_context)


local_context = LocalContext
