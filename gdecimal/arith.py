#
# Arithmetic, quantize, reduce and integral rounding
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#
# Each operation takes its operands, the context and a ConditionTracker, and returns the
# Decimal to deliver.  Conditions are raised in the tracker; whether they are fatal is
# decided by the caller.
#

from math import gcd

from .flags import Flags, EngineLimitExceeded, ROUND_FLOOR
from .number import (
    Decimal, compare_values, digit_count, pow10, strip_trailing_zeros,
    exact_reciprocal_scale, MAX_COEFFICIENT_DIGITS,
)
from .rounding import finalize, rescale, check_digits, LF_EXACTLY_ZERO


def add(lhs, rhs, context, tracker):
    '''Return lhs + rhs.'''
    return _add_sub(lhs, rhs, False, context, tracker)


def subtract(lhs, rhs, context, tracker):
    '''Return lhs - rhs.'''
    return _add_sub(lhs, rhs, True, context, tracker)


def _add_sub(lhs, rhs, is_subtract, context, tracker):
    rhs_sign = rhs.sign ^ is_subtract
    exponent = min(lhs.exponent, rhs.exponent)
    precision = context.precision

    # The sign of a zero sum when the operand signs differ
    opposite_zero_sign = context.rounding == ROUND_FLOOR

    if not lhs.coefficient and not rhs.coefficient:
        sign = lhs.sign if lhs.sign == rhs_sign else opposite_zero_sign
        return finalize(sign, 0, exponent, context, tracker)

    # Adding zero pads the other operand out to the smaller exponent, but never by more
    # than the precision needs
    if not lhs.coefficient or not rhs.coefficient:
        if lhs.coefficient:
            sign, coefficient, other_exponent = lhs.sign, lhs.coefficient, lhs.exponent
        else:
            sign, coefficient, other_exponent = rhs_sign, rhs.coefficient, rhs.exponent
        if precision:
            exponent = max(exponent, other_exponent - precision - 1)
        check_digits(other_exponent - exponent)
        coefficient *= pow10(other_exponent - exponent)
        return finalize(sign, coefficient, exponent, context, tracker)

    # Put the operand with the larger exponent first
    high = (lhs.sign, lhs.coefficient, lhs.exponent)
    low = (rhs_sign, rhs.coefficient, rhs.exponent)
    if high[2] < low[2]:
        high, low = low, high

    if precision:
        # Adding anything smaller than 10^sticky_exp has the same effect after rounding
        # as adding 10^sticky_exp itself, so replace a low operand below it.  This stops
        # the alignment shift growing without bound.
        high_digits = digit_count(high[1])
        sticky_exp = high[2] + min(-1, high_digits - precision - 2)
        if low[2] + digit_count(low[1]) - 1 < sticky_exp:
            low = (low[0], 1, sticky_exp)

    shift = high[2] - low[2]
    check_digits(shift)
    high_coefficient = high[1] * pow10(shift)
    exponent = low[2]

    if high[0] == low[0]:
        sign = high[0]
        coefficient = high_coefficient + low[1]
    else:
        difference = high_coefficient - low[1]
        if difference == 0:
            return finalize(opposite_zero_sign, 0, exponent, context, tracker)
        sign = high[0] if difference > 0 else low[0]
        coefficient = abs(difference)

    return finalize(sign, coefficient, exponent, context, tracker)


def multiply(lhs, rhs, context, tracker):
    '''Return lhs * rhs.'''
    check_digits(digit_count(lhs.coefficient) + digit_count(rhs.coefficient) - 1)
    return finalize(lhs.sign ^ rhs.sign, lhs.coefficient * rhs.coefficient,
                    lhs.exponent + rhs.exponent, context, tracker)


def divide(lhs, rhs, context, tracker):
    '''Return lhs / rhs.'''
    sign = lhs.sign ^ rhs.sign

    if not rhs.coefficient:
        if not lhs.coefficient:
            tracker.raise_flags(Flags.DIVISION_UNDEFINED)
        else:
            tracker.raise_flags(Flags.DIVISION_BY_ZERO)
        return Decimal(sign, 0, 0)

    ideal_exp = lhs.exponent - rhs.exponent
    if not lhs.coefficient:
        return finalize(sign, 0, ideal_exp, context, tracker)

    if not context.precision:
        return _divide_exact(sign, lhs, rhs, context, tracker)

    # Long division to precision + 1 digits.  By construction the quotient has at least
    # one digit beyond the precision.
    shift = (digit_count(rhs.coefficient) - digit_count(lhs.coefficient)
             + context.precision + 1)
    exponent = ideal_exp - shift
    if shift >= 0:
        quotient, remainder = divmod(lhs.coefficient * pow10(shift), rhs.coefficient)
    else:
        quotient, remainder = divmod(lhs.coefficient, rhs.coefficient * pow10(-shift))

    if remainder:
        # Make the lowest digit sticky so the discarded part never looks exactly zero or
        # exactly half
        if quotient % 5 == 0:
            quotient += 1
    else:
        # The result is exact; get as close to the ideal exponent as possible
        quotient, exponent = strip_trailing_zeros(quotient, exponent, ideal_exp - exponent)

    return finalize(sign, quotient, exponent, context, tracker)


def _divide_exact(sign, lhs, rhs, context, tracker):
    '''Division under unbounded precision.  The quotient must terminate.'''
    divisor_gcd = gcd(lhs.coefficient, rhs.coefficient)
    numerator = lhs.coefficient // divisor_gcd
    scale = exact_reciprocal_scale(rhs.coefficient // divisor_gcd)
    if scale is None:
        tracker.raise_flags(Flags.INVALID_OPERATION)
        return Decimal(sign, 0, 0)

    multiplier, digits = scale
    check_digits(digit_count(numerator) + digits)
    quotient = numerator * multiplier
    exponent = lhs.exponent - rhs.exponent - digits
    quotient, exponent = strip_trailing_zeros(quotient, exponent, digits)
    return finalize(sign, quotient, exponent, context, tracker)


def _integer_division(lhs, rhs, context):
    '''Return a pair (quotient, remainder) of Decimals for the truncating division of lhs by
    rhs, where rhs is non-zero.  The quotient is unrounded with exponent zero, the
    remainder takes the sign of lhs.  Returns None if the quotient needs more digits than
    the precision.'''
    sign = lhs.sign ^ rhs.sign
    ideal_exp = min(lhs.exponent, rhs.exponent)
    precision = context.precision
    expdiff = lhs.adjusted() - rhs.adjusted()

    if not lhs.coefficient or expdiff <= -2:
        # The quotient is zero; the remainder is lhs at the ideal exponent, which only
        # pads it
        coefficient = 0
        if lhs.coefficient:
            coefficient = lhs.coefficient * pow10(lhs.exponent - ideal_exp)
        return Decimal(sign, 0, 0), Decimal(lhs.sign, coefficient, ideal_exp)

    if precision and expdiff > precision:
        return None

    lhs_coefficient = lhs.coefficient
    rhs_coefficient = rhs.coefficient
    shift = lhs.exponent - rhs.exponent
    check_digits(abs(shift))
    if shift >= 0:
        lhs_coefficient *= pow10(shift)
    else:
        rhs_coefficient *= pow10(-shift)
    quotient, remainder = divmod(lhs_coefficient, rhs_coefficient)
    if precision and quotient >= pow10(precision):
        return None
    return Decimal(sign, quotient, 0), Decimal(lhs.sign, remainder, ideal_exp)


def divide_integer(lhs, rhs, context, tracker):
    '''Return the integer part of lhs / rhs, truncated towards zero.'''
    sign = lhs.sign ^ rhs.sign
    if not rhs.coefficient:
        if not lhs.coefficient:
            tracker.raise_flags(Flags.DIVISION_UNDEFINED)
        else:
            tracker.raise_flags(Flags.DIVISION_BY_ZERO)
        return Decimal(sign, 0, 0)

    parts = _integer_division(lhs, rhs, context)
    if parts is None:
        tracker.raise_flags(Flags.DIVISION_IMPOSSIBLE)
        return Decimal(sign, 0, 0)
    return parts[0]


def remainder(lhs, rhs, context, tracker):
    '''Return lhs - rhs * divide_integer(lhs, rhs), which has the sign of lhs.'''
    if not rhs.coefficient:
        if not lhs.coefficient:
            tracker.raise_flags(Flags.DIVISION_UNDEFINED)
        else:
            tracker.raise_flags(Flags.INVALID_OPERATION)
        return Decimal(lhs.sign, 0, 0)

    parts = _integer_division(lhs, rhs, context)
    if parts is None:
        tracker.raise_flags(Flags.DIVISION_IMPOSSIBLE)
        return Decimal(lhs.sign, 0, 0)
    result = parts[1]
    return finalize(result.sign, result.coefficient, result.exponent, context, tracker)


def plus(value, context, tracker):
    '''Return 0 + value, rounded to the context.'''
    sign = value.sign
    # A zero loses its minus sign unless rounding towards -infinity
    if not value.coefficient and context.rounding != ROUND_FLOOR:
        sign = False
    return finalize(sign, value.coefficient, value.exponent, context, tracker)


def minus(value, context, tracker):
    '''Return 0 - value, rounded to the context.'''
    sign = not value.sign
    if not value.coefficient and context.rounding != ROUND_FLOOR:
        sign = False
    return finalize(sign, value.coefficient, value.exponent, context, tracker)


def absolute(value, context, tracker):
    '''Return the absolute value, rounded to the context.'''
    if value.sign:
        return minus(value, context, tracker)
    return plus(value, context, tracker)


def compare(lhs, rhs, context, tracker):
    '''Return the Decimal -1, 0 or 1 as lhs is less than, equal to or greater than rhs.'''
    result = compare_values(lhs, rhs)
    return Decimal(result < 0, abs(result), 0)


def quantize(value, reference, context, tracker):
    '''Return value rounded to have the exponent of reference.'''
    return rescale_to(value, reference.exponent, context, tracker)


def rescale_to(value, exponent, context, tracker):
    '''Return value rounded to have the given exponent.'''
    if not context.etiny() <= exponent <= context.max_exponent:
        tracker.raise_flags(Flags.INVALID_OPERATION)
        return Decimal(value.sign, 0, 0)

    if not value.coefficient:
        return finalize(value.sign, 0, exponent, context, tracker)

    precision = context.precision
    adjusted = value.adjusted()
    if adjusted > context.max_exponent or (precision and adjusted - exponent + 1 > precision):
        tracker.raise_flags(Flags.INVALID_OPERATION)
        return Decimal(value.sign, 0, 0)

    check_digits(value.exponent - exponent)
    result, lost_fraction = rescale(value, exponent, context.rounding)
    if result.coefficient and (result.adjusted() > context.max_exponent
                               or (precision and result.digits() > precision)):
        tracker.raise_flags(Flags.INVALID_OPERATION)
        return Decimal(value.sign, 0, 0)

    flags = Flags(0)
    if result.coefficient and result.adjusted() < context.min_exponent:
        flags |= Flags.SUBNORMAL
    if exponent > value.exponent:
        if lost_fraction != LF_EXACTLY_ZERO:
            flags |= Flags.INEXACT
        flags |= Flags.ROUNDED
    tracker.raise_flags(flags)
    # Takes care of any fold-down under clamping
    return finalize(result.sign, result.coefficient, result.exponent, context, tracker)


def reduce(value, context, tracker):
    '''Return value rounded to the context with trailing zeroes removed.  Zero becomes 0E0 of
    the same sign.'''
    result = finalize(value.sign, value.coefficient, value.exponent, context, tracker)
    if not result.coefficient:
        return Decimal(result.sign, 0, 0)
    exp_max = context.etop() if context.clamp else context.max_exponent
    coefficient, exponent = strip_trailing_zeros(result.coefficient, result.exponent,
                                                 exp_max - result.exponent)
    return Decimal(result.sign, coefficient, exponent)


def to_integral(value, context, tracker):
    '''Round to an integer with the context's rounding.  Signals rounded, but not inexact,
    when digits are discarded.'''
    return _to_integral(value, context, tracker, Flags.ROUNDED)


def to_integral_exact(value, context, tracker):
    '''Round to an integer with the context's rounding.  Signals rounded when digits are
    discarded and inexact when they are not all zero.'''
    return _to_integral(value, context, tracker, Flags.ROUNDED | Flags.INEXACT)


def _to_integral(value, context, tracker, flags_raised):
    if value.exponent >= 0:
        return value
    if not value.coefficient:
        return Decimal(value.sign, 0, 0)
    result, lost_fraction = rescale(value, 0, context.rounding)
    flags = Flags.ROUNDED
    if lost_fraction != LF_EXACTLY_ZERO:
        flags |= Flags.INEXACT
    tracker.raise_flags(flags & flags_raised)
    return result


def integer_value(value):
    '''Return the integer an integral Decimal represents.  Raises EngineLimitExceeded when it
    is too large to build.'''
    if value.exponent >= 0:
        if value.coefficient and value.exponent + value.digits() > MAX_COEFFICIENT_DIGITS:
            raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)
        result = value.coefficient * pow10(value.exponent)
    else:
        result = value.coefficient // pow10(-value.exponent)
    return -result if value.sign else result
