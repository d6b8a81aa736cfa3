#
# Reducing exact results to the precision and exponent range of a context
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#

from .flags import (
    Flags, EngineLimitExceeded,
    ROUND_CEILING, ROUND_FLOOR, ROUND_DOWN, ROUND_UP, ROUND_HALF_EVEN, ROUND_HALF_DOWN,
    ROUND_HALF_UP, ROUND_05UP,
)
from .number import (
    Decimal, digit_count, pow10, MAX_INTERNAL_EXPONENT, MIN_INTERNAL_EXPONENT,
    MAX_COEFFICIENT_DIGITS,
)


# When precision is lost during a calculation these indicate what fraction of a unit in
# the last retained place the discarded digits represented.  It combines the roles of
# 'guard' and 'sticky' digits.
LF_EXACTLY_ZERO = 0           # 000000
LF_LESS_THAN_HALF = 1         # 0xxxxx or 1xxxxx-4xxxxx  x's not all zero
LF_EXACTLY_HALF = 2           # 500000
LF_MORE_THAN_HALF = 3         # 5xxxxx-9xxxxx  x's not all zero for the 5


def lost_digits_from_shift(coefficient, digits):
    '''Return what the lost digits would be were the coefficient shifted right the given
    number of decimal digits.
    '''
    if digits <= 0 or not coefficient:
        return LF_EXACTLY_ZERO
    # Every digit is lost, and the value is less than half a unit of the new last place
    if digits > digit_count(coefficient):
        return LF_LESS_THAN_HALF
    lost = coefficient % pow10(digits)
    half = 5 * pow10(digits - 1)
    if lost == 0:
        return LF_EXACTLY_ZERO
    if lost < half:
        return LF_LESS_THAN_HALF
    if lost == half:
        return LF_EXACTLY_HALF
    return LF_MORE_THAN_HALF


def shift_right(coefficient, digits):
    '''Return the coefficient shifted right a given number of decimal digits (left if digits
    is negative), and the fraction that is lost doing so.
    '''
    if digits <= 0:
        return coefficient * pow10(-digits), LF_EXACTLY_ZERO
    lost_fraction = lost_digits_from_shift(coefficient, digits)
    if digits > digit_count(coefficient):
        return 0, lost_fraction
    return coefficient // pow10(digits), lost_fraction


def round_up(rounding, lost_fraction, sign, last_digit):
    '''Return True if, when an operation is inexact, the result should be rounded up (i.e.,
    away from zero by incrementing the coefficient).

    sign is the sign of the number, and last_digit is the least significant digit of the
    truncated coefficient, which is needed for ties-to-even and 05up rounding.
    '''
    if lost_fraction == LF_EXACTLY_ZERO:
        return False

    if rounding == ROUND_HALF_EVEN:
        if lost_fraction == LF_EXACTLY_HALF:
            return bool(last_digit & 1)
        else:
            return lost_fraction == LF_MORE_THAN_HALF
    elif rounding == ROUND_HALF_UP:
        return lost_fraction != LF_LESS_THAN_HALF
    elif rounding == ROUND_HALF_DOWN:
        return lost_fraction == LF_MORE_THAN_HALF
    elif rounding == ROUND_CEILING:
        return not sign
    elif rounding == ROUND_FLOOR:
        return sign
    elif rounding == ROUND_DOWN:
        return False
    elif rounding == ROUND_UP:
        return True
    elif rounding == ROUND_05UP:
        return last_digit in (0, 5)
    raise ValueError(f'unknown rounding: {rounding!r}')


def round_coefficient(sign, coefficient, digits, rounding):
    '''Discard the given number of low digits of the coefficient, rounding the rest.  Returns a
    pair (coefficient, lost_fraction).  The rounded coefficient can gain a digit when
    all retained digits are nines.'''
    coefficient, lost_fraction = shift_right(coefficient, digits)
    if round_up(rounding, lost_fraction, sign, coefficient % 10):
        coefficient += 1
    return coefficient, lost_fraction


def rescale(value, exponent, rounding):
    '''Return a pair (value, lost_fraction) where value has the given exponent, rounding its
    coefficient if the exponent increases.  Range is not checked.'''
    if not value.coefficient:
        return Decimal(value.sign, 0, exponent), LF_EXACTLY_ZERO
    coefficient, lost_fraction = round_coefficient(value.sign, value.coefficient,
                                                   exponent - value.exponent, rounding)
    return Decimal(value.sign, coefficient, exponent), lost_fraction


def check_digits(digits):
    '''Stop computations whose coefficients would exceed the engine's size limit.'''
    if digits > MAX_COEFFICIENT_DIGITS:
        raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)


def check_exponent(exponent):
    '''Stop computations whose exponents leave the engine's range.'''
    if exponent > MAX_INTERNAL_EXPONENT:
        raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)
    if exponent < MIN_INTERNAL_EXPONENT:
        raise EngineLimitExceeded(Flags.SYSTEM_UNDERFLOW)


def largest_finite(sign, context, digits):
    '''Return the finite number of greatest magnitude in the context with the given sign.
    digits is the digit count to use when the precision is unbounded.'''
    precision = context.precision or digits
    return Decimal(sign, pow10(precision) - 1, context.max_exponent - precision + 1)


def finalize(sign, coefficient, exponent, context, tracker):
    '''Return a Decimal that is the value

           (-1)^sign * coefficient * 10^exponent

    rounded to the precision of the context and fitted to its exponent range, raising the
    conditions that incurs in tracker.  The exponent may lie outside the engine's range;
    such values overflow or underflow like any other.
    '''
    etiny = context.etiny()
    etop = context.etop()

    # A zero keeps its exponent if that is in range, otherwise it is clamped
    if not coefficient:
        exp_max = etop if context.clamp else context.max_exponent
        new_exponent = min(max(exponent, etiny), exp_max)
        if new_exponent != exponent:
            tracker.raise_flags(Flags.CLAMPED)
        return Decimal(sign, 0, new_exponent)

    digits = digit_count(coefficient)
    check_digits(digits)
    precision = context.precision
    # Without a precision there is nothing to round to below the engine's range
    if not precision and exponent < MIN_INTERNAL_EXPONENT:
        raise EngineLimitExceeded(Flags.SYSTEM_UNDERFLOW)
    adjusted = exponent + digits - 1

    if adjusted > context.max_exponent:
        tracker.raise_flags(Flags.OVERFLOW | Flags.INEXACT | Flags.ROUNDED)
        return largest_finite(sign, context, digits)

    is_subnormal = adjusted < context.min_exponent

    # exp_min is the smallest exponent the result can have
    if precision:
        exp_min = max(adjusted - precision + 1, etiny)
    else:
        exp_min = etiny

    if exponent < exp_min:
        coefficient, lost_fraction = round_coefficient(sign, coefficient, exp_min - exponent,
                                                       context.rounding)
        if coefficient == pow10(precision):
            coefficient //= 10
            exp_min += 1
        is_inexact = lost_fraction != LF_EXACTLY_ZERO

        flags = Flags.ROUNDED
        if exp_min > etop:
            flags |= Flags.OVERFLOW | Flags.INEXACT
            result = largest_finite(sign, context, digits)
        else:
            result = Decimal(sign, coefficient, exp_min)
        if is_subnormal:
            flags |= Flags.SUBNORMAL
            if is_inexact:
                flags |= Flags.UNDERFLOW
        if is_inexact:
            flags |= Flags.INEXACT
        # Underflow to zero
        if not result.coefficient:
            flags |= Flags.CLAMPED
        tracker.raise_flags(flags)
        return result

    if is_subnormal:
        tracker.raise_flags(Flags.SUBNORMAL)

    # Fold down if clamping and the exponent is too big for the precision
    if context.clamp and exponent > etop:
        tracker.raise_flags(Flags.CLAMPED)
        return Decimal(sign, coefficient * pow10(exponent - etop), etop)

    return Decimal(sign, coefficient, exponent)
