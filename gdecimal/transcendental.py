#
# Square and cube roots, exponentials, logarithms and powers
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#
# This file includes code adapted from CPython's pure python decimal implementation:
# https://raw.githubusercontent.com/python/cpython/3.12/Lib/_pydecimal.py
#
# The shared source code is licensed under the PSF license and is
# copyright © 2001-2024 Python Software Foundation; All Rights Reserved
#
# All results are computed with integer fixed-point kernels at a working precision above
# the context's, then rounded once.  A result within one unit of a rounding boundary at
# the working precision is recomputed with three more digits until it can be rounded
# correctly under any rounding policy.  Every loop has a fixed cap; reaching it raises
# EngineLimitExceeded.
#

import threading
from math import gcd

from .arith import divide, integer_value
from .flags import Flags, EngineLimitExceeded
from .number import (
    Decimal, compare_values, digit_count, div_nearest, int_to_str, str_to_int, pow10,
    strip_trailing_zeros, exact_reciprocal_scale, MAX_COEFFICIENT_DIGITS,
)
from .rounding import finalize, check_digits, check_exponent


ONE = Decimal(False, 1, 0)

# Powers with exponent integral and results up to this many digits are computed exactly.
_EXACT_POWER_DIGITS = 1000


#
# Integer kernels
#

def integer_root(n, k, limit=None):
    '''Return the integer part of the k-th root of the non-negative integer n.  limit caps
    the Newton steps; by default it is derived from the size of n and k.'''
    if n < 2:
        return n
    # Start at a power of two above the root.  Newton's method then decreases
    # monotonically onto it; linearly while more than double the root, quadratically once
    # close.
    bits = n.bit_length()
    x = 1 << -(-bits // k)
    if limit is None:
        limit = 2 * bits.bit_length() + 8 * k
    for _ in range(limit):
        y = ((k - 1) * x + n // x ** (k - 1)) // k
        if y >= x:
            return x
        x = y
    raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)


def _sqrt_nearest(n, a):
    '''Return the integer closest to the square root of the positive integer n, starting
    from the positive approximation a.'''
    b = 0
    for _ in range(2 * n.bit_length().bit_length() + 8):
        if a == b:
            return a
        b, a = a, a - -n // a >> 1
    raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)


def _rshift_nearest(x, shift):
    '''Return the integer closest to x / 2^shift, ties to even.'''
    b, q = 1 << shift, x >> shift
    return q + (2 * (x & (b - 1)) + (q & 1) > b)


def _series_terms(scale, reduction_bits):
    '''The number of series terms needed once the argument is below 2^-reduction_bits, to
    reach the precision of scale.'''
    return -(-10 * digit_count(scale) // (3 * reduction_bits))


def _ilog(x, scale, reduction_bits=8):
    '''Return an integer approximation to scale * ln(x / scale).

    For 0.1 <= x / scale <= 10 the absolute error is at most 22; for 1 <= x / scale <= 10
    it is at most 15.
    '''
    # Reduce the argument with ln(1 + y) = 2 ln(1 + y / (1 + sqrt(1 + y))) until y is
    # below 2^-reduction_bits, then sum the Taylor series of ln(1 + y).  y is held as an
    # integer approximation to 2^reductions * y * scale.
    L = reduction_bits
    y = x - scale
    reductions = 0
    while (reductions <= L and abs(y) << (L - reductions) >= scale
           or reductions > L and abs(y) >> (reductions - L) >= scale):
        if reductions > 2 * L + 16:
            raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)
        root = _sqrt_nearest(scale * (scale + _rshift_nearest(y, reductions)), scale)
        y = div_nearest((scale * y) << 1, scale + root)
        reductions += 1

    terms = _series_terms(scale, L)
    yshift = _rshift_nearest(y, reductions)
    w = div_nearest(scale, terms)
    for k in range(terms - 1, 0, -1):
        w = div_nearest(scale, k) - div_nearest(yshift * w, scale)

    return div_nearest(w * y, scale)


def _iexp(x, scale, reduction_bits=8):
    '''Return an integer approximation to scale * exp(x / scale).  For 0 <= x / scale <= 2.4
    the absolute error is at most 60.'''
    # Divide the argument by 2^R so it is below 2^-L, sum the Taylor series of
    # expm1, then square back up R times with expm1(2z) = expm1(z) * (expm1(z) + 2).
    L = reduction_bits
    R = ((x << L) // scale).bit_length()

    terms = _series_terms(scale, L)
    y = div_nearest(x, terms)
    scale_shift = scale << R
    for i in range(terms - 1, 0, -1):
        y = div_nearest(x * (scale_shift + y), scale_shift * i)

    for k in range(R - 1, -1, -1):
        scale_shift = scale << (k + 2)
        y = div_nearest(y * (y + scale_shift), scale_shift)

    return scale + y


class Ln10Digits:
    '''Digits of ln(10), computed on demand and kept.  The kept digits are truncated, not
    rounded, so every prefix is correct.'''

    def __init__(self):
        self.digits = '23025850929940456840179914546843642076011014886'
        self.lock = threading.Lock()

    def __call__(self, places):
        '''Return floor(10^places * ln(10)) for places >= 0.'''
        if places < 0:
            raise ValueError('places must be non-negative')
        with self.lock:
            if places >= len(self.digits):
                self.digits = self._compute(places)
            return str_to_int(self.digits[:places + 1])

    def _compute(self, places):
        # Compute extra digits until at least one of them is non-zero, so a run of
        # zeroes hiding a carry is never kept
        for extra in range(3, 3 * _retry_limit(places), 3):
            scale = pow10(places + extra + 2)
            digits = int_to_str(div_nearest(_ilog(10 * scale, scale), 100))
            if digits[-extra:] != '0' * extra:
                return digits.rstrip('0')[:-1]
        raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)


ln10_digits = Ln10Digits()


def _split_exponent(coefficient, exponent):
    '''Return f such that coefficient * 10^exponent is d * 10^f with either f >= 0 and 1 <= d
    <= 10, or f <= 0 and 0.1 <= d <= 1.'''
    leading = exponent + digit_count(coefficient)
    return leading - (leading >= 1)


def _scaled_coefficient(coefficient, exponent, places, f):
    '''Return coefficient * 10^(exponent + places - f), rounded to an integer.'''
    k = exponent + places - f
    if k >= 0:
        return coefficient * pow10(k)
    return div_nearest(coefficient, pow10(-k))


def _dlog10(coefficient, exponent, places):
    '''Return an integer approximation to 10^places * log10(coefficient * 10^exponent) with
    an absolute error of at most 1.  The value must not be exactly 1.'''
    places += 2
    f = _split_exponent(coefficient, exponent)

    if places > 0:
        scale = pow10(places)
        c = _scaled_coefficient(coefficient, exponent, places, f)
        log_d = _ilog(c, scale)
        log_d = div_nearest(log_d * scale, ln10_digits(places))
        log_tenpower = f * scale
    else:
        log_d = 0
        log_tenpower = div_nearest(f, pow10(-places))

    return div_nearest(log_tenpower + log_d, 100)


def _dlog(coefficient, exponent, places):
    '''Return an integer approximation to 10^places * ln(coefficient * 10^exponent) with an
    absolute error of at most 1.  The value must not be exactly 1.'''
    places += 2
    f = _split_exponent(coefficient, exponent)

    if places > 0:
        c = _scaled_coefficient(coefficient, exponent, places, f)
        log_d = _ilog(c, pow10(places))
    else:
        log_d = 0

    if f:
        extra = digit_count(abs(f)) - 1
        if places + extra >= 0:
            f_log_ten = div_nearest(f * ln10_digits(places + extra), pow10(extra))
        else:
            f_log_ten = 0
    else:
        f_log_ten = 0

    return div_nearest(f_log_ten + log_d, 100)


def _dexp(coefficient, exponent, digits):
    '''Return a pair (d, f) of integers such that d * 10^f approximates exp(coefficient *
    10^exponent), where 10^(digits-1) <= d <= 10^digits and the error in d is at most 1.
    coefficient may be negative.'''
    digits += 2

    # ln(10) with extra precision for the size of the argument
    extra = max(0, exponent + digit_count(abs(coefficient)) - 1)
    q = digits + extra

    # Write the argument as quot * ln(10) + rem with quot an integer
    shift = exponent + q
    if shift >= 0:
        cshift = coefficient * pow10(shift)
    else:
        cshift = coefficient // pow10(-shift)
    quot, rem = divmod(cshift, ln10_digits(q))
    rem = div_nearest(rem, pow10(extra))

    return div_nearest(_iexp(rem, pow10(digits)), 1000), quot - digits + 3


def _dpower(xc, xe, yc, ye, digits):
    '''Return a pair (c, e) of integers such that c * 10^e approximates (xc * 10^xe) ^ (yc *
    10^ye), where 10^(digits-1) <= c <= 10^digits and the error in c is at most 1.  The
    base must be positive and not 1; yc must not be zero.'''
    # 10^(b-1) <= |y| <= 10^b
    b = digit_count(abs(yc)) + ye

    # ln(x) to digits + b + 1 places
    lxc = _dlog(xc, xe, digits + b + 1)

    # y * ln(x) to digits + 1 places
    shift = ye - b
    if shift >= 0:
        pc = lxc * yc * pow10(shift)
    else:
        pc = div_nearest(lxc * yc, pow10(-shift))

    if pc == 0:
        # Prefer a result that is not exactly 1 so that it rounds correctly
        if (digit_count(xc) + xe >= 1) == (yc > 0):
            return pow10(digits - 1) + 1, 1 - digits
        return pow10(digits) - 1, -digits

    coefficient, exponent = _dexp(pc, -(digits + 1), digits + 1)
    return div_nearest(coefficient, 10), exponent + 1


def _retry_limit(precision):
    '''The number of three-digit precision increases allowed before giving up.'''
    return precision // 3 + 24


def _is_roundable(coefficient, precision):
    '''Return True if an approximation with an error of at most 1 in its last place rounds the
    same way as the true value under every rounding policy.'''
    return coefficient % (5 * pow10(digit_count(coefficient) - precision - 1)) != 0


#
# Bounds
#

def _ln_exp_bound(value):
    '''Return r such that ln(value) >= 10^r.  value must be positive and not 1.'''
    adjusted = value.adjusted()
    if adjusted >= 1:
        # 2.3 bounds ln(10) below
        return digit_count(adjusted * 23 // 10) - 1
    if adjusted <= -2:
        return digit_count((-1 - adjusted) * 23 // 10) - 1
    c, e = value.coefficient, value.exponent
    if adjusted == 0:
        # 1 < value < 10, and 1 - 1/x <= ln(x)
        num = int_to_str(c - pow10(-e))
        den = int_to_str(c)
        return len(num) - len(den) - (num < den)
    # 0.1 <= value < 1
    return e + digit_count(pow10(-e) - c) - 1


def _log10_exp_bound(value):
    '''Return r such that log10(value) >= 10^r.  value must be positive and not 1.'''
    adjusted = value.adjusted()
    if adjusted >= 1:
        return digit_count(adjusted) - 1
    if adjusted <= -2:
        return digit_count(-1 - adjusted) - 1
    c, e = value.coefficient, value.exponent
    if adjusted == 0:
        # 1 < value < 10; |log10(x)| > (1 - 1/x) / 2.31
        num = int_to_str(c - pow10(-e))
        den = int_to_str(231 * c)
        return len(num) - len(den) - (num < den) + 2
    # 0.1 <= value < 1; |log10(x)| > (1 - x) / 2.31
    num = int_to_str(pow10(-e) - c)
    return len(num) + e - (num < '231') - 1


#
# Operations
#

def _invalid(tracker, sign=False):
    tracker.raise_flags(Flags.INVALID_OPERATION)
    return Decimal(sign, 0, 0)


def _root(value, degree, context, tracker):
    '''Return the degree-th root of a non-negative value.'''
    sign = value.sign
    ideal_exp = value.exponent // degree
    if not value.coefficient:
        return finalize(sign, 0, ideal_exp, context, tracker)

    # Make the exponent a multiple of the degree
    coefficient = value.coefficient * pow10(value.exponent - ideal_exp * degree)
    exponent = ideal_exp
    precision = context.precision

    if not precision:
        root = integer_root(coefficient, degree)
        if root ** degree != coefficient:
            return _invalid(tracker, sign)
        return finalize(sign, root, exponent, context, tracker)

    # Scale the coefficient by a power of 10^degree so its root has precision + 1 digits
    root_digits = -(-digit_count(coefficient) // degree)
    shift = precision + 1 - root_digits
    if shift >= 0:
        check_digits(digit_count(coefficient) + degree * shift)
        coefficient *= pow10(degree * shift)
        exact = True
    else:
        coefficient, rest = divmod(coefficient, pow10(-degree * shift))
        exact = not rest
    exponent -= shift

    root = integer_root(coefficient, degree)
    if exact and root ** degree == coefficient:
        # Exact; rescale to the ideal exponent
        if shift >= 0:
            root //= pow10(shift)
        else:
            root *= pow10(-shift)
        exponent += shift
    elif root % 5 == 0:
        # Make the lowest digit sticky
        root += 1

    return finalize(sign, root, exponent, context, tracker)


def sqrt(value, context, tracker):
    '''Return the square root.  Negative operands other than -0 are invalid.'''
    if value.sign and value.coefficient:
        return _invalid(tracker)
    return _root(value, 2, context, tracker)


def cbrt(value, context, tracker):
    '''Return the cube root.  The root of a negative number is negative.'''
    return _root(value, 3, context, tracker)


def exp(value, context, tracker):
    '''Return e raised to the power value.'''
    if not value.coefficient:
        return finalize(False, 1, 0, context, tracker)

    precision = context.precision
    if not precision:
        return _invalid(tracker)

    # Only a narrow range of adjusted exponents needs computing.  Below it the result is
    # indistinguishable from 1; above it the result overflows or underflows.
    adjusted = value.adjusted()
    if not value.sign and adjusted > digit_count((context.max_exponent + 1) * 3):
        coefficient, exponent = 1, context.max_exponent + 1
    elif value.sign and adjusted > digit_count((-context.etiny() + 1) * 3):
        coefficient, exponent = 1, context.etiny() - 1
    elif not value.sign and adjusted < -precision:
        # p + 1 digits; rounding raises the right flags
        coefficient, exponent = pow10(precision) + 1, -precision
    elif value.sign and adjusted < -precision - 1:
        coefficient, exponent = pow10(precision + 1) - 1, -precision - 1
    else:
        c = -value.coefficient if value.sign else value.coefficient
        for extra in range(3, 3 * _retry_limit(precision), 3):
            coefficient, exponent = _dexp(c, value.exponent, precision + extra)
            if _is_roundable(coefficient, precision):
                break
        else:
            raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)

    return finalize(False, coefficient, exponent, context, tracker)


def ln(value, context, tracker):
    '''Return the natural logarithm of a positive value.'''
    if value.sign or not value.coefficient:
        return _invalid(tracker)
    if compare_values(value, ONE) == 0:
        return finalize(False, 0, 0, context, tracker)

    precision = context.precision
    if not precision:
        return _invalid(tracker)

    places = precision - _ln_exp_bound(value) + 2
    for _ in range(_retry_limit(precision)):
        coefficient = _dlog(value.coefficient, value.exponent, places)
        if _is_roundable(abs(coefficient), precision):
            break
        places += 3
    else:
        raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)

    return finalize(coefficient < 0, abs(coefficient), -places, context, tracker)


def log10(value, context, tracker):
    '''Return the base 10 logarithm of a positive value.  Powers of ten give exact
    results.'''
    if value.sign or not value.coefficient:
        return _invalid(tracker)

    adjusted = value.adjusted()
    if value.coefficient == pow10(digit_count(value.coefficient) - 1):
        return finalize(adjusted < 0, abs(adjusted), 0, context, tracker)

    precision = context.precision
    if not precision:
        return _invalid(tracker)

    places = precision - _log10_exp_bound(value) + 2
    for _ in range(_retry_limit(precision)):
        coefficient = _dlog10(value.coefficient, value.exponent, places)
        if _is_roundable(abs(coefficient), precision):
            break
        places += 3
    else:
        raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)

    return finalize(coefficient < 0, abs(coefficient), -places, context, tracker)


def _is_odd(value):
    '''Return True if the integral value is odd.'''
    if value.exponent > 0:
        return False
    return bool((value.coefficient // pow10(-value.exponent)) & 1)


def _positive_power(coefficient, exponent, count, limit):
    '''Return (coefficient * 10^exponent) ^ count as a (coefficient, exponent) pair for a
    positive integer count and coefficient without trailing zeroes, or None if the result
    would have more than limit digits.'''
    if coefficient == 1:
        return 1, exponent * count
    if digit_count(coefficient) * count > limit:
        return None
    return coefficient ** count, exponent * count


def _exact_root(coefficient, exponent, degree):
    '''Return the exact degree-th root of coefficient * 10^exponent as a (coefficient,
    exponent) pair, or None if it is not a terminating decimal.  The coefficient must have
    no trailing zeroes.'''
    # With no trailing zeroes the coefficient cannot supply factors of ten, so the
    # exponent must divide exactly.  A perfect degree-th power of 2 or more has at least
    # degree * log10(2) digits.
    if exponent % degree:
        return None
    if coefficient != 1:
        if degree > 4 * digit_count(coefficient) + 1:
            return None
        root = integer_root(coefficient, degree)
        if root ** degree != coefficient:
            return None
        coefficient = root
    return coefficient, exponent // degree


def power(lhs, rhs, context, tracker):
    '''Return lhs raised to the power rhs.'''
    precision = context.precision

    if not rhs.coefficient:
        if not lhs.coefficient:
            return _invalid(tracker)
        return finalize(False, 1, 0, context, tracker)

    is_integral = rhs.is_integral()
    sign = False
    if lhs.sign:
        if is_integral:
            sign = _is_odd(rhs)
        elif lhs.coefficient:
            return _invalid(tracker)

    if not lhs.coefficient:
        if rhs.sign:
            tracker.raise_flags(Flags.DIVISION_BY_ZERO)
            return Decimal(sign, 0, 0)
        return finalize(sign, 0, 0, context, tracker)

    magnitude = lhs.copy_abs()
    if compare_values(magnitude, ONE) == 0:
        return _power_of_one(sign, magnitude, rhs, is_integral, context, tracker)

    if not is_integral and not precision:
        return _invalid(tracker, sign)

    # Catch extreme overflow and underflow.  If log10(x) * y >= 10^bound and bound is at
    # least the digit count of the maximum exponent, the result overflows.  Similarly
    # for underflow.
    bound = _log10_exp_bound(magnitude) + rhs.adjusted()
    if (magnitude.adjusted() >= 0) == (not rhs.sign):
        if bound >= digit_count(context.max_exponent):
            return finalize(sign, 1, context.max_exponent + 1, context, tracker)
    else:
        etiny = context.etiny()
        if bound >= digit_count(-etiny):
            return finalize(sign, 1, etiny - 1, context, tracker)

    limit = max(4 * (precision + 2), _EXACT_POWER_DIGITS) if precision else MAX_COEFFICIENT_DIGITS
    coefficient, exponent = strip_trailing_zeros(magnitude.coefficient, magnitude.exponent,
                                                 digit_count(magnitude.coefficient))

    if is_integral:
        count = integer_value(rhs)
        parts = _positive_power(coefficient, exponent, abs(count), limit)
        if parts is None:
            if not precision:
                raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)
        else:
            check_exponent(parts[1])
            if count < 0:
                return divide(Decimal(sign, 1, 0), Decimal(False, *parts), context, tracker)
            return finalize(sign, *parts, context, tracker)
    else:
        parts = _exact_fractional_power(coefficient, exponent, rhs, limit)
        if parts is not None:
            return _deliver_inexact_exact(sign, *parts, context, tracker)

    # The general case: x^y = exp(y * ln(x))
    yc = -rhs.coefficient if rhs.sign else rhs.coefficient
    for extra in range(3, 3 * _retry_limit(precision), 3):
        coefficient, exponent = _dpower(magnitude.coefficient, magnitude.exponent, yc,
                                        rhs.exponent, precision + extra)
        if _is_roundable(coefficient, precision):
            break
    else:
        raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)

    return finalize(sign, coefficient, exponent, context, tracker)


def _power_of_one(sign, magnitude, rhs, is_integral, context, tracker):
    '''Powers of a base equal to 1.  The exponent of the result depends on that of the base
    and on whether rhs is a positive integer, a negative integer, or neither.'''
    precision = context.precision
    if not is_integral:
        if not precision:
            return _invalid(tracker, sign)
        tracker.raise_flags(Flags.INEXACT | Flags.ROUNDED)
        return Decimal(sign, pow10(precision - 1), 1 - precision)

    if rhs.sign or magnitude.exponent == 0:
        exponent = 0
    elif precision and compare_values(rhs, Decimal(False, precision, 0)) > 0:
        exponent = magnitude.exponent * precision
    else:
        exponent = magnitude.exponent * integer_value(rhs)

    if precision and exponent < 1 - precision:
        exponent = 1 - precision
        tracker.raise_flags(Flags.ROUNDED)
    check_digits(-exponent)
    return finalize(sign, pow10(-exponent), exponent, context, tracker)


def _exact_fractional_power(coefficient, exponent, rhs, limit):
    '''Return the exact value of (coefficient * 10^exponent) ^ rhs, for non-integral rhs, as a
    (coefficient, exponent) pair, or None if it does not terminate.'''
    y_coefficient, y_exponent = strip_trailing_zeros(rhs.coefficient, rhs.exponent,
                                                     -rhs.exponent)
    check_digits(-y_exponent)
    denominator = pow10(-y_exponent)
    divisor = gcd(y_coefficient, denominator)
    numerator, denominator = y_coefficient // divisor, denominator // divisor

    root = _exact_root(coefficient, exponent, denominator)
    if root is None:
        return None
    parts = _positive_power(*root, numerator, limit)
    if parts is None or not rhs.sign:
        return parts

    scale = exact_reciprocal_scale(parts[0])
    if scale is None:
        return None
    multiplier, digits = scale
    return multiplier, -parts[1] - digits


def _deliver_inexact_exact(sign, coefficient, exponent, context, tracker):
    '''Deliver an exact result of a non-integral power.  These are always reported inexact,
    so pad to precision + 1 digits to ensure rounded is raised too.'''
    padding = context.precision + 1 - digit_count(coefficient)
    if padding > 0:
        coefficient *= pow10(padding)
        exponent -= padding
    result = finalize(sign, coefficient, exponent, context, tracker)
    flags = Flags.INEXACT
    if tracker.incurred(Flags.SUBNORMAL):
        flags |= Flags.UNDERFLOW
    tracker.raise_flags(flags)
    return result
