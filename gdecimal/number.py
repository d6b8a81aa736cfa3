#
# The decimal value type and the big-integer glue it depends on
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#
# This file includes code adapted from CPython's pure python decimal implementation:
# https://raw.githubusercontent.com/python/cpython/3.12/Lib/_pydecimal.py
#
# The shared source code is licensed under the PSF license and is
# copyright © 2001-2024 Python Software Foundation; All Rights Reserved
#

import sys
from collections import namedtuple
from fractions import Fraction
from functools import lru_cache


__all__ = ('Decimal', 'DecimalTuple', 'MAX_INTERNAL_EXPONENT', 'MIN_INTERNAL_EXPONENT',
           'MAX_COEFFICIENT_DIGITS')


# Engine limits.  Exponents are confined to a signed 32-bit range and intermediate
# coefficients to this many digits.
MAX_INTERNAL_EXPONENT = (1 << 31) - 1
MIN_INTERNAL_EXPONENT = -(1 << 31)
MAX_COEFFICIENT_DIGITS = 1 << 20

# Python refuses str <-> int conversions beyond 4300 digits by default.  Convert in
# pieces below that.
_STR_CHUNK_DIGITS = 4000
_STR_CHUNK_BITS = 13000

DecimalTuple = namedtuple('DecimalTuple', 'sign coefficient exponent')


# Powers of ten up to this are cached
_POW10_CACHE_LIMIT = 4096

# Python hashes numbers modulo this prime
_HASH_MODULUS = sys.hash_info.modulus
_HASH_10INV = pow(10, _HASH_MODULUS - 2, _HASH_MODULUS)


@lru_cache(maxsize=256)
def _small_pow10(n):
    return 10 ** n


def pow10(n):
    '''Return 10 ** n for non-negative n.'''
    if n <= _POW10_CACHE_LIMIT:
        return _small_pow10(n)
    return 10 ** n


def digit_count(n):
    '''Return the number of decimal digits of the non-negative integer n; 1 for zero.'''
    if n < 10:
        return 1
    # 1233 / 4096 is just below log10(2) so this never overestimates
    count = ((n.bit_length() - 1) * 1233) >> 12
    while n >= pow10(count + 1):
        count += 1
    return count + 1


def int_to_str(n):
    '''Return the decimal digits of the non-negative integer n.'''
    if n.bit_length() < _STR_CHUNK_BITS:
        return str(n)
    low_digits = digit_count(n) // 2
    high, low = divmod(n, pow10(low_digits))
    return int_to_str(high) + int_to_str(low).zfill(low_digits)


def str_to_int(digits):
    '''Return the integer value of a string of decimal digits.'''
    if len(digits) <= _STR_CHUNK_DIGITS:
        return int(digits)
    low_digits = len(digits) // 2
    return (str_to_int(digits[:-low_digits]) * pow10(low_digits)
            + str_to_int(digits[-low_digits:]))


def div_nearest(a, b):
    '''Return the integer nearest a / b, ties to even.  b must be positive.'''
    q, r = divmod(a, b)
    return q + (2 * r + (q & 1) > b)


def trailing_zeros(n, limit):
    '''Return the number of trailing zero digits of the positive integer n, at most
    limit.'''
    if limit <= 0:
        return 0
    digits = int_to_str(n)
    return min(len(digits) - len(digits.rstrip('0')), limit)


def strip_trailing_zeros(coefficient, exponent, limit):
    '''Remove up to limit trailing zero digits from a non-zero coefficient, adjusting the
    exponent to preserve the value.  Returns a (coefficient, exponent) pair.'''
    zeros = trailing_zeros(coefficient, limit)
    if zeros:
        coefficient //= pow10(zeros)
        exponent += zeros
    return coefficient, exponent


def exact_reciprocal_scale(divisor):
    '''If 1 / divisor terminates in decimal return a pair (multiplier, digits) such that 1 /
    divisor == multiplier * 10^-digits.  Otherwise return None.'''
    twos = (divisor & -divisor).bit_length() - 1
    rest = divisor >> twos
    fives = 0
    while rest % 5 == 0:
        rest //= 5
        fives += 1
    if rest != 1:
        return None
    digits = max(twos, fives)
    return (1 << (digits - twos)) * 5 ** (digits - fives), digits


def compare_values(lhs, rhs):
    '''Return -1, 0 or 1 as the value of lhs is less than, equal to or greater than that of
    rhs.  Neither value is rounded and exponents may differ.'''
    if not lhs.coefficient:
        if not rhs.coefficient:
            return 0
        return 1 if rhs.sign else -1
    if not rhs.coefficient:
        return -1 if lhs.sign else 1
    if lhs.sign != rhs.sign:
        return -1 if lhs.sign else 1

    result = compare_magnitudes(lhs, rhs)
    return -result if lhs.sign else result


def compare_magnitudes(lhs, rhs):
    '''Compare the absolute values of two non-zero decimals.'''
    lhs_adjusted = lhs.adjusted()
    rhs_adjusted = rhs.adjusted()
    if lhs_adjusted != rhs_adjusted:
        return 1 if lhs_adjusted > rhs_adjusted else -1

    # Equal adjusted exponents bound the alignment shift by the digit counts.
    lhs_coefficient = lhs.coefficient
    rhs_coefficient = rhs.coefficient
    shift = lhs.exponent - rhs.exponent
    if shift > 0:
        lhs_coefficient *= pow10(shift)
    else:
        rhs_coefficient *= pow10(-shift)
    return (lhs_coefficient > rhs_coefficient) - (lhs_coefficient < rhs_coefficient)


def _current_context():
    from .context import get_context
    return get_context()


class Decimal(namedtuple('Decimal', 'sign coefficient exponent')):
    '''A finite decimal number.

    The value is (-1)^sign * coefficient * 10^exponent.  Nothing is normalized: trailing
    zeroes of the coefficient are significant, so 1.0 and 1.00 are different Decimals
    of equal value, and a zero keeps both its sign and its exponent.

    Decimals are immutable.  Operations live on a Context and return new values, so an
    operand is never altered by an operation.
    '''

    __slots__ = ()

    def __new__(cls, sign, coefficient, exponent):
        '''Validate and create a decimal with the given sign, coefficient and exponent.'''
        if not isinstance(coefficient, int):
            raise TypeError('coefficient must be an integer')
        if not isinstance(exponent, int):
            raise TypeError('exponent must be an integer')
        if coefficient < 0:
            raise ValueError(f'coefficient {coefficient:,d} cannot be negative')
        if not MIN_INTERNAL_EXPONENT <= exponent <= MAX_INTERNAL_EXPONENT:
            raise ValueError(f'exponent {exponent:,d} out of range')
        return super().__new__(cls, bool(sign), coefficient, exponent)

    @classmethod
    def from_int(cls, value):
        '''Return the integer value exactly, with exponent zero.'''
        if not isinstance(value, int):
            raise TypeError('value must be an integer')
        return cls(value < 0, abs(value), 0)

    @classmethod
    def from_string(cls, text, context=None):
        '''Parse text in the given context, or the current one.  Trapped conditions are
        raised; otherwise the flags are discarded.'''
        context = context or _current_context()
        return context.parse(text).value

    ##
    ## Non-computational operations
    ##

    def as_tuple(self):
        '''Return a DecimalTuple (sign, coefficient, exponent).  Unlike Decimals, these
        compare by representation.'''
        return DecimalTuple(self.sign, self.coefficient, self.exponent)

    def digits(self):
        '''Return the number of digits in the coefficient.'''
        return digit_count(self.coefficient)

    def adjusted(self):
        '''Return the exponent of the most significant digit.'''
        return self.exponent + digit_count(self.coefficient) - 1

    def is_zero(self):
        return not self.coefficient

    def is_negative(self):
        '''Return True if the sign is set; this is so for negative zeroes too.'''
        return self.sign

    def is_integral(self):
        '''Return True if the value is an integer.'''
        if self.exponent >= 0 or not self.coefficient:
            return True
        return trailing_zeros(self.coefficient, -self.exponent) == -self.exponent

    def as_integer_ratio(self):
        '''Return a pair (n, d) of integers with d positive and n / d equal to the value, in
        lowest terms.'''
        if self.exponent >= 0:
            numerator, denominator = self.coefficient * pow10(self.exponent), 1
        else:
            ratio = Fraction(self.coefficient, pow10(-self.exponent))
            numerator, denominator = ratio.numerator, ratio.denominator
        return (-numerator if self.sign else numerator), denominator

    def copy_abs(self):
        return self._replace(sign=False)

    def copy_negate(self):
        return self._replace(sign=not self.sign)

    def compare(self, other):
        '''Return -1, 0 or 1 comparing the values of self and other.  Exponents are aligned
        without rounding so 1.0 compares equal to 1.00.'''
        if not isinstance(other, Decimal):
            raise TypeError('can only compare with another Decimal')
        return compare_values(self, other)

    def __repr__(self):
        return f"Decimal('{self}')"

    def __str__(self):
        from .text import to_sci
        return to_sci(self)

    ##
    ## Python protocol
    ##

    def _compare_any(self, other):
        if isinstance(other, Decimal):
            return compare_values(self, other)
        if isinstance(other, int) and not isinstance(other, bool):
            return compare_values(self, Decimal.from_int(other))
        return None

    def __eq__(self, other):
        compare = self._compare_any(other)
        if compare is None:
            return NotImplemented
        return compare == 0

    def __ne__(self, other):
        compare = self._compare_any(other)
        if compare is None:
            return NotImplemented
        return compare != 0

    def __lt__(self, other):
        compare = self._compare_any(other)
        if compare is None:
            return NotImplemented
        return compare < 0

    def __le__(self, other):
        compare = self._compare_any(other)
        if compare is None:
            return NotImplemented
        return compare <= 0

    def __gt__(self, other):
        compare = self._compare_any(other)
        if compare is None:
            return NotImplemented
        return compare > 0

    def __ge__(self, other):
        compare = self._compare_any(other)
        if compare is None:
            return NotImplemented
        return compare >= 0

    def __hash__(self):
        '''Python hash.  Equal values hash equally, as do equal ints and Fractions.  The
        hash is taken modulo the hash prime so the value is never built in full.'''
        if self.exponent >= 0:
            exp_hash = pow(10, self.exponent, _HASH_MODULUS)
        else:
            exp_hash = pow(_HASH_10INV, -self.exponent, _HASH_MODULUS)
        result = self.coefficient * exp_hash % _HASH_MODULUS
        if self.sign:
            result = -result
        return -2 if result == -1 else result

    def __bool__(self):
        return bool(self.coefficient)

    def __int__(self):
        '''Truncate towards zero.'''
        if self.exponent >= 0:
            result = self.coefficient * pow10(self.exponent)
        else:
            result = self.coefficient // pow10(-self.exponent)
        return -result if self.sign else result

    __trunc__ = __int__

    def __neg__(self):
        return _current_context().minus(self).value

    def __pos__(self):
        return _current_context().plus(self).value

    def __abs__(self):
        return _current_context().abs(self).value

    def _convert_other(self, other):
        if isinstance(other, Decimal):
            return other
        if isinstance(other, int) and not isinstance(other, bool):
            return Decimal.from_int(other)
        return None

    def __add__(self, other):
        other = self._convert_other(other)
        if other is None:
            return NotImplemented
        return _current_context().add(self, other).value

    def __radd__(self, other):
        return self.__add__(other)

    def __sub__(self, other):
        other = self._convert_other(other)
        if other is None:
            return NotImplemented
        return _current_context().subtract(self, other).value

    def __rsub__(self, other):
        other = self._convert_other(other)
        if other is None:
            return NotImplemented
        return _current_context().subtract(other, self).value

    def __mul__(self, other):
        other = self._convert_other(other)
        if other is None:
            return NotImplemented
        return _current_context().multiply(self, other).value

    def __rmul__(self, other):
        return self.__mul__(other)

    def __truediv__(self, other):
        other = self._convert_other(other)
        if other is None:
            return NotImplemented
        return _current_context().divide(self, other).value

    def __rtruediv__(self, other):
        other = self._convert_other(other)
        if other is None:
            return NotImplemented
        return _current_context().divide(other, self).value
