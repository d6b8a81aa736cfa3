#
# Decimal literals: parsing and scientific and engineering string forms
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#

import re

from .flags import Flags, EngineLimitExceeded
from .number import int_to_str, str_to_int, MAX_COEFFICIENT_DIGITS
from .rounding import finalize, check_exponent


__all__ = ('to_sci', 'to_eng', 'unquote')


# Exponents with more significant digits than this are certainly outside the engine range
_MAX_EXPONENT_DIGITS = 12


def unquote(text):
    '''Remove a matching pair of surrounding quote characters, if present.  Inside a quoted
    literal a doubled quote character stands for a single one.'''
    if len(text) >= 2 and text[0] in '\'"' and text[-1] == text[0]:
        quote = text[0]
        return text[1:-1].replace(quote * 2, quote)
    return text


def _parse_exponent(text):
    if text is None:
        return 0
    sign = text[0] == '-'
    digits = text.lstrip('+-').lstrip('0')
    if len(digits) > _MAX_EXPONENT_DIGITS:
        raise EngineLimitExceeded(Flags.SYSTEM_UNDERFLOW if sign else Flags.SYSTEM_OVERFLOW)
    exponent = int(digits or '0')
    return -exponent if sign else exponent


def parse(text, context, tracker):
    '''Convert a literal to a Decimal rounded to the context.

    A literal is an optional sign, digits with an optional decimal point, and an optional
    exponent introduced by 'e' or 'E'.  It may be wrapped in quotes.  Surrounding
    whitespace, infinities and NaNs are not accepted.  Trailing zeroes are significant.
    '''
    string = unquote(text)
    match = DEC_LITERAL_REGEX.fullmatch(string)
    if match is None:
        raise SyntaxError(f'invalid decimal literal: {text}')

    sign = match.group(1) == '-'
    # If a fraction was given the integer and fraction parts are in groups 3 and 4.
    # Otherwise the integer is in group 5.
    if match.group(3) is None:
        int_str, frac_str = match.group(5), ''
    else:
        int_str, frac_str = match.group(3), match.group(4)

    exponent = _parse_exponent(match.group(7)) - len(frac_str)
    digits = (int_str + frac_str).lstrip('0') or '0'
    if len(digits) > MAX_COEFFICIENT_DIGITS:
        raise EngineLimitExceeded(Flags.SYSTEM_OVERFLOW)
    check_exponent(exponent)

    return finalize(sign, str_to_int(digits), exponent, context, tracker)


def _format(value, engineering):
    '''Format a value as described by the GDA to-scientific-string and to-engineering-string
    operations.'''
    digits = int_to_str(value.coefficient)
    # The exponent of the digit left of the decimal point were the point after all digits
    leftdigits = value.exponent + len(digits)

    # Plain notation when the exponent is not positive and the adjusted exponent is at
    # least -6.  Otherwise one digit before the point, or one to three when engineering.
    if value.exponent <= 0 and leftdigits > -6:
        dotplace = leftdigits
    elif not engineering:
        dotplace = 1
    elif not value.coefficient:
        dotplace = (leftdigits + 1) % 3 - 1
    else:
        dotplace = (leftdigits - 1) % 3 + 1

    parts = []
    if value.sign:
        parts.append('-')
    if dotplace <= 0:
        parts.extend(('0.', '0' * -dotplace, digits))
    elif dotplace >= len(digits):
        parts.extend((digits, '0' * (dotplace - len(digits))))
    else:
        parts.extend((digits[:dotplace], '.', digits[dotplace:]))
    if leftdigits != dotplace:
        parts.append(f'E{leftdigits - dotplace:+d}')

    return ''.join(parts)


def to_sci(value, extended=True):
    '''Return the value in scientific notation.  If extended is False a zero is rendered as
    a plain 0 whatever its sign and exponent.'''
    if not extended and not value.coefficient:
        return '0'
    return _format(value, False)


def to_eng(value):
    '''Return the value in engineering notation; any exponent is a multiple of three.'''
    return _format(value, True)


DEC_LITERAL_REGEX = re.compile(
    # sign[opt]
    '([-+]?)'
    # (dec-integer[opt].fraction or dec-integer.[opt])
    '(([0-9]*)\\.([0-9]+)|([0-9]+)\\.?)'
    # e sign[opt]dec-exponent   [opt]
    '(e([-+]?[0-9]+))?',
    re.ASCII | re.IGNORECASE
)
