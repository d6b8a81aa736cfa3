from hypothesis import given, settings, strategies as st

from gdecimal import *


roundings = st.sampled_from((ROUND_CEILING, ROUND_FLOOR, ROUND_DOWN, ROUND_UP,
                             ROUND_HALF_EVEN, ROUND_HALF_UP, ROUND_HALF_DOWN, ROUND_05UP))


@st.composite
def decimals(draw, max_digits=30, max_exponent=40):
    sign = draw(st.booleans())
    coefficient = draw(st.integers(min_value=0, max_value=10 ** max_digits - 1))
    exponent = draw(st.integers(min_value=-max_exponent, max_value=max_exponent))
    return Decimal(sign, coefficient, exponent)


@st.composite
def contexts(draw):
    return Context(precision=draw(st.integers(min_value=1, max_value=40)),
                   rounding=draw(roundings), traps=Flags(0))


@given(decimals(), decimals(), contexts())
def test_add_commutes(lhs, rhs, context):
    assert context.add(lhs, rhs) == context.add(rhs, lhs)
    assert (context.add(lhs, rhs).value.as_tuple()
            == context.add(rhs, lhs).value.as_tuple())


@given(decimals(), decimals(), contexts())
def test_multiply_commutes(lhs, rhs, context):
    assert (context.multiply(lhs, rhs).value.as_tuple()
            == context.multiply(rhs, lhs).value.as_tuple())
    assert context.multiply(lhs, rhs).flags == context.multiply(rhs, lhs).flags


@given(decimals(), decimals(), contexts())
def test_operands_unchanged(lhs, rhs, context):
    before = (lhs.as_tuple(), rhs.as_tuple())
    for op in (context.add, context.subtract, context.multiply, context.divide,
               context.divide_integer, context.remainder, context.compare,
               context.quantize):
        op(lhs, rhs)
    assert (lhs.as_tuple(), rhs.as_tuple()) == before


@given(decimals(), contexts())
def test_rounding_idempotent(value, context):
    rounded = context.plus(value).value
    result = context.plus(rounded)
    assert result.value.as_tuple() == rounded.as_tuple()
    assert not result.flags & (Flags.INEXACT | Flags.ROUNDED)


@given(decimals(), st.integers(min_value=0, max_value=5))
def test_compare_ignores_exponent(value, zeros):
    padded = Decimal(value.sign, value.coefficient * 10 ** zeros, value.exponent - zeros)
    assert value.compare(padded) == 0
    assert Context().compare(value, padded).value == 0


@given(decimals(), st.booleans())
def test_text_round_trip(value, engineering):
    context = Context(traps=Flags(0))
    text = to_eng(value) if engineering else to_sci(value)
    result = context.parse(text)
    assert result.flags == 0
    assert result.value == value
    if not engineering:
        assert result.value.as_tuple() == value.as_tuple()


@given(decimals(max_digits=20, max_exponent=10), contexts())
@settings(deadline=None)
def test_sqrt_squares_back(value, context):
    value = value.copy_abs()
    root = context.with_precision(context.precision + 5).sqrt(value).value
    result = context.with_rounding(ROUND_HALF_EVEN).multiply(root, root).value
    if value:
        # Relative error of a few units in the last place
        difference = Context().subtract(result, value).value.copy_abs()
        assert not difference or difference.adjusted() <= value.adjusted() - context.precision + 1


@given(st.integers(min_value=-10 ** 20, max_value=10 ** 20),
       st.integers(min_value=0, max_value=8))
def test_power_integral_exact(base, exponent):
    if base == 0 and exponent == 0:
        return
    result = Context().power(Decimal.from_int(base), Decimal.from_int(exponent))
    assert result.value == base ** exponent
    assert not result.flags & Flags.INEXACT
