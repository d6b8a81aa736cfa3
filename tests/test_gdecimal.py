import os
import threading
from fractions import Fraction
from itertools import product

import attr
import pytest

from gdecimal import *
from gdecimal.flags import exception_class, EngineLimitExceeded
from gdecimal.rounding import round_coefficient, shift_right, LF_EXACTLY_HALF
from gdecimal.number import pow10, _small_pow10
from gdecimal.text import parse
from gdecimal import transcendental
from gdecimal.transcendental import integer_root, ln10_digits


all_roundings = (ROUND_CEILING, ROUND_FLOOR, ROUND_DOWN, ROUND_UP,
                 ROUND_HALF_EVEN, ROUND_HALF_UP, ROUND_HALF_DOWN, ROUND_05UP)

# Operands are taken exactly as written
exact_context = Context(precision=0, max_exponent=MAX_INTERNAL_EXPONENT,
                        min_exponent=MIN_INTERNAL_EXPONENT, traps=Flags(0))


def D(text):
    return exact_context.parse(text).value


def read_lines(filename):
    result = []
    with open(os.path.join(os.path.dirname(__file__), 'data', filename)) as f:
        for line in f:
            hash_pos = line.find('#')
            if hash_pos != -1:
                line = line[:hash_pos]
            line = line.strip()
            if line:
                result.append(line)
    return result


def read_cases(filename):
    '''Return pytest params of (settings, line) for each case line of a corpus file.
    Directive lines set what applies to the case lines that follow.'''
    settings = {}
    result = []
    for line in read_lines(filename):
        if '->' not in line:
            key, value = line.split(':', 1)
            settings[key.strip().lower()] = value.strip()
            continue
        result.append(pytest.param(dict(settings), line, id=line.split()[0]))
    return result


operations = {
    'add': Context.add,
    'subtract': Context.subtract,
    'multiply': Context.multiply,
    'divide': Context.divide,
    'divideint': Context.divide_integer,
    'remainder': Context.remainder,
    'abs': Context.abs,
    'minus': Context.minus,
    'plus': Context.plus,
    'compare': Context.compare,
    'quantize': Context.quantize,
    'reduce': Context.reduce,
    'tointegral': Context.to_integral,
    'tointegralx': Context.to_integral_exact,
    'exp': Context.exp,
    'ln': Context.ln,
    'log10': Context.log10,
    'squareroot': Context.sqrt,
    'cbrt': Context.cbrt,
    'power': Context.power,
    'apply': Context.parse,
}


def run_case(settings, line):
    tokens = line.split()
    arrow = tokens.index('->')
    op, operands = tokens[1].lower(), tokens[2:arrow]
    expected, conditions = tokens[arrow + 1], tokens[arrow + 2:]
    flags = Flags.from_names(conditions)
    extended = settings.get('extended', '1') != '0'

    if op in ('tosci', 'toeng'):
        value = D(operands[0])
        result = to_sci(value, extended) if op == 'tosci' else to_eng(value)
        assert result == unquote(expected)
        assert not flags
        return

    context = Context.from_settings(settings)
    if op != 'apply':
        operands = [D(operand) for operand in operands]
    operation = operations[op]

    if expected == '?':
        with pytest.raises(DecimalError) as e:
            operation(context, *operands)
        assert e.value.flags == flags
        assert isinstance(e.value, exception_class(flags & context.traps))
        return

    result = operation(context, *operands)
    assert to_sci(result.value, extended) == unquote(expected)
    assert result.flags == flags


class TestCorpus:

    @pytest.mark.parametrize('settings, line', read_cases('add.txt'))
    def test_add(self, settings, line):
        run_case(settings, line)

    @pytest.mark.parametrize('settings, line', read_cases('subtract.txt'))
    def test_subtract(self, settings, line):
        run_case(settings, line)

    @pytest.mark.parametrize('settings, line', read_cases('multiply.txt'))
    def test_multiply(self, settings, line):
        run_case(settings, line)

    @pytest.mark.parametrize('settings, line', read_cases('divide.txt')
                             + read_cases('divideint.txt') + read_cases('remainder.txt'))
    def test_division(self, settings, line):
        run_case(settings, line)

    @pytest.mark.parametrize('settings, line', read_cases('unary.txt')
                             + read_cases('compare.txt'))
    def test_unary_and_compare(self, settings, line):
        run_case(settings, line)

    @pytest.mark.parametrize('settings, line', read_cases('quantize.txt')
                             + read_cases('reduce.txt') + read_cases('tointegral.txt'))
    def test_quantize_reduce_integral(self, settings, line):
        run_case(settings, line)

    @pytest.mark.parametrize('settings, line', read_cases('sqrt.txt')
                             + read_cases('exp.txt') + read_cases('power.txt'))
    def test_transcendental(self, settings, line):
        run_case(settings, line)

    @pytest.mark.parametrize('settings, line', read_cases('tosci.txt')
                             + read_cases('apply.txt'))
    def test_text(self, settings, line):
        run_case(settings, line)


class TestFlags:

    def test_names(self):
        flags = Flags.INEXACT | Flags.ROUNDED | Flags.DIVISION_BY_ZERO
        assert flags.names() == ['inexact', 'rounded', 'division_by_zero']
        assert str(flags) == 'inexact, rounded, division_by_zero'
        assert str(Flags(0)) == ''

    @pytest.mark.parametrize('names', (
        'Inexact Rounded', 'inexact, rounded', ['INEXACT', 'rounded'],
    ))
    def test_from_names(self, names):
        assert Flags.from_names(names) == Flags.INEXACT | Flags.ROUNDED

    def test_from_names_round_trip(self):
        every = Flags(0)
        for flag in Flags:
            every |= flag
        assert Flags.from_names(str(every)) == every

    def test_from_names_bad(self):
        with pytest.raises(ValueError):
            Flags.from_names('inexact lost_digits')

    def test_tracker(self):
        tracker = ConditionTracker()
        assert not tracker.incurred(Flags.INEXACT)
        tracker.raise_flags(Flags.INEXACT)
        tracker.raise_flags(Flags.ROUNDED)
        assert tracker.flags == Flags.INEXACT | Flags.ROUNDED
        assert tracker.incurred(Flags.ROUNDED | Flags.CLAMPED)

    def test_precedence(self):
        assert exception_class(Flags.INEXACT | Flags.OVERFLOW) is Overflow
        assert exception_class(Flags.SUBNORMAL | Flags.SYSTEM_UNDERFLOW) is SystemUnderflow
        assert exception_class(Flags.DIVISION_BY_ZERO
                               | Flags.DIVISION_UNDEFINED) is DivisionUndefined
        with pytest.raises(ValueError):
            exception_class(Flags(0))

    def test_hierarchy(self):
        assert issubclass(DivisionByZero, ZeroDivisionError)
        assert issubclass(Underflow, RangeError)
        assert issubclass(Rounded, PrecisionLoss)
        assert issubclass(SystemOverflow, EngineGuardFailure)
        for cls in (InvalidOperation, Overflow, Inexact, DivisionImpossible, SystemOverflow):
            assert issubclass(cls, DecimalError)
            assert issubclass(cls, ArithmeticError)


class TestDecimal:

    @pytest.mark.parametrize('args, exc', (
        ((False, -1, 0), ValueError),
        ((False, 1.0, 0), TypeError),
        ((False, 1, '0'), TypeError),
        ((False, 1, MAX_INTERNAL_EXPONENT + 1), ValueError),
        ((False, 1, MIN_INTERNAL_EXPONENT - 1), ValueError),
    ))
    def test_bad_construction(self, args, exc):
        with pytest.raises(exc):
            Decimal(*args)

    def test_sign_is_bool(self):
        assert Decimal(1, 5, 0).sign is True
        assert Decimal(0, 5, 0).sign is False

    @pytest.mark.parametrize('text, digits, adjusted', (
        ('0', 1, 0),
        ('0.00', 1, -2),
        ('123', 3, 2),
        ('1.23E+5', 3, 5),
        ('0.000123', 3, -4),
    ))
    def test_digits_adjusted(self, text, digits, adjusted):
        value = D(text)
        assert value.digits() == digits
        assert value.adjusted() == adjusted

    @pytest.mark.parametrize('text, result', (
        ('0', True), ('0.00', True), ('1.000', True), ('1E+5', True),
        ('1.5', False), ('-0.01', False),
    ))
    def test_is_integral(self, text, result):
        assert D(text).is_integral() is result

    def test_trailing_zeroes_significant(self):
        one = D('1.0')
        assert one.as_tuple() == (False, 10, -1)
        assert one.as_tuple() != D('1.00').as_tuple()
        assert one == D('1.00')

    def test_zero_keeps_sign_and_exponent(self):
        assert D('-0.000').as_tuple() == (True, 0, -3)
        assert D('-0') == D('0')

    def test_str_repr(self):
        value = D('-12.50')
        assert str(value) == '-12.50'
        assert repr(value) == "Decimal('-12.50')"
        assert str(Decimal(False, 1, 10)) == '1E+10'

    def test_from_int(self):
        assert Decimal.from_int(-25).as_tuple() == (True, 25, 0)
        with pytest.raises(TypeError):
            Decimal.from_int(2.5)

    def test_from_string(self):
        assert Decimal.from_string('2.50', exact_context).as_tuple() == (False, 250, -2)
        with pytest.raises(SyntaxError):
            Decimal.from_string('2.5.0', exact_context)

    def test_as_integer_ratio(self):
        assert D('-2.50').as_integer_ratio() == (-5, 2)
        assert D('1E+3').as_integer_ratio() == (1000, 1)
        assert D('0.00').as_integer_ratio() == (0, 1)

    def test_hash(self):
        assert hash(D('1.0')) == hash(D('1.000')) == hash(1)
        assert hash(D('0.5')) == hash(Fraction(1, 2))
        assert len({D('2'), D('2.0'), D('2.00')}) == 1

    def test_hash_extreme_exponents(self):
        huge = Decimal(False, 1, MAX_INTERNAL_EXPONENT)
        assert hash(huge) == hash(Decimal(False, 100, MAX_INTERNAL_EXPONENT - 2))
        assert len({huge, Decimal(False, 10, MAX_INTERNAL_EXPONENT - 1)}) == 1
        tiny = Decimal(True, 30, MIN_INTERNAL_EXPONENT)
        assert hash(tiny) == hash(Decimal(True, 3, MIN_INTERNAL_EXPONENT + 1))
        assert len({tiny, Decimal(True, 3, MIN_INTERNAL_EXPONENT + 1)}) == 1
        assert hash(Decimal(False, 7, 30)) == hash(7 * 10 ** 30)
        assert hash(Decimal(True, 25, -1)) == hash(Fraction(-5, 2))
        assert hash(D('-1')) == hash(-1)
        assert hash(D('-0.00')) == hash(0)

    def test_pow10_large_not_cached(self):
        before = _small_pow10.cache_info()
        assert pow10(20000) == 10 ** 20000
        after = _small_pow10.cache_info()
        assert (after.hits, after.misses) == (before.hits, before.misses)
        assert pow10(3) == 1000

    def test_int_bool(self):
        assert int(D('-7.9')) == -7
        assert int(D('1.2E+3')) == 1200
        assert not D('0.000')
        assert D('0.001')

    def test_ordering(self):
        assert D('1.5') < D('1.51')
        assert D('-2') < 1
        assert D('2.0') >= 2
        assert D('0') == 0
        assert D('1') != D('1.01')
        assert D('1') != 'a'

    def test_compare(self):
        assert D('1.0').compare(D('1.00')) == 0
        assert D('-1').compare(D('0')) == -1
        with pytest.raises(TypeError):
            D('1').compare(1)

    def test_copies(self):
        value = D('-3.0')
        assert value.copy_abs().as_tuple() == (False, 30, -1)
        assert value.copy_negate().as_tuple() == (False, 30, -1)
        assert value.as_tuple() == (True, 30, -1)

    def test_operators(self):
        with local_context(BasicContext):
            assert (D('1.1') + D('2.2')).as_tuple() == (False, 33, -1)
            assert (D('1') - 3).as_tuple() == (True, 2, 0)
            assert (5 - D('1')).as_tuple() == (False, 4, 0)
            assert (D('2.5') * 2).as_tuple() == (False, 50, -1)
            assert (2 * D('2.5')).as_tuple() == (False, 50, -1)
            assert str(D('1') / D('3')) == '0.333333333'
            assert str(1 / D('8')) == '0.125'
            assert str(-D('1.5')) == '-1.5'
            assert str(+D('-0')) == '0'
            assert str(abs(D('-2'))) == '2'
            with pytest.raises(DivisionByZero):
                D('1') / 0

    def test_operators_not_implemented(self):
        with pytest.raises(TypeError):
            D('1') + 1.5


class TestContext:

    def test_default_context(self):
        assert DefaultContext.precision == 0
        assert DefaultContext.max_exponent == 100000
        assert DefaultContext.min_exponent == -100000
        assert DefaultContext.rounding == ROUND_HALF_UP
        assert DefaultContext.traps == DEFAULT_TRAPS
        assert DefaultContext.clamp is False

    def test_predefined(self):
        assert BasicContext.precision == 9
        assert BasicContext.rounding == ROUND_HALF_UP
        assert ExtendedContext.precision == 9
        assert ExtendedContext.rounding == ROUND_HALF_EVEN
        assert ExtendedContext.traps == 0

    @pytest.mark.parametrize('kwargs, exc', (
        ({'precision': -1}, ValueError),
        ({'precision': 2.0}, TypeError),
        ({'precision': True}, TypeError),
        ({'max_exponent': -1}, ValueError),
        ({'min_exponent': 1}, ValueError),
        ({'rounding': 'ROUND_HALF_EVEN'}, ValueError),
        ({'traps': 3}, TypeError),
        ({'precision': 10, 'min_exponent': MIN_INTERNAL_EXPONENT}, ValueError),
    ))
    def test_validation(self, kwargs, exc):
        with pytest.raises(exc):
            Context(**kwargs)

    def test_immutable(self):
        context = Context(precision=5)
        with pytest.raises(attr.exceptions.FrozenInstanceError):
            context.precision = 6

    def test_derivation(self):
        context = Context(precision=5)
        derived = context.with_precision(20)
        assert derived.precision == 20
        assert context.precision == 5
        assert context.with_rounding(ROUND_DOWN).rounding == ROUND_DOWN
        assert context.with_traps(Flags(0)).traps == 0
        assert context.evolve(clamp=True).clamp is True
        assert context.with_precision(5) == context

    def test_etiny_etop(self):
        context = Context(precision=9, max_exponent=999, min_exponent=-999)
        assert context.etiny() == -1007
        assert context.etop() == 991
        unbounded = Context(max_exponent=999, min_exponent=-999)
        assert unbounded.etiny() == MIN_INTERNAL_EXPONENT
        assert unbounded.etop() == 999

    def test_from_settings(self):
        context = Context.from_settings({
            'Precision': '16', 'maxExponent': '384', 'minexponent': '-383',
            'rounding': 'HALF_EVEN', 'clamp': '1',
        })
        assert context == Context(precision=16, max_exponent=384, min_exponent=-383,
                                  rounding=ROUND_HALF_EVEN, clamp=True)

    def test_from_settings_traps(self):
        context = Context.from_settings({'traps': 'inexact overflow'})
        assert context.traps == Flags.INEXACT | Flags.OVERFLOW
        context = Context.from_settings({'extended': '1'})
        assert context.traps == DEFAULT_TRAPS & ~(Flags.SUBNORMAL | Flags.UNDERFLOW)
        context = Context.from_settings({'precision': 5}, base=ExtendedContext)
        assert context.traps == 0
        assert context.rounding == ROUND_HALF_EVEN

    def test_from_settings_bad(self):
        with pytest.raises(ValueError):
            Context.from_settings({'lostdigits': '1'})
        with pytest.raises(ValueError):
            Context.from_settings({'rounding': 'sideways'})

    def test_get_context(self):
        context = get_context()
        assert get_context() is context

        def target():
            results.append(get_context())

        results = []
        thread = threading.Thread(target=target)
        thread.start()
        thread.join()
        assert results == [DefaultContext]

    def test_set_context(self):
        saved = get_context()
        context = Context(precision=3)
        try:
            set_context(context)
            assert get_context() is context
        finally:
            set_context(saved)
        with pytest.raises(TypeError):
            set_context(None)

    def test_local_context(self):
        context = get_context()
        new_context = Context(rounding=ROUND_DOWN)
        with local_context(new_context) as ctx:
            assert ctx is new_context
            assert get_context() is new_context
            with local_context() as inner:
                assert inner is new_context
        assert get_context() is context

    def test_local_context_timing(self):
        # The saved context is taken on entry, not on construction
        saved = get_context()
        my_context = Context(precision=4)
        manager = local_context(Context(precision=6))
        set_context(my_context)
        try:
            with manager as ctx:
                assert ctx.precision == 6
            assert get_context() is my_context
        finally:
            set_context(saved)

    def test_operand_types(self):
        with pytest.raises(TypeError):
            BasicContext.add(D('1'), 1)
        with pytest.raises(TypeError):
            BasicContext.rescale(D('1'), 1.5)
        with pytest.raises(TypeError):
            BasicContext.parse(b'1')

    def test_compare_non_decimal(self):
        with pytest.raises(InvalidOperation):
            BasicContext.compare(D('1'), 1)
        result = ExtendedContext.compare(D('1'), 'x')
        assert result.value is None
        assert result.flags == Flags.INVALID_OPERATION


class TestRounding:

    # Rounding 12.5, 13.5, 12.4 and 12.6 and their negatives to 2 digits
    @pytest.mark.parametrize('rounding, results', (
        (ROUND_CEILING, (13, 14, 13, 13, -12, -13, -12, -12)),
        (ROUND_FLOOR, (12, 13, 12, 12, -13, -14, -13, -13)),
        (ROUND_DOWN, (12, 13, 12, 12, -12, -13, -12, -12)),
        (ROUND_UP, (13, 14, 13, 13, -13, -14, -13, -13)),
        (ROUND_HALF_EVEN, (12, 14, 12, 13, -12, -14, -12, -13)),
        (ROUND_HALF_UP, (13, 14, 12, 13, -13, -14, -12, -13)),
        (ROUND_HALF_DOWN, (12, 13, 12, 13, -12, -13, -12, -13)),
        (ROUND_05UP, (12, 13, 12, 12, -12, -13, -12, -12)),
    ))
    def test_policies(self, rounding, results):
        values = (125, 135, 124, 126)
        expected = iter(results)
        for sign, coefficient in product((False, True), values):
            result, _ = round_coefficient(sign, coefficient, 1, rounding)
            assert (-result if sign else result) == next(expected)

    @pytest.mark.parametrize('coefficient, result', (
        (101, 11), (151, 16), (161, 16), (169, 16), (501, 51), (500, 50),
    ))
    def test_05up(self, coefficient, result):
        # Away from zero only when the retained last digit is 0 or 5
        assert round_coefficient(True, coefficient, 1, ROUND_05UP)[0] == result

    def test_shift_right(self):
        assert shift_right(12345, 2) == (123, 1)
        assert shift_right(12350, 2) == (123, LF_EXACTLY_HALF)
        assert shift_right(5, 3) == (0, 1)
        assert shift_right(12, -2) == (1200, 0)

    @pytest.mark.parametrize('text, expected', (('1.25', '1.2'), ('1.35', '1.4')))
    def test_half_even(self, text, expected):
        context = Context(precision=2, rounding=ROUND_HALF_EVEN)
        result = context.plus(D(text))
        assert str(result.value) == expected
        assert result.flags == Flags.INEXACT | Flags.ROUNDED

    @pytest.mark.parametrize('rounding', all_roundings)
    def test_idempotent(self, rounding):
        context = Context(precision=5, rounding=rounding)
        value = context.plus(D('3.14159265')).value
        result = context.plus(value)
        assert result.value.as_tuple() == value.as_tuple()
        assert result.flags == 0

    def test_unknown_rounding(self):
        with pytest.raises(ValueError):
            round_coefficient(False, 15, 1, 'sideways')


class TestTraps:

    def test_signal_carries_operation(self):
        lhs, rhs = D('1'), D('0')
        with pytest.raises(DivisionByZero) as e:
            BasicContext.divide(lhs, rhs)
        assert e.value.op_tuple == ('divide', lhs, rhs)
        assert e.value.default_result.as_tuple() == (False, 0, 0)
        assert e.value.flags == Flags.DIVISION_BY_ZERO

    def test_untrapped(self):
        result = ExtendedContext.divide(D('-1'), D('0'))
        assert result.value.as_tuple() == (True, 0, 0)
        assert result.flags == Flags.DIVISION_BY_ZERO

    def test_division_undefined(self):
        with pytest.raises(DivisionUndefined):
            BasicContext.divide(D('0'), D('0'))

    def test_trap_inexact(self):
        context = BasicContext.with_traps(Flags.INEXACT)
        with pytest.raises(Inexact) as e:
            context.divide(D('2'), D('3'))
        assert str(e.value.default_result) == '0.666666667'
        assert e.value.flags == Flags.INEXACT | Flags.ROUNDED
        # Rounded alone is not trapped
        assert context.add(D('999999999'), D('1')).flags == Flags.ROUNDED

    def test_precedence(self):
        context = BasicContext.with_traps(Flags.INEXACT | Flags.OVERFLOW)
        with pytest.raises(Overflow):
            context.multiply(D('1E+99999'), D('1E+99999'))

    def test_guards_always_fatal(self):
        with pytest.raises(SystemOverflow) as e:
            ExtendedContext.parse('1E+99999999999999')
        assert e.value.default_result is None
        with pytest.raises(SystemUnderflow):
            ExtendedContext.parse('1E-2147483649')
        with pytest.raises(SystemUnderflow):
            ExtendedContext.parse('1E-99999999999999')

    def test_retry_limit_fatal(self, monkeypatch):
        monkeypatch.setattr(transcendental, '_retry_limit', lambda precision: 1)
        for op, operands in ((ExtendedContext.exp, (D('1'), )),
                             (ExtendedContext.power, (D('2'), D('0.5')))):
            with pytest.raises(SystemOverflow) as e:
                op(*operands)
            assert e.value.default_result is None
            assert e.value.flags == Flags.SYSTEM_OVERFLOW

    def test_root_limit_fatal(self, monkeypatch):
        monkeypatch.setattr(transcendental, 'integer_root',
                            lambda n, k: integer_root(n, k, limit=0))
        with pytest.raises(SystemOverflow) as e:
            ExtendedContext.sqrt(D('2'))
        assert e.value.default_result is None
        assert e.value.op_tuple == ('sqrt', D('2'))

    def test_logging(self, caplog):
        with caplog.at_level('DEBUG', logger='gdecimal.context'):
            with pytest.raises(DivisionByZero):
                BasicContext.divide(D('1'), D('0'))
        assert 'DivisionByZero' in caplog.text


class TestArithmetic:

    def test_operands_unchanged(self):
        lhs, rhs = D('123.4500'), D('-6.7E+2')
        before = (lhs.as_tuple(), rhs.as_tuple())
        context = Context(precision=3)
        for op in (context.add, context.subtract, context.multiply, context.divide,
                   context.quantize, context.power):
            try:
                op(lhs, rhs)
            except DecimalError:
                pass
        assert (lhs.as_tuple(), rhs.as_tuple()) == before

    def test_unbounded_exact(self):
        context = Context()
        assert str(context.add(D('1E+50'), D('1E-50')).value) == '1' + '0' * 50 + '.' + \
            '0' * 49 + '1'
        assert str(context.divide(D('1'), D('8')).value) == '0.125'
        assert str(context.divide(D('7'), D('1.6E+3')).value) == '0.004375'
        with pytest.raises(InvalidOperation):
            context.divide(D('1'), D('3'))

    def test_large_coefficients(self):
        # Beyond the interpreter's default int <-> str limit
        digits = '7' * 10000
        value = D(digits)
        assert str(value) == digits
        assert value.digits() == 10000
        product = Context().multiply(value, D('3')).value
        assert str(product) == '2' + '3' * 9999 + '1'

    def test_overflow_clamp(self):
        context = Context(precision=3, max_exponent=9, min_exponent=-9, traps=Flags(0))
        result = context.add(D('9.99E+9'), D('1E+7'))
        assert str(result.value) == '9.99E+9'
        assert result.flags == Flags.OVERFLOW | Flags.INEXACT | Flags.ROUNDED
        result = context.evolve(clamp=True).add(D('1E+9'), D('0E+9'))
        assert result.value.as_tuple() == (False, 100, 7)
        assert result.flags == Flags.CLAMPED
        with pytest.raises(Overflow):
            context.with_traps(DEFAULT_TRAPS).add(D('9.99E+9'), D('1E+7'))

    def test_exponent_beyond_engine_range(self):
        result = exact_context.multiply(D('1E+2000000000'), D('1E+2000000000'))
        assert result.value.as_tuple() == (False, 9, MAX_INTERNAL_EXPONENT)
        assert result.flags == Flags.OVERFLOW | Flags.INEXACT | Flags.ROUNDED
        context = Context(precision=9, min_exponent=MIN_INTERNAL_EXPONENT + 8,
                          traps=Flags(0))
        result = context.multiply(D('1E-2000000000'), D('1E-2000000000'))
        assert result.value.as_tuple() == (False, 0, MIN_INTERNAL_EXPONENT)
        assert result.flags == (Flags.SUBNORMAL | Flags.UNDERFLOW | Flags.INEXACT
                                | Flags.ROUNDED | Flags.CLAMPED)
        # Nothing to round to without a precision
        with pytest.raises(SystemUnderflow):
            exact_context.multiply(D('1E-2000000000'), D('1E-2000000000'))

    def test_rescale(self):
        context = Context(precision=9)
        result = context.rescale(D('2.17'), -1)
        assert str(result.value) == '2.2'
        assert result.flags == Flags.INEXACT | Flags.ROUNDED
        assert str(context.rescale(D('2'), -3).value) == '2.000'
        with pytest.raises(InvalidOperation):
            context.rescale(D('2'), -9)


class TestTranscendental:

    def test_power_unbounded(self):
        result = Context().power(D('2'), D('10'))
        assert str(result.value) == '1024'
        assert not result.flags & Flags.INEXACT
        assert str(Context().power(D('2'), D('-3')).value) == '0.125'
        with pytest.raises(InvalidOperation):
            Context().power(D('3'), D('-1'))
        with pytest.raises(InvalidOperation):
            Context().power(D('2'), D('0.5'))

    def test_overflow_at_engine_limit(self):
        context = Context(precision=9, max_exponent=MAX_INTERNAL_EXPONENT, traps=Flags(0))
        for result in (context.exp(D('1E+100')), context.power(D('10'), D('1E+100'))):
            assert result.value.as_tuple() == (False, 999999999, MAX_INTERNAL_EXPONENT - 8)
            assert result.flags == Flags.OVERFLOW | Flags.INEXACT | Flags.ROUNDED
        with pytest.raises(Overflow):
            context.with_traps(DEFAULT_TRAPS).exp(D('1E+100'))

    def test_underflow_at_engine_limit(self):
        context = Context(precision=9, min_exponent=MIN_INTERNAL_EXPONENT + 8,
                          traps=Flags(0))
        assert context.etiny() == MIN_INTERNAL_EXPONENT
        flags = Flags.SUBNORMAL | Flags.UNDERFLOW | Flags.INEXACT | Flags.ROUNDED
        for result in (context.exp(D('-1E+100')), context.power(D('10'), D('-1E+100'))):
            assert result.value.as_tuple() == (False, 0, MIN_INTERNAL_EXPONENT)
            assert result.flags == flags | Flags.CLAMPED
        result = context.with_rounding(ROUND_CEILING).exp(D('-1E+100'))
        assert result.value.as_tuple() == (False, 1, MIN_INTERNAL_EXPONENT)
        assert result.flags == flags
        with pytest.raises(Underflow):
            context.with_traps(DEFAULT_TRAPS).power(D('10'), D('-1E+100'))

    @pytest.mark.parametrize('precision', (1, 2, 9, 50))
    def test_sqrt_exact(self, precision):
        result = Context(precision=precision).sqrt(D('4'))
        assert str(result.value) == '2'
        assert not result.flags & Flags.INEXACT

    def test_sqrt_unbounded(self):
        assert str(Context().sqrt(D('1.44')).value) == '1.2'
        with pytest.raises(InvalidOperation):
            Context().sqrt(D('2'))

    def test_sqrt_2(self):
        result = Context(precision=10).sqrt(D('2'))
        assert str(result.value) == '1.414213562'
        assert result.flags & Flags.INEXACT

    def test_sqrt_high_precision(self):
        result = Context(precision=50).sqrt(D('2'))
        assert str(result.value) == '1.4142135623730950488016887242096980785696718753769'

    def test_exp_ln_high_precision(self):
        context = Context(precision=40, rounding=ROUND_HALF_EVEN)
        assert str(context.exp(D('1')).value) == '2.718281828459045235360287471352662497757'
        assert str(context.ln(D('10')).value) == '2.302585092994045684017991454684364207601'

    def test_unbounded_inexact_invalid(self):
        context = Context()
        for op in (context.exp, context.ln, context.log10):
            with pytest.raises(InvalidOperation):
                op(D('2'))
        assert str(context.exp(D('0')).value) == '1'
        assert str(context.ln(D('1')).value) == '0'
        assert str(context.log10(D('1E+7')).value) == '7'

    @pytest.mark.parametrize('rounding, expected', (
        (ROUND_DOWN, '2.71828182'),
        (ROUND_UP, '2.71828183'),
        (ROUND_FLOOR, '2.71828182'),
    ))
    def test_rounding_honoured(self, rounding, expected):
        context = Context(precision=9, rounding=rounding)
        assert str(context.exp(D('1')).value) == expected

    def test_cbrt_negative(self):
        result = Context(precision=9).cbrt(D('-2'))
        assert str(result.value) == '-1.25992105'

    def test_integer_root(self):
        assert integer_root(0, 3) == 0
        assert integer_root(26, 3) == 2
        assert integer_root(27, 3) == 3
        assert integer_root(10 ** 40, 2) == 10 ** 20
        assert integer_root(2 ** 300 - 1, 100) == 7
        with pytest.raises(EngineLimitExceeded) as e:
            integer_root(10 ** 40, 2, limit=1)
        assert e.value.flag == Flags.SYSTEM_OVERFLOW

    def test_ln10_digits(self):
        assert str(ln10_digits(10)) == '23025850929'
        assert str(ln10_digits(60))[:47] == '23025850929940456840179914546843642076011014886'
        with pytest.raises(ValueError):
            ln10_digits(-1)

    def test_power_screening(self):
        context = Context(precision=9, max_exponent=999, min_exponent=-999, traps=Flags(0))
        result = context.power(D('10'), D('1E+100'))
        assert str(result.value) == '9.99999999E+999'
        assert result.flags & Flags.OVERFLOW
        result = context.power(D('10'), D('-1E+100'))
        assert result.value.as_tuple() == (False, 0, -1007)
        assert result.flags & Flags.UNDERFLOW


class TestText:

    @pytest.mark.parametrize('text', (
        '', ' 1', '1 ', 'inf', 'Infinity', 'NaN', 'sNaN', '1e', 'e5', '.', '1..2', '+-1',
        '1e+', '0x10', '1_000', '١', "'1.5\"",
    ))
    def test_syntax_error(self, text):
        with pytest.raises(SyntaxError):
            exact_context.parse(text)

    @pytest.mark.parametrize('text, expected', (
        ("'1.5'", '1.5'),
        ('"2.5"', '2.5'),
        ("'it''s'", "it's"),
        ('1.5', '1.5'),
        ("'", "'"),
    ))
    def test_unquote(self, text, expected):
        assert unquote(text) == expected

    def test_parse_keeps_trailing_zeroes(self):
        assert D('1.500E-3').as_tuple() == (False, 1500, -6)
        assert D('+0.0e+00010').as_tuple() == (False, 0, 9)
        assert D('-.5').as_tuple() == (True, 5, -1)

    def test_parse_function(self):
        tracker = ConditionTracker()
        value = parse('1.23456', Context(precision=3), tracker)
        assert value.as_tuple() == (False, 123, -2)
        assert tracker.flags == Flags.INEXACT | Flags.ROUNDED

    def test_round_trip(self):
        context = Context(precision=9, max_exponent=999, min_exponent=-999)
        for text in ('0.000001234', '-1.23E+100', '1E-7', '12345.6789', '0E-10'):
            value = context.parse(text).value
            result = context.parse(to_sci(value))
            assert result.value.as_tuple() == value.as_tuple()
            assert result.flags == 0
