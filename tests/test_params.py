import numpy as np
import pytest

from sensible_params import (
    Constant,
    Derived,
    Free,
    IndependentPlaceholder,
    Kind,
    ValuedParameter,
    as_constant,
    as_derived,
    as_free,
    make_parameter,
)
from sensible_params.errors import FormulaSyntaxError, UnknownParameterKindError


def test_free_defaults_to_infinite_bounds_matching_value():
    p = Free("a", value=0.5)
    assert p.min == -np.inf
    assert p.max == np.inf

    v = Free("v", value=[1.0, 2.0, 3.0])
    assert isinstance(v.value, np.ndarray)
    assert len(v) == 3
    assert np.all(np.isneginf(v.min)) and v.min.shape == (3,)
    assert np.all(np.isposinf(v.max)) and v.max.shape == (3,)


def test_values_are_copied_from_caller():
    data = np.array([1.0, 2.0])
    p = Constant("c", value=data)
    data[0] = 99.0
    assert p.value[0] == 1.0


def test_two_dimensional_values_rejected():
    with pytest.raises(TypeError, match="1-D"):
        Constant("c", value=[[1.0, 2.0], [3.0, 4.0]])


def test_derived_parses_formula_and_reports_dependencies():
    p = Derived("c", formula="a + b * exp(t)")
    assert p.depends_on() == {"a", "b", "t"}
    assert np.isnan(p.value)
    assert Constant("k", value=1.0).depends_on() == frozenset()
    assert IndependentPlaceholder("x").depends_on() == frozenset()


def test_derived_with_bad_formula_raises():
    with pytest.raises(FormulaSyntaxError):
        Derived("c", formula="a +")


def test_placeholder_has_no_length():
    assert len(IndependentPlaceholder("x")) == 0
    assert not isinstance(IndependentPlaceholder("x"), ValuedParameter)
    assert all(
        isinstance(p, ValuedParameter)
        for p in (Constant("k"), Free("a"), Derived("d", formula="a"))
    )


@pytest.mark.parametrize(
    "options, cls",
    [
        ({"value": 1.0}, Free),
        ({"value": 1.0, "min": 0.0, "max": 2.0}, Free),
        ({"formula": "a * 2"}, Derived),
        ({"independent": True}, IndependentPlaceholder),
        ({"kind": "constant", "value": 1.0}, Constant),
        ({"kind": Kind.CONSTANT, "value": 1.0}, Constant),
        ({"kind": "parameter", "value": 1.0}, Free),
        ({"kind": "expression", "formula": "a"}, Derived),
        ({"kind": "independent"}, IndependentPlaceholder),
    ],
)
def test_make_parameter_kind_selection(options, cls):
    p = make_parameter("p", **options)
    assert type(p) is cls
    assert p.name == "p"


def test_make_parameter_unknown_kind():
    with pytest.raises(UnknownParameterKindError, match="Unknown parameter kind 'wobbly'"):
        make_parameter("p", kind="wobbly", value=1.0)


def test_make_parameter_derived_requires_formula():
    with pytest.raises(TypeError, match="requires a formula"):
        make_parameter("p", kind="derived", value=1.0)


def test_make_parameter_warns_on_ignored_options():
    with pytest.warns(UserWarning, match="constant parameters ignore min, max"):
        p = make_parameter("p", kind="constant", value=1.0, min=0.0, max=2.0)
    assert type(p) is Constant

    with pytest.warns(UserWarning, match="independent parameters ignore value"):
        make_parameter("x", independent=True, value=1.0)


def test_make_parameter_strict_raises_on_ignored_options():
    with pytest.raises(ValueError, match="free parameters ignore formula"):
        make_parameter("p", kind="free", value=1.0, formula="a", strict=True)


def test_explicit_kind_overrides_independent_flag():
    with pytest.warns(UserWarning, match="constant parameters ignore independent"):
        p = make_parameter("p", kind="constant", value=2.0, independent=True)
    assert type(p) is Constant


def test_printable_form():
    assert str(Constant("k", value=3.0)) == "Constant: name=k, value=3.0"
    assert (
        str(Free("a", value=0.5, min=0.0, max=1.0))
        == "Free: name=a, value=0.5, min=0.0, max=1.0"
    )
    assert str(Derived("c", formula="a+b")) == "Derived: name=c, value=nan, formula=a + b"
    assert str(IndependentPlaceholder("x")) == "IndependentPlaceholder: name=x"
    assert str(Constant("v", value=[1.0, 2.0])) == "Constant: name=v, value=[1., 2.]"


def test_conversions_keep_name_and_value():
    f = Free("a", value=0.5, min=0.0, max=1.0)

    c = as_constant(f)
    assert type(c) is Constant and c.name == "a" and c.value == 0.5

    d = as_derived(c, "b * 2")
    assert type(d) is Derived and d.value == 0.5 and d.depends_on() == {"b"}

    back = as_free(f)
    assert back.min == 0.0 and back.max == 1.0

    widened = as_free(c, min=-5.0)
    assert widened.min == -5.0 and widened.max == np.inf


def test_conversion_copies_vector_values():
    f = Free("a", value=[1.0, 2.0])
    c = as_constant(f)
    c.value[0] = 10.0
    assert f.value[0] == 1.0


def test_conversion_of_placeholder_fails():
    with pytest.raises(TypeError, match="carries no value"):
        as_constant(IndependentPlaceholder("x"))
