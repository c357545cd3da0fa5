import numpy as np
import pytest

from sensible_params.errors import FormulaSyntaxError
from sensible_params.formula import (
    BinOp,
    Call,
    Literal,
    Name,
    UnaryOp,
    evaluate,
    free_names,
    parse,
    to_source,
)


def test_free_names_excludes_functions_and_operators():
    assert free_names(parse("sin(A) + B * C")) == {"A", "B", "C"}


def test_free_names_counts_repeats_once():
    assert free_names(parse("a * a + exp(a) - 2")) == {"a"}
    assert free_names(parse("3.5e-2 * 4")) == frozenset()


def test_precedence_and_associativity():
    assert parse("a + b * c") == BinOp("+", Name("a"), BinOp("*", Name("b"), Name("c")))
    assert parse("a - b - c") == BinOp("-", BinOp("-", Name("a"), Name("b")), Name("c"))
    # power is right-associative and binds tighter than unary minus
    assert parse("a ^ b ^ c") == BinOp("^", Name("a"), BinOp("^", Name("b"), Name("c")))
    assert parse("-a ** 2") == UnaryOp("-", BinOp("^", Name("a"), Literal(2.0)))


def test_call_with_two_arguments():
    node = parse("arctan2(y, 1.0)")
    assert node == Call("arctan2", (Name("y"), Literal(1.0)))


@pytest.mark.parametrize(
    "text, match",
    [
        ("", "Empty formula"),
        ("a +", "Unexpected"),
        ("(a + b", r"Expected '\)'"),
        ("a $ b", "Unexpected character"),
        ("frobnicate(a)", "Unknown function 'frobnicate'"),
        ("sin(a, b)", "takes 1 argument"),
        ("a b", "Unexpected 'b'"),
    ],
)
def test_syntax_errors(text, match):
    with pytest.raises(FormulaSyntaxError, match=match):
        parse(text)


def test_syntax_error_reports_position():
    with pytest.raises(FormulaSyntaxError) as info:
        parse("a + * b")
    assert info.value.position == 4
    assert info.value.text == "a + * b"


def test_evaluate_scalar():
    env = {"a": 2.0, "b": 3.0}
    assert evaluate(parse("a * b + 1"), env) == pytest.approx(7.0)
    assert evaluate(parse("a ^ 3 / b"), env) == pytest.approx(8.0 / 3.0)
    assert evaluate(parse("-a + sqrt(b * 3)"), env) == pytest.approx(1.0)


def test_evaluate_broadcasts_vectors():
    env = {"v": np.array([0.0, 1.0, 2.0]), "k": 2.0}
    out = evaluate(parse("k * v + maximum(v, 1)"), env)
    assert np.allclose(out, [1.0, 3.0, 6.0])


def test_to_source_round_trips():
    for text in [
        "a + b * c",
        "(a + b) * c",
        "a - (b - c)",
        "a / (b * c)",
        "-a ^ 2",
        "(-a) ^ 2",
        "a ^ -b",
        "(a ^ b) ^ c",
        "sin(a) + hypot(b, 2.5)",
    ]:
        node = parse(text)
        assert parse(to_source(node)) == node


def test_to_source_drops_redundant_parens():
    assert to_source(parse("((a)) + (b * c)")) == "a + b * c"
    assert to_source(parse("2 ** x")) == "2 ^ x"
    assert str(parse("sin(A)+B*C")) == "sin(A) + B * C"
