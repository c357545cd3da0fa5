"""sensible_params public API."""
from .collection import Parameters, update_from_vector
from .errors import (
    CircularDependencyError,
    FormulaSyntaxError,
    InvalidBoundsError,
    LengthMismatchError,
    NameKeyMismatchError,
    OutOfBoundsError,
    ParameterError,
    UnknownParameterKindError,
    UnknownReferenceError,
)
from .evaluator import Evaluator, compile_evaluator
from .params import (
    Constant,
    Derived,
    Free,
    IndependentPlaceholder,
    Kind,
    Parameter,
    ValuedParameter,
    as_constant,
    as_derived,
    as_free,
    make_parameter,
)
from . import formula

__all__ = [
    "Parameters",
    "update_from_vector",
    "Evaluator",
    "compile_evaluator",
    "Kind",
    "Parameter",
    "ValuedParameter",
    "Constant",
    "Free",
    "Derived",
    "IndependentPlaceholder",
    "make_parameter",
    "as_constant",
    "as_free",
    "as_derived",
    "formula",
    "ParameterError",
    "LengthMismatchError",
    "InvalidBoundsError",
    "OutOfBoundsError",
    "NameKeyMismatchError",
    "CircularDependencyError",
    "UnknownReferenceError",
    "UnknownParameterKindError",
    "FormulaSyntaxError",
]
