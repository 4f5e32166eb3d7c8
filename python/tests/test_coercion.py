"""Tests for literal coercion."""

from __future__ import annotations

import math

import pytest

from beanctl.coercion import ScalarKind, coerce, format_value, short_type_name
from beanctl.errors import CoercionError, TypeCoercionError, UnsupportedTypeError

SAMPLES = [
    ("int", "7"),
    ("java.lang.Integer", "-2147483648"),
    ("long", "9223372036854775807"),
    ("java.lang.Long", "-42"),
    ("short", "32767"),
    ("java.lang.Short", "-5"),
    ("byte", "127"),
    ("java.lang.Byte", "-128"),
    ("double", "3.25"),
    ("java.lang.Double", "1e-3"),
    ("float", "0.1"),
    ("java.lang.Float", "-2.5f"),
    ("boolean", "TRUE"),
    ("java.lang.Boolean", "nope"),
    ("java.lang.String", "hello world"),
    ("char", "x"),
    ("java.lang.Character", "yes"),
]


@pytest.mark.parametrize("type_name,literal", SAMPLES)
def test_coerce_format_coerce_is_stable(type_name, literal):
    first = coerce(literal, type_name)
    again = coerce(format_value(first.value), type_name)
    assert again.value == first.value
    assert again.kind is first.kind


def test_primitive_and_boxed_spellings_agree():
    boxed = coerce("12", "java.lang.Integer")
    assert boxed.kind is coerce("12", "int").kind is ScalarKind.INT
    assert boxed.value == 12
    assert boxed.type_name == "java.lang.Integer"
    assert coerce("1.5", "double").value == coerce("1.5", "java.lang.Double").value


def test_int_literal():
    value = coerce("7", "int")
    assert value.value == 7
    assert value.kind is ScalarKind.INT
    assert coerce("+7", "int").value == 7


def test_non_numeric_int_fails():
    with pytest.raises(TypeCoercionError):
        coerce("notanumber", "int")


@pytest.mark.parametrize(
    "literal,type_name",
    [
        ("2147483648", "int"),
        ("128", "byte"),
        ("-32769", "short"),
        ("9223372036854775808", "long"),
        ("1.5", "int"),
        (" 7", "int"),
        ("0x10", "int"),
        ("1_000", "long"),
        ("", "int"),
    ],
)
def test_integer_range_and_syntax(literal, type_name):
    with pytest.raises(TypeCoercionError):
        coerce(literal, type_name)


def test_char_uses_first_character_only():
    assert coerce("x", "char").value == "x"
    assert coerce("xyz", "java.lang.Character").value == "x"


def test_empty_char_literal_fails():
    with pytest.raises(TypeCoercionError):
        coerce("", "char")


def test_boolean_quirk_defaults_to_false():
    assert coerce("anything-not-true", "boolean").value is False
    assert coerce("True", "boolean").value is True
    assert coerce("false", "java.lang.Boolean").value is False


def test_floating_point_forms():
    assert coerce(" 2.5 ", "double").value == 2.5
    assert coerce("1e3d", "double").value == 1000.0
    assert coerce(".5", "double").value == 0.5
    assert math.isnan(coerce("NaN", "double").value)
    assert coerce("-Infinity", "double").value == float("-inf")


@pytest.mark.parametrize("literal", ["abc", "1.2.3", "nan", "inf", "1e", "--1"])
def test_malformed_floating_point_fails(literal):
    with pytest.raises(TypeCoercionError):
        coerce(literal, "double")


def test_float_is_rounded_to_single_precision():
    value = coerce("0.1", "float").value
    assert value != 0.1
    assert abs(value - 0.1) < 1e-8


def test_float_out_of_single_range_fails():
    with pytest.raises(TypeCoercionError):
        coerce("1e40", "float")


@pytest.mark.parametrize("type_name", ["float", "double", "java.lang.Double"])
def test_literal_beyond_double_range_fails(type_name):
    with pytest.raises(TypeCoercionError):
        coerce("1e400", type_name)
    with pytest.raises(TypeCoercionError):
        coerce("-1e400d", type_name)
    assert coerce("Infinity", type_name).value == float("inf")


def test_string_is_passed_through():
    assert coerce("  spaced  ", "java.lang.String").value == "  spaced  "


def test_unsupported_type_names_the_type():
    with pytest.raises(UnsupportedTypeError) as excinfo:
        coerce("[1,2]", "java.util.List")
    assert "java.util.List" in str(excinfo.value)
    assert isinstance(excinfo.value, CoercionError)


def test_format_value_matches_remote_rendering():
    assert format_value(True) == "true"
    assert format_value(None) == "null"
    assert format_value(float("inf")) == "Infinity"
    assert format_value(3) == "3"


def test_short_type_name_strips_namespace():
    assert short_type_name("java.lang.String") == "String"
    assert short_type_name("java.util.List") == "java.util.List"
    assert short_type_name("int") == "int"
