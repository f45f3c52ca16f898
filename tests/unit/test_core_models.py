"""Unit tests for the PrefValue tagged union."""

import pytest

from securestore.core.models import INT_MAX, INT_MIN, LONG_MAX, LONG_MIN, PrefValue, ValueType


def test_constructors_tag_values():
    assert PrefValue.of_string("x").type is ValueType.STRING
    assert PrefValue.of_boolean(True).type is ValueType.BOOLEAN
    assert PrefValue.of_int(7).type is ValueType.INT
    assert PrefValue.of_long(7).type is ValueType.LONG
    assert PrefValue.of_float(1.5).type is ValueType.FLOAT
    assert PrefValue.of_string_set(["a"]).type is ValueType.STRING_SET


def test_int_range_is_32_bit():
    assert PrefValue.of_int(INT_MAX).value == INT_MAX
    assert PrefValue.of_int(INT_MIN).value == INT_MIN
    with pytest.raises(ValueError):
        PrefValue.of_int(INT_MAX + 1)
    with pytest.raises(ValueError):
        PrefValue.of_int(INT_MIN - 1)


def test_long_range_is_64_bit():
    assert PrefValue.of_long(LONG_MAX).value == LONG_MAX
    with pytest.raises(ValueError):
        PrefValue.of_long(LONG_MAX + 1)
    with pytest.raises(ValueError):
        PrefValue.of_long(LONG_MIN - 1)


@pytest.mark.parametrize("builder", [PrefValue.of_int, PrefValue.of_long, PrefValue.of_float])
def test_numeric_constructors_reject_bool(builder):
    with pytest.raises(TypeError):
        builder(True)


def test_wrong_payload_types_rejected():
    with pytest.raises(TypeError):
        PrefValue.of_string(3)
    with pytest.raises(TypeError):
        PrefValue.of_boolean(1)
    with pytest.raises(TypeError):
        PrefValue.of_int("3")
    with pytest.raises(TypeError):
        PrefValue.of_string_set(["a", 1])


def test_float_accepts_int_and_stores_float():
    value = PrefValue.of_float(2)
    assert value.value == 2.0
    assert isinstance(value.value, float)


def test_string_set_is_frozen_copy():
    source = {"a", "b"}
    value = PrefValue.of_string_set(source)
    source.add("c")
    assert value.value == frozenset({"a", "b"})


def test_dict_form_keeps_type_tag():
    value = PrefValue.of_string_set({"b", "a"})
    data = value.to_dict()
    assert data == {"t": "string_set", "v": ["a", "b"]}
    assert PrefValue.from_dict(data) == value


def test_from_dict_validates_payload():
    with pytest.raises(ValueError):
        PrefValue.from_dict({"t": "int", "v": 2**40})
    with pytest.raises(ValueError):
        PrefValue.from_dict({"t": "nope", "v": 1})


def test_equality_distinguishes_int_and_long():
    assert PrefValue.of_int(5) != PrefValue.of_long(5)
    assert PrefValue.of_int(5) == PrefValue.of_int(5)


def test_repr_shows_tag():
    assert repr(PrefValue.of_string("x")) == "PrefValue(string, 'x')"
