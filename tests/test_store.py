from __future__ import annotations

import math

import pytest

from tests.support.harness import EtxRuntimeError, EtxTypeError
from etx_script.types import (
    EtxArray,
    EtxBool,
    EtxNull,
    EtxNumber,
    EtxString,
    VariableStore,
    format_number,
    from_python,
    to_python,
)

def test_set_get_unset() -> None:
    store = VariableStore()
    store.set("a", EtxNumber(1))

    assert "a" in store
    assert store.get("a") == EtxNumber(1)

    store.unset("a")
    assert store.get("a") is None
    store.unset("never-set")
    assert len(store) == 0

def test_get_indexed() -> None:
    store = VariableStore({"arr": EtxArray([EtxString("x")]), "n": EtxNumber(1)})

    assert store.get_indexed("arr", 0) == EtxString("x")
    assert store.get_indexed("arr", 5) == EtxNull()

    with pytest.raises(EtxTypeError):
        store.get_indexed("n", 0)

def test_set_indexed_grows_with_null_padding() -> None:
    store = VariableStore()
    store.set_indexed("arr", 2, EtxNumber(7))

    value = store.get("arr")
    assert isinstance(value, EtxArray)
    assert value.items == [EtxNull(), EtxNull(), EtxNumber(7)]

def test_set_indexed_rejects_bad_targets() -> None:
    store = VariableStore({"s": EtxString("text")})

    with pytest.raises(EtxTypeError):
        store.set_indexed("s", 0, EtxNumber(1))

    with pytest.raises(EtxTypeError):
        store.set_indexed("fresh", -1, EtxNumber(1))
    assert "fresh" not in store

def test_set_indexed_enforces_max_index() -> None:
    store = VariableStore()
    store.set_indexed("arr", 4, EtxNumber(1), max_index=4)

    with pytest.raises(EtxTypeError, match="exceeds the maximum of 4"):
        store.set_indexed("arr", 5, EtxNumber(2), max_index=4)

    with pytest.raises(EtxTypeError):
        store.set_indexed("other", 5, EtxNumber(2), max_index=4)

    assert len(store.get("arr").items) == 5
    assert "other" not in store

def test_snapshot_restore_isolates_bindings() -> None:
    store = VariableStore({"a": EtxNumber(1)})
    saved = store.snapshot()

    store.set("a", EtxNumber(2))
    store.set("b", EtxNumber(3))
    store.restore(saved)

    assert store.get("a") == EtxNumber(1)
    assert store.get("b") is None

    # the saved copy is not aliased by later writes
    store.set("c", EtxNumber(4))
    assert "c" not in saved

@pytest.mark.parametrize(
    "num, expected",
    [
        pytest.param(3.0, "3", id="integral"),
        pytest.param(2.5, "2.5", id="fraction"),
        pytest.param(math.inf, "Infinity", id="inf"),
        pytest.param(-math.inf, "-Infinity", id="neg-inf"),
        pytest.param(math.nan, "NaN", id="nan"),
    ],
)
def test_format_number(num: float, expected: str) -> None:
    assert format_number(num) == expected

def test_python_value_conversion() -> None:
    value = from_python(1)
    assert value == EtxNumber(1.0)

    wrapped = from_python(["a", 2, True, None])
    assert wrapped == EtxArray([EtxString("a"), EtxNumber(2.0), EtxBool(True), EtxNull()])
    assert to_python(wrapped) == ["a", 2, True, None]

    with pytest.raises(EtxTypeError):
        from_python({"not": "supported"})

def test_runtime_error_location_is_attached_once() -> None:
    err = EtxRuntimeError("boom")
    assert str(err) == "boom"

    err.attach_location(3, "do thing", "inline")
    err.attach_location(9, "outer call", "main.etx")

    assert err.line == 3
    assert str(err) == "boom (line 3: do thing)"

def test_runtime_error_names_imported_script() -> None:
    err = EtxRuntimeError("boom")
    err.attach_location(1, "x()", "lib.etx")

    assert str(err) == "boom (lib.etx line 1: x())"
