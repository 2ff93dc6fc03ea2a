import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from storefront.ftypes import Maybe, Either


# ТЕСТЫ Maybe
def test_maybe_some_and_none_behavior():
    just = Maybe.some(42)
    nothing = Maybe.nothing()

    assert not just.is_none()
    assert nothing.is_none()
    assert just.get_or_else(0) == 42
    assert nothing.get_or_else(0) == 0
    assert Maybe.of(None).is_none()
    assert nothing.to_optional() is None


def test_maybe_map():
    assert Maybe.some(10).map(lambda x: x * 2).get_or_else(0) == 20
    assert Maybe.nothing().map(lambda x: x * 2).is_none()


def test_maybe_first_keeps_source_order():
    assert Maybe.first([1, 2, 3, 4], lambda x: x % 2 == 0).get_or_else(None) == 2
    assert Maybe.first([], lambda x: True).is_none()


def test_maybe_to_either():
    assert Maybe.some(1).to_either("err").is_right
    assert Maybe.nothing().to_either("err").value == "err"


# ТЕСТЫ Either
def test_either_left_and_right_behavior():
    right_val = Either.right(100)
    left_val = Either.left("error")

    assert right_val.is_right
    assert not left_val.is_right
    assert right_val.value == 100
    assert left_val.value == "error"


def test_either_map_and_bind():
    val = Either.right(5)
    assert val.map(lambda x: x * 2).value == 10
    assert val.bind(lambda x: Either.right(x + 3)).value == 8
    assert Either.left("e").map(lambda x: x * 2).is_left
    assert Either.left("e").bind(lambda x: Either.right(x)).value == "e"
