"""
核心集合表达式编解码测试
"""

import pytest

from utils.cpuset import CpusetParseError, decode_cpuset, encode_cpuset


def test_encode_merges_consecutive_runs():
    assert encode_cpuset([0, 1, 2, 3, 7]) == "0-3,7"


def test_decode_expands_ranges():
    assert decode_cpuset("0-3,7") == [0, 1, 2, 3, 7]


def test_decode_singleton_range():
    assert decode_cpuset("0,2,4-4") == [0, 2, 4]


def test_decode_keeps_input_order():
    assert decode_cpuset("7,0-1") == [7, 0, 1]


def test_decode_strips_kernel_newline():
    assert decode_cpuset("0-3\n") == [0, 1, 2, 3]


def test_decode_empty_expression():
    assert decode_cpuset("") == []
    assert decode_cpuset("\n") == []


@pytest.mark.parametrize(
    "cores",
    [
        [0],
        [5, 6],
        [0, 2, 4, 6],
        [1, 2, 3, 10, 11, 20],
    ],
)
def test_decode_of_encode_returns_input(cores):
    assert decode_cpuset(encode_cpuset(cores)) == cores


def test_encode_is_canonical_for_decoded_input():
    assert encode_cpuset(decode_cpuset("0,1,2,3,7")) == "0-3,7"


@pytest.mark.parametrize("expression", ["a", "1-", "3-1", "1-2-3", "-1", "1,,2", "0-x", "0,\u00b2", "\u0663"])
def test_decode_rejects_malformed_tokens(expression):
    with pytest.raises(CpusetParseError) as excinfo:
        decode_cpuset(expression)
    assert excinfo.value.expression == expression.strip()


def test_parse_error_is_value_error():
    with pytest.raises(ValueError):
        decode_cpuset("zero")


def test_encode_rejects_unsorted_input():
    with pytest.raises(ValueError):
        encode_cpuset([3, 1, 2])


def test_encode_rejects_empty_input():
    with pytest.raises(ValueError):
        encode_cpuset([])


def test_encode_folds_duplicates():
    assert encode_cpuset([1, 1, 2, 4, 4]) == "1-2,4"
