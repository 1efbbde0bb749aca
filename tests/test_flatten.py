import pytest

from fastform.errors import ConfigurationError
from fastform.flatten import flatten, form_value, iter_flattened, stringify


def test_list_values_get_zero_based_indexes():
    assert flatten("tags", ["tag1", "tag2", "tag3"]) == [
        ("tags[0]", "tag1"),
        ("tags[1]", "tag2"),
        ("tags[2]", "tag3"),
    ]


def test_nested_mapping_is_depth_first_in_order():
    value = {"level1": ["item1", "item2"], "level2": "simple_value"}
    assert flatten("nested", value) == [
        ("nested[level1][0]", "item1"),
        ("nested[level1][1]", "item2"),
        ("nested[level2]", "simple_value"),
    ]


def test_deep_nesting():
    value = {
        "level1": {
            "level2": {
                "level3": {"level4": ["deep_value1", "deep_value2"], "level4_simple": "x"},
                "level3_simple": "simple_value",
            }
        },
        "top_level": "top_value",
    }
    assert flatten("deep", value) == [
        ("deep[level1][level2][level3][level4][0]", "deep_value1"),
        ("deep[level1][level2][level3][level4][1]", "deep_value2"),
        ("deep[level1][level2][level3][level4_simple]", "x"),
        ("deep[level1][level2][level3_simple]", "simple_value"),
        ("deep[top_level]", "top_value"),
    ]


def test_empty_containers_are_dropped():
    assert flatten("empty", []) == []
    assert flatten("empty", {}) == []
    assert flatten("mixed", {"a": [], "b": {}, "c": "kept"}) == [("mixed[c]", "kept")]


def test_none_leaves_are_dropped():
    assert flatten("opt", {"a": None, "b": "1"}) == [("opt[b]", "1")]
    assert flatten("opt", None) == []


def test_mixed_key_types_keep_given_order():
    value = {"string_key": "string_value", 0: "numeric_value", 5: "five"}
    assert flatten("mixed", value) == [
        ("mixed[string_key]", "string_value"),
        ("mixed[0]", "numeric_value"),
        ("mixed[5]", "five"),
    ]


def test_scalars_are_stringified():
    assert flatten("scores", [100, 95.5, True, False, b"raw"]) == [
        ("scores[0]", "100"),
        ("scores[1]", "95.5"),
        ("scores[2]", "1"),
        ("scores[3]", "0"),
        ("scores[4]", b"raw"),
    ]


def test_top_level_scalar_keeps_its_name():
    assert flatten("age", 30) == [("age", "30")]


def test_special_characters_are_not_escaped():
    value = ["value with spaces", "value&with&ampersand", "value=with=equals"]
    assert [v for _, v in flatten("special", value)] == value


def test_tuples_flatten_like_lists():
    assert flatten("pair", ("a", "b")) == [("pair[0]", "a"), ("pair[1]", "b")]


def test_iter_flattened_is_lazy():
    pairs = iter_flattened("tags", ["a", "b"])
    assert next(pairs) == ("tags[0]", "a")


def test_stringify():
    assert stringify("x") == "x"
    assert stringify(True) == "1"
    assert stringify(3) == "3"
    assert stringify(2.5) == "2.5"
    with pytest.raises(ConfigurationError):
        stringify(b"ab")


def test_binary_leaves_are_kept_as_bytes():
    raw = b"\xff\xfe\x00binary"
    assert form_value("raw", raw) == raw
    assert form_value("raw", bytearray(raw)) == raw
    assert form_value("raw", memoryview(raw)) == raw
    assert flatten("blobs", {"a": raw}) == [("blobs[a]", raw)]


@pytest.mark.parametrize("leaf", [object(), {1, 2}, 1j])
def test_unsupported_leaves_are_rejected(leaf):
    with pytest.raises(ConfigurationError, match=r"nested\[x\]"):
        flatten("nested", {"x": leaf})
    with pytest.raises(ConfigurationError):
        form_value("n", leaf)
