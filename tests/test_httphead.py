import pytest

from lowws.httphead import Option, scan_options, scan_tokens, write_options


def test_scan_tokens_splits_on_commas():
    assert list(scan_tokens(b"jsonrpc, soap, grpc")) == [b"jsonrpc", b"soap", b"grpc"]


def test_scan_tokens_accepts_text():
    assert list(scan_tokens("a, b, c, d")) == [b"a", b"b", b"c", b"d"]


@pytest.mark.parametrize("data", [b"=[", b"", b'"a"', b"a, ="])
def test_scan_tokens_malformed(data):
    with pytest.raises(ValueError):
        list(scan_tokens(data))


def test_scan_tokens_is_lazy():
    tokens = scan_tokens(b"a, =[")
    assert next(tokens) == b"a"
    with pytest.raises(ValueError):
        next(tokens)


def test_scan_options_basic():
    options = list(scan_options(b"foo;bar=1,baz"))
    assert options == [Option(b"foo", {b"bar": b"1"}), Option(b"baz")]


def test_scan_options_tolerates_whitespace():
    options = list(scan_options("foo ; bar = 1 , baz"))
    assert options == [Option("foo", {"bar": "1"}), Option("baz")]


def test_scan_options_quoted_value():
    (option,) = scan_options(b'x;p="a b\\"c"')
    assert option.parameters == {b"p": b'a b"c'}


def test_scan_options_flag_parameter():
    (option,) = scan_options(b"x;flag")
    assert option.parameters == {b"flag": None}


def test_scan_options_empty():
    assert list(scan_options(b"")) == []


@pytest.mark.parametrize(
    "data", [b"=[", b"foo;", b"foo;bar=", b'foo;bar="open', b"foo bar"]
)
def test_scan_options_malformed(data):
    with pytest.raises(ValueError):
        list(scan_options(data))


def test_scan_options_yields_before_error():
    options = scan_options(b"a;x=1,=[")
    assert next(options) == Option(b"a", {b"x": b"1"})
    with pytest.raises(ValueError):
        next(options)


def test_write_options():
    options = [Option("foo", {"bar": "1"}), Option("baz")]
    assert write_options(options) == b"foo;bar=1,baz"


def test_write_then_scan_round_trip():
    options = [
        Option(b"a", {b"q": b'with space and "quote"', b"flag": None}),
        Option(b"b", {b"empty": b""}),
        Option(b"c"),
    ]
    assert list(scan_options(write_options(options))) == options


def test_option_str():
    assert str(Option("foo", {"bar": "1"})) == "foo;bar=1"


def test_option_normalizes_text_to_bytes():
    option = Option("foo", [("bar", "1")])
    assert option.name == b"foo"
    assert option.parameters == {b"bar": b"1"}


def test_clone_is_independent():
    original = Option(b"foo", {b"bar": b"1"})
    copy = original.clone()
    copy.set_parameter(b"baz", b"2")
    assert copy == Option(b"foo", {b"bar": b"1", b"baz": b"2"})
    assert original == Option(b"foo", {b"bar": b"1"})


def test_size():
    assert Option(b"").size() == 0
    option = Option(b"foo")
    before = option.size()
    assert before == len(b"foo")
    option.set_parameter(b"k", b"v")
    assert option.size() > before


def test_set_parameter_replaces():
    option = Option(b"foo", {b"bar": b"1"})
    option.set_parameter("bar", "2")
    assert option.parameters == {b"bar": b"2"}