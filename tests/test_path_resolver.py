import pytest

from dirhistory import HistoryModel, PathNormalizer
from path_resolver import (
    BackwardsOffset,
    CommonOffset,
    DirectDir,
    DirectFile,
    Direction,
    DirectionNotSet,
    ForwardsOffset,
    InvalidDirection,
    NoDirectoryAtOffset,
    NumericAmbiguous,
    Pattern,
    PathSpecResolver,
    SpecOptions,
    classify,
    history_lines,
    is_trailing_path_spec,
)


def never(path):
    return False


def make_resolver(stack, current="", direction=None, **options):
    model = HistoryModel.build(stack, current, PathNormalizer("/", False))
    spec_options = SpecOptions(direction=Direction(direction), separator="/", **options)
    return PathSpecResolver(model, spec_options, is_dir=never, is_file=never)


# --- Direction ---------------------------------------------------------------


def test_direction_assign_and_queries():
    d = Direction()
    assert not d.is_assigned() and not d.is_set()
    d.assign(",")
    assert d.is_common() and d.is_assigned()
    d.assign("-")
    assert d.is_backwards() and not d.is_common()


def test_direction_rejects_unknown_tokens():
    with pytest.raises(InvalidDirection):
        Direction().assign("?")
    with pytest.raises(InvalidDirection):
        Direction("x")


def test_direction_default_does_not_count_as_assigned():
    d = Direction()
    d.default_to("-")
    assert d.is_backwards() and not d.is_assigned()
    d = Direction("+")
    d.default_to("-")
    assert d.is_forwards()


# --- Classification ------------------------------------------------------------


def test_classify_tokens():
    assert classify("12", never, never) == NumericAmbiguous(12)
    assert classify("-3", never, never) == BackwardsOffset(3)
    assert classify("---", never, never) == BackwardsOffset(3)
    assert classify("+4", never, never) == ForwardsOffset(4)
    assert classify("+", never, never) == ForwardsOffset(0)
    assert classify("+++", never, never) == ForwardsOffset(2)
    assert classify(",5", never, never) == CommonOffset(5)
    assert classify(",", never, never) == CommonOffset(0)
    assert classify(",,", never, never) == CommonOffset(1)
    assert classify("src", never, never) == Pattern("src")
    assert classify("-x", never, never) == Pattern("-x")
    assert classify("+-", never, never) == Pattern("+-")


def test_classify_filesystem_takes_precedence():
    assert classify("12", lambda p: True, never) == DirectDir("12")
    assert classify("-3", never, lambda p: True) == DirectFile("-3")


def test_trailing_path_spec():
    assert is_trailing_path_spec("--")
    assert is_trailing_path_spec("----")
    assert is_trailing_path_spec("-12")
    assert not is_trailing_path_spec("-")
    assert not is_trailing_path_spec("--all")


# --- Offsets -------------------------------------------------------------------


def test_backwards_offset_bounds():
    resolver = make_resolver(["/a", "/b"], direction="-")
    assert resolver.go_backwards(1) == "/a"
    assert resolver.go_backwards(2) == "/b"
    with pytest.raises(NoDirectoryAtOffset):
        resolver.go_backwards(0)
    with pytest.raises(NoDirectoryAtOffset):
        resolver.go_backwards(3)


def test_resolve_backwards_offsets():
    resolver = make_resolver(["/a", "/b"], direction="-")
    assert resolver.resolve("-1").target_path == "/a"
    assert resolver.resolve("--").target_path == "/b"
    failed = resolver.resolve("-3")
    assert not failed.success
    assert failed.error_message == "No directory at -3"


def test_resolve_forwards_offsets():
    resolver = make_resolver(["/c", "/a", "/b"], direction="-")
    assert [e.display_path for e in resolver.model.forwards] == ["/b", "/a", "/c"]
    assert resolver.resolve("+0").target_path == "/b"
    assert resolver.resolve("+").target_path == "/b"
    assert resolver.resolve("++").target_path == "/a"
    assert resolver.resolve("+3").error_message == "No directory at +3"


def test_resolve_common_offsets():
    resolver = make_resolver(["/a", "/b", "/b"], direction="-")
    assert resolver.resolve(",").target_path == "/b"
    assert resolver.resolve(",1").target_path == "/a"
    assert resolver.resolve(",,,").error_message == "No directory at ,2"


def test_plain_number_follows_direction():
    stack = ["/a", "/b", "/b", "/c"]
    assert make_resolver(stack, direction="-").resolve("1").target_path == "/a"
    assert make_resolver(stack, direction="+").resolve("1").target_path == "/b"
    assert make_resolver(stack, direction=",").resolve("0").target_path == "/b"
    assert make_resolver(stack, direction="-").resolve("0").error_message == "No directory at -0"


def test_plain_number_without_direction_fails():
    resolution = make_resolver(["/a"]).resolve("1")
    assert not resolution.success
    assert resolution.error_message == DirectionNotSet("1").message


def test_empty_history():
    resolution = make_resolver([], direction="-").resolve("-1")
    assert not resolution.success
    assert resolution.error_message == "No history of directories"


# --- Filesystem targets ----------------------------------------------------------


def test_existing_directory_is_returned_verbatim(tmp_path):
    model = HistoryModel.build([], "")
    resolver = PathSpecResolver(model, SpecOptions(direction=Direction("-"), separator="/"))
    spec = str(tmp_path) + "/"
    resolution = resolver.resolve(spec)
    assert resolution.success
    assert resolution.target_path == spec


def test_existing_file_resolves_to_its_directory(tmp_path):
    f = tmp_path / "notes.txt"
    f.write_text("x")
    model = HistoryModel.build(["/a"], "")
    resolver = PathSpecResolver(model, SpecOptions(direction=Direction("-"), separator="/"))
    assert resolver.resolve(str(f)).target_path == str(tmp_path)


def test_prepare_expands_ellipsis_and_windows_slashes():
    resolver = make_resolver(["/a"], direction="-")
    assert resolver.prepare("...") == "../.."
    model = HistoryModel.build([], "")
    win = PathSpecResolver(model, SpecOptions(separator="\\"), is_dir=never, is_file=never)
    assert win.prepare("C:/work/...") == "C:\\work\\..\\.."


# --- Pattern search --------------------------------------------------------------


def test_pattern_backwards_with_alternates():
    resolver = make_resolver(["/src/a", "/x", "/src/b", "/SRC/c"], direction="-")
    resolution = resolver.resolve("src")
    assert resolution.target_path == "/src/a"
    assert resolution.alternate_lines == [" -3: /src/b", " -4: /SRC/c"]


def test_pattern_forwards_with_alternates():
    resolver = make_resolver(["/src/a", "/x", "/src/b"], direction="+")
    resolution = resolver.resolve("SRC/")
    assert resolution.target_path == "/src/b"
    assert resolution.alternate_lines == ["  2: /src/a"]


def test_pattern_common_format():
    resolver = make_resolver(["/p/a", "/p/b", "/p/b"], direction=",")
    resolution = resolver.resolve("^/p")
    assert resolution.target_path == "/p/b"
    assert resolution.alternate_lines == [" ,1: ( 1) /p/a"]


def test_pattern_is_unanchored_regex():
    resolver = make_resolver(["/home/me/project", "/tmp"], direction="-")
    assert resolver.resolve("pro.ect$").target_path == "/home/me/project"


def test_pattern_truncated_to_limit():
    stack = [f"/proj/d{i:02}" for i in range(15)]
    resolution = make_resolver(stack, direction=",", limit_common=5).resolve("proj")
    assert resolution.target_path == "/proj/d00"
    assert resolution.alternate_lines[:5] == [f" ,{i}: ( 1) /proj/d{i:02}" for i in range(1, 6)]
    assert len(resolution.alternate_lines) == 6
    assert resolution.alternate_lines[-1] == " ... showing top 5 matching of 15"


def test_pattern_show_all_and_zero_limit_are_unlimited():
    stack = [f"/proj/d{i:02}" for i in range(15)]
    shown_all = make_resolver(stack, direction=",", limit_common=5, show_all=True).resolve("proj")
    assert len(shown_all.alternate_lines) == 14
    assert "showing" not in shown_all.alternate_lines[-1]
    unlimited = make_resolver(stack, direction=",", limit_common=0).resolve("proj")
    assert len(unlimited.alternate_lines) == 14


def test_pattern_backwards_truncation_wording():
    stack = [f"/w/{i}" for i in range(4)]
    resolution = make_resolver(stack, direction="-", limit_backwards=2).resolve("w")
    assert resolution.alternate_lines == [" -2: /w/1", " -3: /w/2", " ... showing last 2 matching of 4"]


def test_pattern_without_match():
    resolution = make_resolver(["/a", "/b"], direction="-").resolve("zzz")
    assert not resolution.success
    assert resolution.error_message == "Cannot match pattern: 'zzz'"


def test_invalid_pattern():
    resolution = make_resolver(["/a"], direction="-").resolve("(")
    assert not resolution.success
    assert resolution.error_message.startswith("Cannot process pattern: '('\n")


def test_pattern_without_direction_fails():
    resolution = make_resolver(["/a"]).resolve("a")
    assert not resolution.success


# --- History listing -------------------------------------------------------------


def listing(stack, current="", direction="-", **options):
    model = HistoryModel.build(stack, current, PathNormalizer("/", False))
    return history_lines(model, SpecOptions(direction=Direction(direction), **options))


def test_history_backwards():
    assert listing(["/a", "/b", "/c"], limit_backwards=2) == [" -1: /a", " -2: /b", " ... showing last 2 of 3"]
    assert listing(["/a"], current="/a") == ["No history of other directories"]


def test_history_forwards():
    assert listing(["/a", "/b"], direction="+") == ["  0: /b", "  1: /a"]
    lines = listing([f"/d{i}" for i in range(12)], direction="+", limit_forwards=10)
    assert lines[-1] == " ... showing first 10 of 12"
    assert len(listing([f"/d{i}" for i in range(12)], direction="+", show_all=True)) == 12


def test_history_common():
    stack = ["/a", "/b", "/b"] + [f"/d{i}" for i in range(10)]
    lines = listing(stack, direction=",", limit_common=0)
    assert lines[0] == " ,0: ( 2) /b"
    assert lines[1] == " ,1: ( 1) /a"
    assert lines[10] == ",10: ( 1) /d8"
    assert listing(stack, direction=",", limit_common=3)[-1] == " ... showing top 3 of 12"
