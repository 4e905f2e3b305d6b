#!/usr/bin/env python3

import json

import pytest

from cdeclgraph.config import CONFIG_FILENAME, DeclFilter, ExtractConfig, GlobalsSource
from cdeclgraph.errors import ConfigError
from cdeclgraph.extract import extract_with_config
from cdeclgraph.model import NamedType


def test_default_config():
    config = ExtractConfig()
    assert config.invocation_args() == []
    assert config.load_globals == []
    assert config.save_globals is None
    assert config.log_level == "warning"


def test_invocation_args():
    config = ExtractConfig(include_dirs=["inc"], defines=["DEBUG=1"], clang_args=["-std=c99"])
    assert config.invocation_args() == ["-Iinc", "-DDEBUG=1", "-std=c99"]


def test_load_resolves_relative_paths(temp_dir):
    config_path = temp_dir / CONFIG_FILENAME
    config_path.write_text(
        json.dumps(
            {
                "defines": ["FOO"],
                "load_globals": [{"path": "libc.json", "prefix": "Libc"}],
                "save_globals": "out/globals.json",
            }
        )
    )

    config = ExtractConfig.load_from_file(config_path)

    assert config.defines == ["FOO"]
    assert config.load_globals == [GlobalsSource(path=temp_dir / "libc.json", prefix="Libc")]
    assert config.save_globals == temp_dir / "out" / "globals.json"


def test_save_and_load(temp_dir):
    config_path = temp_dir / CONFIG_FILENAME
    config = ExtractConfig(include_decls=["^api_"], log_level="debug")

    config.save_to_file(config_path)
    loaded = ExtractConfig.load_from_file(config_path)

    assert loaded.include_decls == ["^api_"]
    assert loaded.log_level == "debug"


def test_find_config_searches_upwards(temp_dir):
    (temp_dir / CONFIG_FILENAME).write_text(json.dumps({"defines": ["UP"]}))
    nested = temp_dir / "src" / "lib"
    nested.mkdir(parents=True)

    config = ExtractConfig.find_config(nested)

    assert config is not None
    assert config.defines == ["UP"]


@pytest.mark.parametrize("content", ["{broken", json.dumps({"defines": "notalist"})])
def test_invalid_config(temp_dir, content):
    config_path = temp_dir / CONFIG_FILENAME
    config_path.write_text(content)

    with pytest.raises(ConfigError):
        ExtractConfig.load_from_file(config_path)


class TestDeclFilter:
    def test_empty_filter_matches_everything(self):
        assert DeclFilter().matches("a.h", "anything")

    def test_include(self):
        f = DeclFilter(include=["^api\\.h:"])
        assert f.matches("api.h", "open")
        assert not f.matches("internal.h", "open")

    def test_exclude_wins(self):
        f = DeclFilter(include=[":api_"], exclude=["_private$"])
        assert f.matches("x.h", "api_open")
        assert not f.matches("x.h", "api_open_private")


def test_selects_by_kind(temp_dir):
    source = temp_dir / "api.c"
    source.write_text("struct Hidden { int a; }; struct Shown { int b; }; int api_call(void); int other(void);\n")
    config = ExtractConfig(exclude_types=[":Hidden$"], include_decls=[":api_"])

    result = extract_with_config(source, config)
    selected = [g.name.text for g in result.declarations if config.selects(g)]

    assert selected == ["Shown", "api_call"]


def test_extract_with_config_saves_and_loads(temp_dir):
    base = temp_dir / "base.c"
    base.write_text("struct Point { int x, y; };\n")
    snapshot = temp_dir / "base.json"
    extract_with_config(base, ExtractConfig(save_globals=snapshot))
    assert snapshot.exists()

    # Builtins match on location, so the user of the snapshot parses the same file.
    user = ExtractConfig(load_globals=[GlobalsSource(path=snapshot, prefix="Base")])
    code = "struct Point { int x, y; };\nstruct Point *make_point(void);\n"
    result = extract_with_config(base, user, code=code)

    assert [g.name.text for g in result.declarations] == ["make_point"]
    assert result.lookup("make_point").type.ret.pointee == NamedType(name="Base.Point", external=True)


def test_filters_apply_to_result_and_snapshot(temp_dir):
    source = temp_dir / "a.c"
    source.write_text("struct Keep { int k; }; struct Drop { int d; }; int use_keep(struct Keep *k);\n")
    snapshot = temp_dir / "snap.json"
    config = ExtractConfig(exclude_types=["Drop"], save_globals=snapshot)

    result = extract_with_config(source, config)

    assert [g.name.text for g in result.declarations] == ["Keep", "use_keep"]
    keep = result.lookup("Keep")
    assert list(result.members) == [keep.id]
    entries = json.loads(snapshot.read_text())["entries"]
    assert [e["name"] for e in entries] == ["Keep", "use_keep"]
