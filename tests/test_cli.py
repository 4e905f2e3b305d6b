#!/usr/bin/env python3

import json

import pytest
from click.testing import CliRunner

from cdeclgraph.cli import cli

SOURCE = """\
struct Node { struct Node *next; int val; };
typedef struct Node Node;
int count_nodes(const Node *head);
static int helper(void) { return 0; }
"""


@pytest.fixture
def source(temp_dir):
    path = temp_dir / "list.c"
    path.write_text(SOURCE)
    return path


def test_extract_json(source):
    result = CliRunner().invoke(cli, ["extract", str(source), "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    names = [g["name"]["text"] for g in data["declarations"]]
    assert names == ["Node", "Node", "count_nodes"]
    assert [g["kind"] for g in data["declarations"]] == ["composite", "typedef", "function"]
    assert data["diagnostics"] == []


def test_extract_table(source):
    result = CliRunner().invoke(cli, ["extract", str(source)])

    assert result.exit_code == 0, result.output
    assert "count_nodes" in result.output
    assert "helper" not in result.output


def test_extract_saves_snapshot(source, temp_dir):
    snapshot = temp_dir / "list.json"
    result = CliRunner().invoke(cli, ["extract", str(source), "--json", "--save", str(snapshot)])

    assert result.exit_code == 0, result.output
    entries = json.loads(snapshot.read_text())["entries"]
    assert [e["name"] for e in entries] == ["Node", "Node", "count_nodes"]


def test_extract_with_defines(temp_dir):
    path = temp_dir / "cond.c"
    path.write_text("#ifdef WITH_EXTRA\nint extra(void);\n#endif\nint base(void);\n")

    result = CliRunner().invoke(cli, ["extract", str(path), "--json", "-D", "WITH_EXTRA"])

    assert result.exit_code == 0, result.output
    names = [g["name"]["text"] for g in json.loads(result.output)["declarations"]]
    assert names == ["extra", "base"]


def test_extract_parse_error(temp_dir):
    path = temp_dir / "broken.c"
    path.write_text("struct Broken { int x \n")

    result = CliRunner().invoke(cli, ["extract", str(path)])

    assert result.exit_code != 0
    assert "Error" in result.output


def test_extract_invalid_config(source, temp_dir):
    config = temp_dir / "bad.json"
    config.write_text("{oops")

    result = CliRunner().invoke(cli, ["extract", str(source), "--config", str(config)])

    assert result.exit_code != 0
    assert "Invalid configuration" in result.output


def test_config_filters_json_and_snapshot(temp_dir):
    path = temp_dir / "a.c"
    path.write_text("struct Keep { int k; };\nstruct Drop { int d; };\n")
    (temp_dir / "cdeclgraph.json").write_text(json.dumps({"exclude_types": ["Drop"]}))
    snapshot = temp_dir / "snap.json"

    result = CliRunner().invoke(cli, ["extract", str(path), "--json", "--save", str(snapshot)])

    assert result.exit_code == 0, result.output
    names = [g["name"]["text"] for g in json.loads(result.output)["declarations"]]
    assert names == ["Keep"]
    assert "Drop" not in snapshot.read_text()
