"""
YMLite Command-Line Tests
Run with: pytest tests/test_cli.py
"""
import json
import os
import sys
from textwrap import dedent

from typer.testing import CliRunner

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from ymlite_cli import app

runner = CliRunner()

def test_prints_document_as_json(tmp_path):
    path = tmp_path / "doc.yaml"
    path.write_text(dedent("""
    name: demo
    ports:
      - 80
      - 443
    """), encoding="utf-8")
    result = runner.invoke(app, [str(path)])
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"name": "demo", "ports": [80, 443]}

def test_compact_output(tmp_path):
    path = tmp_path / "doc.yaml"
    path.write_text("a: 1\nb: [true, null]\n", encoding="utf-8")
    result = runner.invoke(app, ["--compact", str(path)])
    assert result.exit_code == 0
    assert result.stdout.strip() == '{"a": 1, "b": [true, null]}'

def test_reads_standard_input():
    result = runner.invoke(app, ["--compact", "-"], input="- x\n- 2\n")
    assert result.exit_code == 0
    assert result.stdout.strip() == '["x", 2]'

def test_quote_aware_comments_option():
    result = runner.invoke(app, ["--compact", "--quote-aware-comments", "-"], input='c: "#fff"\n')
    assert result.exit_code == 0
    assert result.stdout.strip() == '{"c": "#fff"}'

def test_parse_error_exits_with_code_one(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("key:\nother: 1\n", encoding="utf-8")
    result = runner.invoke(app, [str(path)])
    assert result.exit_code == 1
    assert "Expected indented block for key 'key'" in result.output

def test_missing_file_exits_with_code_one(tmp_path):
    result = runner.invoke(app, [str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1
    assert "Failed to open config file" in result.output
