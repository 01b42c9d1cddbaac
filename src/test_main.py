# test_main.py
import io
import json

import main


def test_encode_json_object(capsys):
    assert main.main(["encode", '{"engine": "sdl", "port": 0, "axes": [1, 2]}']) == 0
    assert capsys.readouterr().out.strip() == "axes:[1|2],engine:sdl,port:0"


def test_encode_reads_stdin(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO('{"child": {"a": "1"}}\n'))
    assert main.main(["encode"]) == 0
    assert capsys.readouterr().out.strip() == "child:[a$01]"


def test_encode_rejects_bad_input(capsys):
    assert main.main(["encode", "{broken"]) == 1
    assert "Invalid JSON" in capsys.readouterr().err
    assert main.main(["encode", "[1, 2]"]) == 1
    assert main.main(["encode", '{"k": null}']) == 1


def test_decode_expand(capsys):
    assert main.main(["decode", "axes:[1|2],child:[a$01],engine:sdl", "--expand"]) == 0
    assert json.loads(capsys.readouterr().out) == {
        "axes": ["1", "2"],
        "child": {"a": "1"},
        "engine": "sdl",
    }


def test_decode_raw(capsys):
    assert main.main(["decode", "[empty]"]) == 0
    assert json.loads(capsys.readouterr().out) == {}


def test_get_typed_values(capsys):
    text = "axes:[1|2],child:[a$01],port:3"
    assert main.main(["get", text, "port", "--type", "int"]) == 0
    assert main.main(["get", text, "axes", "--type", "list"]) == 0
    assert main.main(["get", text, "child", "--type", "package"]) == 0
    assert main.main(["get", text, "absent", "--type", "int", "--default", "42"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["3", '["1", "2"]', "a:1", "42"]


def test_get_invalid_default(capsys):
    assert main.main(["get", "a:1", "a", "--type", "int", "--default", "x"]) == 1
    assert "Invalid default" in capsys.readouterr().err


def test_bindings_commands(tmp_path, capsys):
    path = str(tmp_path / "bindings.json")
    assert main.main(["bindings", "--file", path, "--set", "pad1", "engine:sdl,port:0"]) == 0
    assert main.main(["bindings", "--file", path, "--show", "pad1"]) == 0
    assert main.main(["bindings", "--file", path, "--list"]) == 0
    out = capsys.readouterr().out
    assert "Saved binding pad1" in out
    assert "engine:sdl,port:0" in out

    assert main.main(["bindings", "--file", path, "--remove", "pad1"]) == 0
    assert main.main(["bindings", "--file", path, "--show", "pad1"]) == 1
    assert "Binding not found" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert main.main([]) == 2
    assert "usage" in capsys.readouterr().out


def test_get_list_and_packages_defaults(capsys):
    assert main.main(["get", "a:1", "absent", "--type", "list", "--default", "[x|y]"]) == 0
    assert main.main(["get", "a:1", "absent", "--type", "list", "--default", "solo"]) == 0
    assert main.main(["get", "a:1", "absent", "--type", "packages", "--default", "[p:1|q:2]"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ['["x", "y"]', '["solo"]', '["p:1", "q:2"]']

    assert main.main(["get", "a:1", "absent", "--type", "packages", "--default", "plain"]) == 1
    assert "Invalid default" in capsys.readouterr().err


def test_get_bool_default(capsys):
    assert main.main(["get", "a:1", "absent", "--type", "bool", "--default", "true"]) == 0
    assert capsys.readouterr().out.strip() == "True"
    assert main.main(["get", "a:1", "absent", "--type", "bool", "--default", "yes"]) == 1
    assert "Invalid default for bool" in capsys.readouterr().err


def test_bindings_list_reads_the_file_once(tmp_path, monkeypatch, capsys):
    path = str(tmp_path / "bindings.json")
    main.main(["bindings", "--file", path, "--set", "pad1", "engine:sdl"])
    main.main(["bindings", "--file", path, "--set", "pad2", "engine:udp"])

    def _no_get(self, name):
        raise AssertionError("per-name lookup while listing")

    monkeypatch.setattr(main.BindingStore, "get", _no_get)
    assert main.main(["bindings", "--file", path, "--list"]) == 0
    out = capsys.readouterr().out
    assert "pad1" in out and "engine:udp" in out
