"""
ParamPack - command line front end.
Converts between JSON and the single-line ParamPackage format and manages
stored binding profiles.

Usage:
    python main.py encode [json]
    python main.py decode [text] [--expand]
    python main.py get <text> <key> [--type TYPE] [--default VALUE]
    python main.py bindings [--list | --show NAME | --set NAME TEXT | --remove NAME]
"""

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from config import LOG_LEVEL
from bindings import BindingStore
from param_package import ParamPackage, ParamPackageError, parse_bool

GET_TYPES = ["str", "int", "float", "bool", "list", "package", "packages"]


def _read_input(value: Optional[str]) -> str:
    """Argument if given, otherwise stdin (trailing newline dropped)."""
    if value is None or value == "-":
        return sys.stdin.read().rstrip("\n")
    return value


def cmd_encode(args) -> int:
    data = json.loads(_read_input(args.json))
    if not isinstance(data, dict):
        print("❌ Expected a JSON object", file=sys.stderr)
        return 1
    print(ParamPackage.from_dict(data).serialize())
    return 0


def cmd_decode(args) -> int:
    package = ParamPackage(_read_input(args.text))
    print(json.dumps(package.to_dict(expand=args.expand), indent=2, ensure_ascii=False))
    return 0


def _typed_default(type_name: str, raw: Optional[str]) -> Any:
    if type_name == "str":
        return raw or ""
    if type_name == "int":
        return int(raw) if raw else 0
    if type_name == "float":
        return float(raw) if raw else 0.0
    if type_name == "bool":
        return parse_bool(raw) if raw else False
    if type_name == "package":
        return ParamPackage(raw) if raw else ParamPackage()
    if not raw:
        return []

    holder = ParamPackage({"default": raw})
    if type_name == "packages":
        value = holder.get_package_list("default", None)
    else:
        if not raw.startswith("["):
            holder.set_str("default", f"[{raw}]")
        value = holder.get_list("default", None)
    if value is None:
        raise ValueError(f"not a {type_name} value: {raw}")
    return value


def cmd_get(args) -> int:
    package = ParamPackage(args.text)
    try:
        default = _typed_default(args.type, args.default)
    except ValueError:
        print(f"❌ Invalid default for {args.type}: {args.default}", file=sys.stderr)
        return 1

    if args.type == "packages":
        value = package.get_package_list(args.key, default)
        print(json.dumps([p.serialize() for p in value], ensure_ascii=False))
    elif args.type == "list":
        print(json.dumps(package.get_list(args.key, default), ensure_ascii=False))
    else:
        value = package.get(args.key, default)
        print(value.serialize() if isinstance(value, ParamPackage) else value)
    return 0


def cmd_bindings(args) -> int:
    store = BindingStore(args.file)

    if args.set:
        name, text = args.set
        store.put(name, ParamPackage(text))
        print(f"✅ Saved binding {name}")
        return 0

    if args.remove:
        if not store.remove(args.remove):
            print(f"❌ Binding not found: {args.remove}", file=sys.stderr)
            return 1
        print(f"✅ Removed binding {args.remove}")
        return 0

    if args.show:
        package = store.get(args.show)
        if package is None:
            print(f"❌ Binding not found: {args.show}", file=sys.stderr)
            return 1
        print(package.serialize())
        return 0

    bindings = store.load()
    if not bindings:
        print("No bindings stored")
        return 0
    for name in sorted(bindings):
        print(f"  • {name:20} {bindings[name]}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parampack",
        description="Single-line key-value encoding for bindings and settings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # JSON to ParamPackage
  python main.py encode '{"engine": "sdl", "port": 0, "axes": [1, 2]}'

  # ParamPackage to JSON, expanding lists and nested packages
  python main.py decode 'axes:[1|2],engine:sdl,port:0' --expand

  # Read one typed value
  python main.py get 'axes:[1|2],engine:sdl' axes --type list

  # Manage stored bindings
  python main.py bindings --set pad1 'engine:sdl,port:0'
  python main.py bindings --list
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    encode_parser = subparsers.add_parser("encode", help="JSON object to ParamPackage")
    encode_parser.add_argument("json", nargs="?", help="JSON object (default: stdin)")

    decode_parser = subparsers.add_parser("decode", help="ParamPackage to JSON")
    decode_parser.add_argument("text", nargs="?", help="Serialized package (default: stdin)")
    decode_parser.add_argument("--expand", action="store_true",
                               help="Expand lists and nested packages")

    get_parser = subparsers.add_parser("get", help="Read one typed value")
    get_parser.add_argument("text", help="Serialized package")
    get_parser.add_argument("key", help="Key to read")
    get_parser.add_argument("--type", choices=GET_TYPES, default="str", help="Value type")
    get_parser.add_argument("--default", help="Value returned when the key is missing or invalid")

    bindings_parser = subparsers.add_parser("bindings", help="Manage stored bindings")
    bindings_parser.add_argument("--file", help="Bindings file (default: PARAMPACK_BINDINGS_FILE)")
    group = bindings_parser.add_mutually_exclusive_group()
    group.add_argument("--list", action="store_true", help="List stored bindings")
    group.add_argument("--show", metavar="NAME", help="Print one binding")
    group.add_argument("--set", nargs=2, metavar=("NAME", "TEXT"), help="Store a binding")
    group.add_argument("--remove", metavar="NAME", help="Delete a binding")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "encode": cmd_encode,
        "decode": cmd_decode,
        "get": cmd_get,
        "bindings": cmd_bindings,
    }
    if args.command not in commands:
        parser.print_help()
        return 2

    try:
        return commands[args.command](args)
    except json.JSONDecodeError as e:
        print(f"❌ Invalid JSON: {e}", file=sys.stderr)
        return 1
    except ParamPackageError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
