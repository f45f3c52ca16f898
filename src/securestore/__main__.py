"""Command line access to a SecureStore.

Usage:
  python -m securestore list
  python -m securestore get <key>
  python -m securestore set <key> <value> [--type string|boolean|int|long|float|string_set]
  python -m securestore rm <key>
  python -m securestore rm-prefix <prefix>
  python -m securestore clear

Configuration comes from the SECURESTORE_* environment variables
(see :func:`securestore.context.build_platform_context`) or the flags below.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from .context import build_context
from .core.exceptions import StoreInitializationError
from .core.models import ValueType
from .logging_config import configure_logging
from .store import DEFAULT_NAMESPACE, SecureStore


def _parse_boolean(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _set_value(store: SecureStore, key: str, raw: str, value_type: ValueType) -> None:
    if value_type is ValueType.STRING:
        store.put_string(key, raw)
    elif value_type is ValueType.BOOLEAN:
        store.put_boolean(key, _parse_boolean(raw))
    elif value_type is ValueType.INT:
        store.put_int(key, int(raw))
    elif value_type is ValueType.LONG:
        store.put_long(key, int(raw))
    elif value_type is ValueType.FLOAT:
        store.put_float(key, float(raw))
    else:
        # comma separated members
        store.put_string_set(key, [item for item in raw.split(",") if item])


def _jsonable(value):
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return value


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="securestore", description="Inspect and edit an encrypted settings store.")
    parser.add_argument("--data-dir", default=None, help="Directory holding the store database")
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE, help="Store namespace")
    parser.add_argument("--keyring-service", default=None, help="Keyring service holding the master key")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="Print every entry as JSON")
    get = sub.add_parser("get", help="Print one entry as JSON")
    get.add_argument("key")
    put = sub.add_parser("set", help="Write one entry")
    put.add_argument("key")
    put.add_argument("value")
    put.add_argument(
        "--type",
        dest="value_type",
        choices=[t.value for t in ValueType],
        default=ValueType.STRING.value,
    )
    rm = sub.add_parser("rm", help="Remove one entry")
    rm.add_argument("key")
    rm_prefix = sub.add_parser("rm-prefix", help="Remove every entry whose key starts with PREFIX")
    rm_prefix.add_argument("prefix")
    sub.add_parser("clear", help="Remove every entry")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        ctx = build_context(
            data_dir=args.data_dir,
            keyring_service=args.keyring_service,
            namespace=args.namespace,
        )
    except StoreInitializationError as e:
        print(f"error: {e}: {e.__cause__}", file=sys.stderr)
        return 2

    store = ctx.store
    try:
        if args.command == "list":
            entries = {k: _jsonable(v) for k, v in sorted(store.get_all().items())}
            print(json.dumps(entries, indent=2, ensure_ascii=False))
        elif args.command == "get":
            values = store.get_all_values()
            if args.key not in values:
                print(f"not found: {args.key}", file=sys.stderr)
                return 1
            entry = values[args.key]
            print(json.dumps({"type": entry.type.value, "value": _jsonable(entry.value)}, ensure_ascii=False))
        elif args.command == "set":
            try:
                _set_value(store, args.key, args.value, ValueType(args.value_type))
            except (TypeError, ValueError) as e:
                print(f"error: {e}", file=sys.stderr)
                return 1
        elif args.command == "rm":
            store.remove(args.key)
        elif args.command == "rm-prefix":
            store.remove_by_prefix(args.prefix)
        elif args.command == "clear":
            store.clear()
    finally:
        store.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
