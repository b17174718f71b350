"""Encode, decode and edit player saves from the command line."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

from fogserver.backend.codec import MalformedSaveError, SaveCodec
from fogserver.backend.config import load_settings
from fogserver.backend.saves import set_player_perk_level
from fogserver.backend.store import FileSaveStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fog Server save tool")
    commands = parser.add_subparsers(dest="command", required=True)

    decode = commands.add_parser("decode", help="decode a wire save into JSON")
    decode.add_argument("source", type=Path)
    decode.add_argument("--output", type=Path)

    encode = commands.add_parser("encode-json", help="encode a JSON document (UTF-8) into a wire save")
    encode.add_argument("source", type=Path)
    encode.add_argument("--output", type=Path)

    encode_raw = commands.add_parser("encode", help="encode a UTF-16LE JSON file as-is")
    encode_raw.add_argument("source", type=Path)
    encode_raw.add_argument("--output", type=Path)

    perk = commands.add_parser("set-perk", help="change a perk level in a stored save")
    perk.add_argument("user_id")
    perk.add_argument("character_id", type=int)
    perk.add_argument("perk_id")
    perk.add_argument("level", type=int)
    return parser.parse_args(argv)


def _write(text: str, output: Path | None) -> None:
    if output is None:
        print(text)
    else:
        output.write_text(text, encoding="utf-8")


def _report_malformed(exc: MalformedSaveError) -> int:
    print(f"Malformed save data: {exc}", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    if settings.save_key is None:
        print("FOGSERVER_SAVE_KEY is required", file=sys.stderr)
        return 2
    codec = SaveCodec(key=settings.save_key)

    try:
        if args.command == "decode":
            document = codec.decode_to_document(args.source.read_text(encoding="utf-8").strip())
            _write(json.dumps(document, indent=2, ensure_ascii=False), args.output)
        elif args.command == "encode-json":
            document = json.loads(args.source.read_text(encoding="utf-8-sig"))
            _write(codec.encode_document(document), args.output)
        elif args.command == "encode":
            _write(codec.load_file_and_encode(args.source), args.output)
        elif args.command == "set-perk":
            store = FileSaveStore(directory=settings.save_dir)
            try:
                changed = set_player_perk_level(
                    store, codec, args.user_id, args.character_id, args.perk_id, args.level
                )
            except MalformedSaveError as exc:
                return _report_malformed(exc)
            except ValueError as exc:
                print(str(exc), file=sys.stderr)
                return 2
            if not changed:
                print("Save or perk not found", file=sys.stderr)
                return 1
    except MalformedSaveError as exc:
        return _report_malformed(exc)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
