"""gzcontainer: compress, decompress, and inspect single-member gzip files."""

import json
import logging
import sys
from argparse import ArgumentParser

from gzcontainer.config import load_config
from gzcontainer.errors import GzipContainerError
from gzcontainer.extra import encode_extra_fields
from gzcontainer.gzip_format import GzipCodec, flags_repr, parse_gzip_header

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="gzcontainer",
        description="Compress, decompress, and inspect gzip files.",
    )
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument("--log-level", help="Logging level (default from config: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    compress = sub.add_parser("compress", help="Gzip-compress a file")
    compress.add_argument("input", help="File to compress")
    compress.add_argument("-o", "--output", help="Output path (default: INPUT.gz)")
    compress.add_argument("--level", type=int, help="Compression level 1-9")
    compress.add_argument("--name", help="Original file name to store (FNAME)")
    compress.add_argument("--comment", help="Comment to store (FCOMMENT)")
    compress.add_argument(
        "--extra",
        action="append",
        default=[],
        metavar="ID=VALUE",
        help="Extra subfield with a two-character ID, repeatable (FEXTRA)",
    )
    compress.add_argument("--header-crc", action="store_true", default=None, help="Add header CRC16 (FHCRC)")
    compress.add_argument("--mtime", type=int, help="Modification time to store (default: now)")

    decompress = sub.add_parser("decompress", help="Decompress a gzip file")
    decompress.add_argument("input", help="File to decompress")
    decompress.add_argument("-o", "--output", help="Output path (default: INPUT without .gz)")
    decompress.add_argument("--max-len", type=int, help="Refuse output larger than this many bytes")

    inspect = sub.add_parser("inspect", help="Show gzip header fields")
    inspect.add_argument("input", help="Gzip file to inspect")
    inspect.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    return parser


def parse_extra_args(values: list[str]) -> bytes | None:
    """Turn ``["AB=hello", ...]`` into an extra-data blob."""
    if not values:
        return None
    fields = []
    for value in values:
        ident, sep, data = value.partition("=")
        if not sep or len(ident) != 2 or not ident.isascii():
            raise ValueError(f"Extra subfield must look like ID=VALUE with a 2-character ASCII ID: {value!r}")
        fields.append(((ord(ident[0]), ord(ident[1])), data.encode("utf-8")))
    return encode_extra_fields(fields)


def _read(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _write(path: str, data: bytes):
    with open(path, "wb") as f:
        f.write(data)


def _default_decompressed_path(path: str) -> str:
    if path.endswith(".gz"):
        return path[:-3]
    return path + ".out"


def cmd_compress(args, config) -> int:
    codec = GzipCodec.from_config(config)
    data = _read(args.input)
    out = codec.compress(
        data,
        filename=args.name,
        comment=args.comment,
        extra=parse_extra_args(args.extra),
    )
    output = args.output or args.input + ".gz"
    _write(output, out)
    logger.info("Compressed %s (%d bytes) -> %s (%d bytes)", args.input, len(data), output, len(out))
    return 0


def cmd_decompress(args, config) -> int:
    codec = GzipCodec.from_config(config)
    result = codec.decompress(_read(args.input))
    output = args.output or _default_decompressed_path(args.input)
    _write(output, result.data)
    logger.info("Decompressed %s -> %s (%d bytes)", args.input, output, result.length)
    return 0


def describe_header(data: bytes) -> dict:
    """Header fields of a gzip member as a JSON-friendly dict."""
    header = parse_gzip_header(data)

    def text(rng):
        return None if rng is None else bytes(header.view(rng)).decode("utf-8", errors="replace")

    extra = None
    if header.extra_fields is not None:
        extra = [
            {
                "id": bytes(f.subfield_id).decode("latin-1"),
                "offset": f.data_range.start,
                "length": len(f.data_range),
            }
            for f in header.extra_fields
        ]
    return {
        "flags": flags_repr(header.flags),
        "mtime": header.mtime,
        "xfl": header.xfl,
        "os": header.os,
        "filename": text(header.filename_range),
        "comment": text(header.comment_range),
        "extra": extra,
        "header_len": header.header_len,
        "compressed_len": len(data) - header.header_len - 8,
        "isize": int.from_bytes(data[-4:], "little"),
    }


def cmd_inspect(args, config) -> int:
    info = describe_header(_read(args.input))
    if args.output == "json":
        print(json.dumps(info, indent=2))
    else:
        for key, value in info.items():
            print(f"{key:<15} {value}")
    return 0


_COMMANDS = {
    "compress": cmd_compress,
    "decompress": cmd_decompress,
    "inspect": cmd_inspect,
}


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {
        "log_level": args.log_level,
        "compression_level": getattr(args, "level", None),
        "header_crc": getattr(args, "header_crc", None),
        "mtime": getattr(args, "mtime", None),
        "max_output_len": getattr(args, "max_len", None),
    }
    try:
        config = load_config(args.config, overrides)
    except (ValueError, OSError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return _COMMANDS[args.command](args, config)
    except GzipContainerError as e:
        print(f"Error: {e} [{e.kind.name}]", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
