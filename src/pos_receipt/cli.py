#!/usr/bin/env python3

from pos_receipt.barcode import BarcodeEncoder, BarcodeSpec, HriFont, HriPosition, Symbology
from pos_receipt.config import load_receipt_config
from pos_receipt.errors import BarcodeValidationError, ImageLoadError
from pos_receipt.db import init_db
from pos_receipt.escpos import to_hex_string
from pos_receipt.models import Config
from pos_receipt.printer import DevicePrinter
from pos_receipt.raster import RasterEncoder, mode_from_name
from pos_receipt.receipt import ReceiptComposer, ReceiptDocument

import argparse
import asyncio
import sys
import yaml
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from tabulate import tabulate


def open_db(path: Path):
    """Create engine + session factory for the settings database."""
    engine = create_engine(f"sqlite:///{path}", future=True)
    init_db(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def load_document(path: Path) -> ReceiptDocument:
    """YAML or JSON (JSON is valid YAML)."""
    with path.open(encoding="utf-8") as f:
        return ReceiptDocument.model_validate(yaml.safe_load(f))


def emit(data: bytes, args) -> int:
    if args.out:
        args.out.write_bytes(data)
        print(f"Wrote {len(data)} bytes to {args.out}")
    elif args.device:
        if not DevicePrinter(args.device).send(data):
            print(f"Printing to {args.device} failed", file=sys.stderr)
            return 1
        print(f"Sent {len(data)} bytes to {args.device}")
    else:
        print(to_hex_string(data))
    return 0


def add_output_args(parser):
    out = parser.add_mutually_exclusive_group()
    out.add_argument("--out", type=Path, help="Write the command buffer to a file")
    out.add_argument("--device", help="Send the command buffer to a printer device")


# ------------------------------------------------------------
# Commands
# ------------------------------------------------------------
def cmd_receipt(args) -> int:
    Session = open_db(args.db)
    with Session() as session:
        config = load_receipt_config(session)
    doc = load_document(args.doc)
    data = asyncio.run(ReceiptComposer(config=config).compose(doc, args.logo))
    return emit(data, args)


def cmd_barcode(args) -> int:
    spec = BarcodeSpec(
        symbology=args.type,
        height_dots=args.height,
        module_width=args.width,
        hri_position=args.hri,
        hri_font=args.font,
        line_feeds=args.feeds,
    )
    try:
        data = BarcodeEncoder().encode(args.payload, spec)
    except BarcodeValidationError as e:
        print(f"Invalid barcode data: {e}", file=sys.stderr)
        return 2
    return emit(data, args)


def cmd_logo(args) -> int:
    encoder = RasterEncoder()
    mode = mode_from_name(args.mode, args.level, args.line_skip)
    try:
        data = asyncio.run(encoder.encode_url(args.image, args.width, mode))
    except ImageLoadError as e:
        print(e, file=sys.stderr)
        return 1
    return emit(data, args)


def cmd_config(args) -> int:
    Session = open_db(args.db)
    with Session() as session:
        if args.action == "list":
            rows = [(c.key, c.type, c.value) for c in Config.all(session)]
            print(tabulate(rows, headers=["key", "type", "value"]))
        elif args.action == "get":
            value = Config.get(session, args.key)
            if value is None:
                print(f"{args.key} is not set", file=sys.stderr)
                return 1
            print(value)
        elif args.action == "set":
            value = args.value.replace("\\n", "\n")
            if args.key == Config.KEY_CHUNK_SIZE:
                if not value.isdigit():
                    print(f"{args.key} must be a positive integer", file=sys.stderr)
                    return 2
                value = int(value)
            Config.set(session, args.key, value)
        elif args.action == "unset":
            Config.delete(session, args.key)
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        description="ESC/POS receipt, barcode and logo tools"
    )
    sub = parser.add_subparsers(dest="cmd")

    # ------------------------------------------------------------
    # receipt
    # ------------------------------------------------------------
    rec = sub.add_parser("receipt", help="Compose a receipt from a YAML/JSON order")
    rec.add_argument("doc", type=Path, help="Order document (YAML or JSON)")
    rec.add_argument("--logo", help="Logo URL or image path")
    rec.add_argument("--db", type=Path, default=Path("pos.db"), help="Settings DB file (SQLite)")
    add_output_args(rec)
    rec.set_defaults(func=cmd_receipt)

    # ------------------------------------------------------------
    # barcode
    # ------------------------------------------------------------
    bar = sub.add_parser("barcode", help="Encode a barcode")
    bar.add_argument("payload")
    bar.add_argument("--type", default=Symbology.CODE128.value,
                     choices=[s.value for s in Symbology])
    bar.add_argument("--height", type=int, default=162, help="Height in dots (1-255)")
    bar.add_argument("--width", type=int, default=3, help="Module width (2-6)")
    bar.add_argument("--hri", default=HriPosition.BELOW.value,
                     choices=[h.value for h in HriPosition])
    bar.add_argument("--font", default=HriFont.A.value, choices=[f.value for f in HriFont])
    bar.add_argument("--feeds", type=int, default=None, help="Line feeds after the barcode")
    add_output_args(bar)
    bar.set_defaults(func=cmd_barcode)

    # ------------------------------------------------------------
    # logo
    # ------------------------------------------------------------
    logo = sub.add_parser("logo", help="Convert an image into a raster command")
    logo.add_argument("image", help="Image URL or path")
    logo.add_argument("--width", type=int, default=None, help="Maximum width in dots")
    logo.add_argument("--mode", default="dithered", choices=["threshold", "dithered", "fast"])
    logo.add_argument("--level", type=int, default=None, help="Threshold level (0-255)")
    logo.add_argument("--line-skip", type=int, default=None, help="Fast mode: keep every Nth row")
    add_output_args(logo)
    logo.set_defaults(func=cmd_logo)

    # ------------------------------------------------------------
    # config
    # ------------------------------------------------------------
    cfg = sub.add_parser("config", help="Show or change stored settings")
    cfg.add_argument("--db", type=Path, default=Path("pos.db"), help="Settings DB file (SQLite)")
    cfg_sub = cfg.add_subparsers(dest="action", required=True)
    cfg_sub.add_parser("list")
    get = cfg_sub.add_parser("get")
    get.add_argument("key", choices=Config.KEYS)
    set_ = cfg_sub.add_parser("set")
    set_.add_argument("key", choices=Config.KEYS)
    set_.add_argument("value", help="Use \\n to separate footer lines")
    unset = cfg_sub.add_parser("unset")
    unset.add_argument("key", choices=Config.KEYS)
    cfg.set_defaults(func=cmd_config)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
