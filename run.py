"""Command-line entry point for the 6502 emulator.

Loads a raw binary image into a flat 64K RAM, points the reset vector at it
and runs until the program executes BRK.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from py6502.bus import MemoryError
from py6502.cpu import CPUError
from py6502.loader import ProgramFormatError
from py6502.system import MachineConfig, create_machine
from py6502.utils.debug import KNOWN_CATEGORIES, configure


def _int_arg(text: str) -> int:
    try:
        return int(text, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {text}") from exc


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run.py",
        description="MOS 6502 emulator",
    )
    parser.add_argument(
        "program",
        type=Path,
        help="Raw binary image to load",
    )
    parser.add_argument(
        "--load-address",
        type=_int_arg,
        default=0x8000,
        help="Address the image is copied to (default: 0x8000)",
    )
    parser.add_argument(
        "--reset-vector",
        type=_int_arg,
        default=None,
        help="Entry point written to 0xFFFC (default: the load address)",
    )
    parser.add_argument(
        "--max-instructions",
        type=_int_arg,
        default=None,
        help="Stop after this many instructions even without BRK",
    )
    parser.add_argument(
        "--trace",
        type=_int_arg,
        default=0,
        metavar="N",
        help="Print the last N executed instructions after the run",
    )
    parser.add_argument(
        "--debug",
        metavar="CATEGORIES",
        default=None,
        help=f"Comma separated debug categories ({','.join(KNOWN_CATEGORIES)},all); overrides PY6502_DEBUG",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not args.program.exists():
        parser.error(f"Program file not found: {args.program}")
    if args.max_instructions is not None and args.max_instructions < 0:
        parser.error("--max-instructions must not be negative")
    if args.trace < 0:
        parser.error("--trace must not be negative")
    if args.debug is not None:
        configure(args.debug)

    reset_vector = args.reset_vector if args.reset_vector is not None else args.load_address
    config = MachineConfig(
        program_image=args.program.read_bytes(),
        load_address=args.load_address,
        reset_vector=reset_vector,
        trace_capacity=args.trace,
    )
    try:
        machine = create_machine(config)
        executed = machine.run(args.max_instructions)
    except (CPUError, MemoryError, ProgramFormatError) as exc:
        parser.exit(1, f"run.py: {exc}\n")

    if machine.trace is not None:
        for line in machine.trace.format_entries():
            print(line)
    for line in machine.cpu.format_stats():
        print(line)
    status = "halted" if machine.cpu.halted else "stopped"
    print(f"{status} after {executed} instructions")
    return 0


if __name__ == "__main__":
    sys.exit(main())
