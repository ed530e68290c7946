#!/usr/bin/env python3
"""
zkcash.cli
==========

Developer tooling for the shielded pool: hash values exactly as the circuit
does, derive note commitments and nullifier hashes, inspect instruction
payloads and print the effective configuration.

Usage
-----
zkcash hash 1 2                         # poseidon([1, 2])
zkcash empty-root --depth 20            # root of an empty tree
zkcash commitment <secret> <nullifier>  # hash2(secret, nullifier)
zkcash nullifier <secret>               # hash1(secret)
zkcash decode-ix 0x0014                 # instruction payload -> JSON
zkcash config --config-file pool.toml --json

Numbers are decimal or 0x-hex and must be canonical field elements.
Errors print `code: message` to stderr and exit with status 2.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from . import config as zconfig
from .crypto.field import to_field, to_hex
from .crypto.poseidon import poseidon
from .errors import PoolError
from .instruction import Initialize, Shield, Withdraw, decode_instruction
from .merkle import empty_root
from .note import derive_commitment, derive_nullifier_hash
from .version import runtime_banner

app = typer.Typer(no_args_is_help=True, add_completion=False, help="zkcash shielded pool tooling")


# ----------------- helpers -----------------


def _fail(e: PoolError) -> NoReturn:
    typer.echo(str(e), err=True)
    raise typer.Exit(2)


def _field(value: str, what: str) -> int:
    try:
        return to_field(value, what=what)
    except PoolError as e:
        _fail(e)


def _emit(value: int, hex_only: bool) -> None:
    if hex_only:
        typer.echo(to_hex(value))
    else:
        typer.echo(f"{value}\n{to_hex(value)}")


def _parse_hex(s: str) -> bytes:
    h = s.strip()
    if h.lower().startswith("0x"):
        h = h[2:]
    try:
        return bytes.fromhex(h)
    except ValueError as e:
        raise typer.BadParameter(f"not hex: {s!r}") from e


def _ix_to_dict(ix: Any) -> Dict[str, Any]:
    if isinstance(ix, Initialize):
        return {"type": "initialize", "merkle_tree_height": ix.merkle_tree_height}
    if isinstance(ix, Shield):
        return {"type": "shield", "amount": ix.amount, "commitment": "0x" + ix.commitment.hex()}
    if isinstance(ix, Withdraw):
        return {
            "type": "withdraw",
            "amount": ix.amount,
            "root": "0x" + ix.root.hex(),
            "nullifier_hash": "0x" + ix.nullifier_hash.hex(),
            "recipient": "0x" + ix.recipient.hex(),
            "output_commitment": "0x" + ix.output_commitment.hex(),
            "proof_len": len(ix.proof),
        }
    raise TypeError(type(ix).__name__)


# ----------------- CLI -----------------


@app.callback(invoke_without_command=True)
def _meta(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-V", help="Print version and exit", is_eager=True),
) -> None:
    if version:
        typer.echo(runtime_banner())
        raise typer.Exit(0)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


@app.command("hash")
def hash_cmd(
    inputs: List[str] = typer.Argument(..., help="1..16 field elements (decimal or 0x-hex)"),
    hex_only: bool = typer.Option(False, "--hex", help="Print only the 0x-hex digest"),
) -> None:
    """Circom-compatible Poseidon hash of the inputs."""
    vals = [_field(v, f"input[{i}]") for i, v in enumerate(inputs)]
    try:
        out = poseidon(vals)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    _emit(out, hex_only)


@app.command("empty-root")
def empty_root_cmd(
    depth: Optional[int] = typer.Option(None, "--depth", "-d", help="Tree depth (default: configured default_depth)"),
    hex_only: bool = typer.Option(False, "--hex", help="Print only the 0x-hex root"),
) -> None:
    """Root of a tree whose leaves are all zero."""
    try:
        d = depth if depth is not None else zconfig.load().default_depth
        root = empty_root(d)
    except PoolError as e:
        _fail(e)
    _emit(root, hex_only)


@app.command("commitment")
def commitment_cmd(
    secret: str = typer.Argument(..., help="Note secret"),
    nullifier: str = typer.Argument(..., help="Note nullifier"),
    hex_only: bool = typer.Option(False, "--hex"),
) -> None:
    """Note commitment hash2(secret, nullifier)."""
    _emit(derive_commitment(_field(secret, "secret"), _field(nullifier, "nullifier")), hex_only)


@app.command("nullifier")
def nullifier_cmd(
    secret: str = typer.Argument(..., help="Note secret"),
    hex_only: bool = typer.Option(False, "--hex"),
) -> None:
    """Nullifier hash hash1(secret) revealed when the note is spent."""
    _emit(derive_nullifier_hash(_field(secret, "secret")), hex_only)


@app.command("decode-ix")
def decode_ix_cmd(
    payload: str = typer.Argument(..., help="Instruction payload as hex"),
) -> None:
    """Decode an instruction payload and print it as JSON."""
    try:
        ix = decode_instruction(_parse_hex(payload))
    except PoolError as e:
        _fail(e)
    typer.echo(json.dumps(_ix_to_dict(ix), indent=2))


@app.command("config")
def config_cmd(
    config_file: Optional[Path] = typer.Option(None, "--config-file", "-c", help="TOML or JSON config file"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Print the effective configuration (overrides > env > file > defaults)."""
    try:
        cfg = zconfig.load(config_file)
    except PoolError as e:
        _fail(e)
    d = cfg.to_dict()
    if as_json:
        typer.echo(json.dumps(d, indent=2, sort_keys=True))
        return
    t = Table(title="zkcash config", box=box.SIMPLE)
    t.add_column("Key")
    t.add_column("Value", overflow="fold")
    for k, v in d.items():
        t.add_row(k, str(v))
    Console().print(t)


def main() -> int:
    app()
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
