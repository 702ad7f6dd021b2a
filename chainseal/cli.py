#!/usr/bin/env python3
"""
chainseal CLI
Command-line interface for viewing, extending and tampering with a block chain.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from click.core import ParameterSource

from chainseal import __version__
from chainseal.config import DEFAULT_CHAIN_FILE, Settings, parse_mode
from chainseal.core import HashMode
from chainseal.exceptions import ChainError, ConfigError
from chainseal.log import Blockchain, ChainStore
from chainseal.timestamp import DEFAULT_TIMEOUT, DEFAULT_TSA_URL, TimestampClient
from chainseal.validator import ChainValidator, Verdict
from chainseal.verify import DEFAULT_AUTHORITY_KEY, SignatureVerifier


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def open_chain(settings: Settings) -> Blockchain:
    """Load the chain described by `settings`, creating it on first run."""
    verifier = SignatureVerifier(settings.authority_key) if settings.sign else None
    signer = TimestampClient(settings.tsa_url, timeout=settings.timeout) if settings.sign else None
    return Blockchain.load_or_init(
        ChainStore(settings.chain_file, persist_index=settings.persist_index),
        mode=settings.mode,
        signer=signer,
        validator=ChainValidator(settings.mode, verifier),
    )


def print_chain(chain: Blockchain, show_reasons: bool = False) -> None:
    for report in chain.reports():
        line = f"Block #{report.index} ({report.block.hash[:5]}): {report.block.data} [{report.label}]"
        if show_reasons and report.reasons:
            line += f" ({', '.join(report.reasons)})"
        click.echo(line)


def _chain(ctx: click.Context) -> Blockchain:
    if "chain" not in ctx.obj:
        try:
            ctx.obj["chain"] = open_chain(ctx.obj["settings"])
        except ChainError as e:
            _fail(str(e))
    return ctx.obj["chain"]


def add_block(chain: Blockchain, data: str) -> None:
    try:
        asyncio.run(chain.append_block(data))
    except ChainError as e:
        click.echo(f"Error: block not added: {e}", err=True)
        return
    click.echo(f"Block added. New Length: {len(chain)}")


def remove_block(chain: Blockchain, index: int) -> bool:
    try:
        chain.remove_block_at(index)
    except IndexError:
        click.echo("Invalid index.", err=True)
        return False
    click.echo(f"Block #{index} removed.")
    return True


def modify_block(chain: Blockchain, index: int, data: str) -> bool:
    try:
        chain.edit_block_data_at(index, data)
    except IndexError:
        click.echo("Invalid index.", err=True)
        return False
    click.echo(f"Block #{index} modified.")
    return True


@click.group()
@click.version_option(version=__version__)
@click.option('--file', '-f', 'chain_file', type=click.Path(dir_okay=False), default=DEFAULT_CHAIN_FILE,
              show_default=True, help='Chain snapshot file [env: CHAINSEAL_FILE]')
@click.option('--mode', type=click.Choice([m.value for m in HashMode]), default=HashMode.SIGNED.value,
              show_default=True, help='Fields covered by block hashes [env: CHAINSEAL_MODE]')
@click.option('--tsa-url', default=DEFAULT_TSA_URL, show_default=True,
              help='Timestamping authority endpoint [env: CHAINSEAL_TSA_URL]')
@click.option('--authority-key', default=DEFAULT_AUTHORITY_KEY,
              help='Hex DER public key of the timestamping authority [env: CHAINSEAL_AUTHORITY_KEY]')
@click.option('--timeout', type=click.FloatRange(min=0, min_open=True), default=DEFAULT_TIMEOUT,
              show_default=True, help='Authority request timeout in seconds [env: CHAINSEAL_TIMEOUT]')
@click.option('--persist-index', is_flag=True,
              help='Write an explicit index field for every block [env: CHAINSEAL_PERSIST_INDEX]')
@click.option('--sign/--no-sign', default=True, show_default=True,
              help='Request an authority signature for new blocks [env: CHAINSEAL_SIGN]')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, chain_file, mode, tsa_url, authority_key, timeout, persist_index, sign, verbose):
    """chainseal: tamper-evident block chain with authority timestamps."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        _fail(str(e))

    # Command line options override the environment.
    overrides = {
        "chain_file": Path(chain_file),
        "mode": parse_mode(mode),
        "tsa_url": tsa_url,
        "authority_key": authority_key.strip(),
        "timeout": timeout,
        "persist_index": persist_index,
        "sign": sign,
    }
    for name, value in overrides.items():
        if ctx.get_parameter_source(name) is ParameterSource.COMMANDLINE:
            setattr(settings, name, value)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@click.pass_context
def view(ctx):
    """Print every block with its verdict."""
    print_chain(_chain(ctx))


@cli.command()
@click.pass_context
def verify(ctx):
    """Validate the chain; exit with status 1 if it is broken."""
    chain = _chain(ctx)
    print_chain(chain, show_reasons=True)

    verdicts = chain.validate()
    if Verdict.INVALID in verdicts:
        first = verdicts.index(Verdict.INVALID)
        click.echo(f"FAILED: chain broken at block #{first}", err=True)
        sys.exit(1)
    click.echo(f"VERIFIED: {len(verdicts)} blocks")


@cli.command()
@click.argument('data')
@click.pass_context
def add(ctx, data):
    """Append a block holding DATA."""
    chain = _chain(ctx)
    length = len(chain)
    add_block(chain, data)
    if len(chain) == length:
        sys.exit(1)


@cli.command()
@click.argument('index', type=int)
@click.pass_context
def remove(ctx, index):
    """Remove the block at INDEX."""
    if not remove_block(_chain(ctx), index):
        sys.exit(1)


@cli.command()
@click.argument('index', type=int)
@click.argument('data')
@click.pass_context
def modify(ctx, index, data):
    """Overwrite the data of block INDEX without rehashing it."""
    if not modify_block(_chain(ctx), index, data):
        sys.exit(1)


@cli.command()
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Save to file instead of stdout')
@click.option('--canonical', is_flag=True, help='Emit canonical JSON (RFC 8785) of the blocks only')
@click.pass_context
def export(ctx, output, canonical):
    """Export the chain with its verdicts."""
    chain = _chain(ctx)
    if canonical:
        payload = chain.serialize().decode('utf-8')
    else:
        payload = json.dumps(chain.export_transcript(), indent=2)

    if output:
        Path(output).write_text(payload)
        click.echo(f"Chain exported to {output}")
    else:
        click.echo(payload)


@cli.command()
@click.pass_context
def pubkey(ctx):
    """Fetch the timestamping authority's public key."""
    settings = ctx.obj["settings"]
    client = TimestampClient(settings.tsa_url, timeout=settings.timeout)
    try:
        key = asyncio.run(client.fetch_public_key())
    except ChainError as e:
        _fail(str(e))
    click.echo(key)


@cli.command()
@click.pass_context
def menu(ctx):
    """Interactive menu."""
    chain = _chain(ctx)
    while True:
        click.echo("\nBlockchain")
        click.echo("1. View Blockchain")
        click.echo("2. Add Block")
        click.echo("3. Remove Block")
        click.echo("4. Modify Block")
        click.echo("5. Exit")

        choice = click.prompt(">", default="", show_default=False, prompt_suffix=" ")
        click.echo("===============================")

        if choice == "1":
            print_chain(chain)
        elif choice == "2":
            add_block(chain, click.prompt("Block Data", prompt_suffix=": "))
        elif choice == "3":
            remove_block(chain, click.prompt("Block Index", type=int, prompt_suffix=": "))
        elif choice == "4":
            index = click.prompt("Block Index", type=int, prompt_suffix=": ")
            modify_block(chain, index, click.prompt("New Block Data", prompt_suffix=": "))
        elif choice == "5":
            return
        else:
            click.echo("Invalid choice.", err=True)


if __name__ == '__main__':
    cli()
