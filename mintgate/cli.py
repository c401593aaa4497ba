# mintgate/cli.py
# Operator tooling: publish allowlist roots, hand out proofs, sanity-check profiles.

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

import click

from .allowlist import MerkleTree
from .config import load_profile
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def read_addresses(path: str) -> List[str]:
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.lstrip().startswith("#")]


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output.")
def main(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command("merkle-root")
@click.argument("address_file", type=click.Path(exists=True, dir_okay=False))
def merkle_root(address_file: str) -> None:
    """Print the allowlist root for ADDRESS_FILE (one address per line)."""
    addresses = read_addresses(address_file)
    tree = MerkleTree(addresses)
    logger.info("built tree over %d addresses", len(addresses))
    click.echo("0x" + tree.root.hex())


@main.command("merkle-proof")
@click.argument("address_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("address")
def merkle_proof(address_file: str, address: str) -> None:
    """Print ADDRESS's proof against the tree built from ADDRESS_FILE, as JSON."""
    tree = MerkleTree(read_addresses(address_file))
    try:
        proof = tree.proof(address)
    except KeyError as exc:
        raise click.ClickException(str(exc.args[0])) from exc
    click.echo(json.dumps(["0x" + node.hex() for node in proof]))


@main.command("check-profile")
@click.argument("profile_file", type=click.Path(exists=True, dir_okay=False))
def check_profile(profile_file: str) -> None:
    """Validate a JSON deployment profile and summarise its channels."""
    try:
        profile = load_profile(profile_file)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"{profile.name} ({profile.symbol}): max supply {profile.max_supply}, {profile.payment_mode.value}")
    for channel, state in profile.channels.items():
        click.echo(
            f"  {channel.value:8} active={state.active} price={state.price} "
            f"max_per_address={state.max_per_address} sub_cap={state.sub_cap}"
        )
