"""
Command line for a weave node.

Commands:
  keygen [--save SERVICE]          -> print a fresh encoded keypair (optionally store it in the OS keyring)
  public-key                       -> print the node public key
  ping                             -> ping the node
  version                          -> print the node version
  login ORGANIZATION SCOPES [--account ACCOUNT]
                                   -> log in and print the session summary

Connection settings come from WEAVE_HOST, WEAVE_PORT, WEAVE_PUBLIC_KEY,
WEAVE_PRIVATE_KEY, WEAVE_SEED, WEAVE_USE_TLS, WEAVE_TRANSPORT and
WEAVE_TIMEOUT. With --keyring SERVICE the private key may come from the OS
keystore instead of WEAVE_PRIVATE_KEY.

This is the only place where errors are turned into text and exit codes.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, Sequence

from weaveclient.core.config import ClientConfig
from weaveclient.core.exceptions import WeaveClientError
from weaveclient.network.client import WeaveClient
from weaveclient.security.keys import generate_keys
from weaveclient.security.keystore import save_private_key
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="weave-client", description="Talk to a weave node.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--keyring", metavar="SERVICE", help="load the private key from the OS keyring")
    sub = parser.add_subparsers(dest="command", required=True)

    keygen = sub.add_parser("keygen", help="generate a client keypair")
    keygen.add_argument("--save", metavar="SERVICE", help="store the private key in the OS keyring")
    keygen.add_argument("--force", action="store_true", help="store even if the keyring backend looks insecure")

    sub.add_parser("public-key", help="print the node public key")
    sub.add_parser("ping", help="ping the node")
    sub.add_parser("version", help="print the node version")

    login = sub.add_parser("login", help="log in and print the session")
    login.add_argument("organization")
    login.add_argument("scopes")
    login.add_argument("--account", help="account to log in as (defaults to the client public key)")
    return parser


def cmd_keygen(args) -> int:
    public_key, private_key = generate_keys()
    if args.save:
        save_private_key(args.save, public_key, private_key, force=args.force)
        logger.info("private key stored in keyring service %s", args.save)
        print(json.dumps({"publicKey": public_key}))
    else:
        print(json.dumps({"publicKey": public_key, "privateKey": private_key}))
    return 0


async def _run_remote(args, config: ClientConfig) -> int:
    async with WeaveClient(config) as client:
        if args.command == "public-key":
            result = await client.public_key()
        elif args.command == "ping":
            result = await client.ping()
        elif args.command == "version":
            result = await client.version()
        else:
            account = args.account or config.client_public_key
            session = await client.login(args.organization, account, args.scopes)
            result = {
                "organization": session.organization,
                "account": session.account,
                "scopes": session.scopes,
                "apiKey": session.api_key,
                "secretExpireUTC": session.secret_expire_utc,
                "integrityChecks": session.integrity_checks,
            }
    print(json.dumps(result))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)

    try:
        if args.command == "keygen":
            return cmd_keygen(args)
        config = ClientConfig.from_env(keyring_service=args.keyring)
        return asyncio.run(_run_remote(args, config))
    except (WeaveClientError, ValueError, RuntimeError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
