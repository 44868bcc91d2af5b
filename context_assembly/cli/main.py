"""CLI: context-assembly config validate|show, assemble."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys

import yaml

from ..config import load_config, validate_config
from ..core.assembler import ContextAssembler
from ..core.lore_matcher import LoreMatcher
from ..loaders import load_persona, load_request, message_to_dict


def cmd_config_validate(args):
    """Validate the config file."""
    config = load_config(args.config)
    errors = validate_config(config)
    if errors:
        print("Config validation errors:")
        for e in errors:
            print(f"  - {e}")
        sys.exit(1)
    print("Config is valid.")


def cmd_config_show(args):
    """Print the effective config as YAML."""
    config = load_config(args.config)
    print(yaml.safe_dump(dataclasses.asdict(config), sort_keys=False), end="")


def cmd_assemble(args):
    """Assemble a request file and print the resulting messages."""
    config = load_config(args.config)
    if args.limit:
        config.token_limit = args.limit

    persona = load_persona(args.persona) if args.persona else None
    request = load_request(args.request)

    # Auto-select lore from the persona's lore book when the request has none
    if persona is not None and persona.lore_book and not request.lore_entries:
        request.lore_entries = LoreMatcher(persona.lore_book).match(
            [*request.history, request.input]
        )

    assembler = ContextAssembler(config=config, persona=persona)
    assembled = asyncio.run(assembler.assemble(request))

    if args.json:
        print(json.dumps({
            "messages": [message_to_dict(m) for m in assembled.messages],
            "used_tokens": assembled.used_tokens,
            "token_limit": assembled.token_limit,
            "budget_breakdown": assembled.budget_breakdown,
        }, indent=2, ensure_ascii=False))
        return

    for i, message in enumerate(assembled.messages):
        tag = f" [{message.tag.value}]" if message.tag else ""
        print(f"--- {i:>3} {message.role.value}{tag}")
        print(message.content)
    print()
    print(f"Used tokens: {assembled.used_tokens:,} / {assembled.token_limit:,}")
    for stage, tokens in assembled.budget_breakdown.items():
        print(f"  {stage:<14} {tokens:>8,}")


def main():
    parser = argparse.ArgumentParser(
        prog="context-assembly",
        description="Assemble budgeted LLM prompts from persona, history, memory and lore",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")

    # assemble
    assemble_parser = subparsers.add_parser("assemble", help="Assemble a request file")
    assemble_parser.add_argument("request", help="Request file (YAML or JSON)")
    assemble_parser.add_argument("--persona", "-p", help="Persona file (YAML or JSON)")
    assemble_parser.add_argument("--limit", type=int, help="Token limit override")
    assemble_parser.add_argument("--json", action="store_true", help="Print JSON output")

    # config
    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")
    config_sub.add_parser("show", help="Show effective config as YAML")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "assemble":
        cmd_assemble(args)
    elif args.command == "config":
        if args.config_command == "validate":
            cmd_config_validate(args)
        elif args.config_command == "show":
            cmd_config_show(args)
        else:
            print("Usage: context-assembly config validate|show")
            sys.exit(1)


if __name__ == "__main__":
    main()
