"""Package-scoped CLI entrypoint.

This is the console entry target for installed EnhancePy.
"""

from __future__ import annotations

import argparse
import sys

from enhancepy.cli import CLI as runCLI


def main(argv=None) -> None:
    TOOL_DICT = {'run': runCLI}

    parser = argparse.ArgumentParser(
        prog='EnhancePy',
        description='EnhancePy command line interface',
        epilog='See the template configuration in enhancepy/configs for the available options.',
    )
    subparsers = parser.add_subparsers(dest='command', help='sub-command help')

    # Register subcommands up front so help output is complete.
    commands = {}
    for name, factory in TOOL_DICT.items():
        cli = factory(subparsers)
        cli.add_subparser_args()
        commands[name] = cli

    argv = sys.argv[1:] if argv is None else list(argv)
    if not argv:
        parser.print_help()
        return

    # Let argparse handle -h/--help and unknown commands.
    ns = parser.parse_args(argv)
    command = getattr(ns, 'command', None)
    if not command:
        parser.print_help()
        return

    cli = commands[command]
    args = cli.validate_args(vars(ns))
    cli.run(args)


if __name__ == "__main__":
    main()
