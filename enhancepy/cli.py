"""Command-line interface for EnhancePy.

Runs a multi-scale Hessian enhancement (sheetness or vesselness) on a NIfTI
image as described by an INI configuration file.

Example:
    EnhancePy run --cfg_path path/to/config.ini
"""

import argparse
import os

from enhancepy.core import runner


class CLI:
    def __init__(self, subparsers) -> None:
        """Initializes subparsers for input parameters

        :param subparsers: Parsers for each relevant module
        """
        self.subparsers = subparsers

    def validate_args(self, args):
        """Validate parsed args.

        master_cli.py passes a dict (via vars(...)); other callers may pass an
        argparse.Namespace. Support both.
        """
        if isinstance(args, dict):
            cfg_path = args.get('cfg_path', None)
        else:
            cfg_path = getattr(args, 'cfg_path', None)

        if cfg_path is None:
            raise ValueError(
                "No configuration file given.\n"
                "Pass --cfg_path path/to/config.ini (see enhancepy/configs for a template)."
            )

        cfg_path = str(cfg_path)
        if not os.path.exists(cfg_path):
            raise FileNotFoundError(
                f"Configuration file not found: {cfg_path}\n"
                f"Please check the path and try again."
            )

        if isinstance(args, dict):
            args['cfg_path'] = cfg_path
        else:
            setattr(args, 'cfg_path', cfg_path)
        return args

    def run(self, args):
        """Run computation using parsed user inputs"""
        return runner.run(args)

    def add_subparser_args(self) -> argparse._SubParsersAction:
        """Defines the `run` subparser.

        :return: the subparsers object with `run` registered
        """
        subparser = self.subparsers.add_parser("run",
                                               description="run a multi-scale enhancement",
                                               )

        subparser.add_argument("--cfg_path", nargs=None, type=str,
                               dest='cfg_path',
                               required=False,
                               help="The path to the configuration File")

        subparser.add_argument(
            "--output_mode",
            type=str,
            required=False,
            default=None,
            choices=["quiet", "standard", "verbose", "debug"],
            help="Terminal output mode (overrides config): quiet | standard | verbose | debug",
        )

        return self.subparsers
