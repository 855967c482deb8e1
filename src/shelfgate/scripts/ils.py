from __future__ import annotations

import argparse
import getpass
import sys
from collections.abc import Sequence
from typing import TextIO

from shelfgate.scripts.base import Script
from shelfgate.util.json import json_serializer


class StatusScript(Script):
    """Print the availability of records, by composite id, as JSON."""

    name = "shelfgate-status"

    @classmethod
    def arg_parser(cls) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description=cls.__doc__)
        parser.add_argument(
            "ids",
            nargs="+",
            metavar="ID",
            help='Composite record ids, e.g. "libA.12345"',
        )
        parser.add_argument(
            "--holding",
            help="Show full holdings instead of availability (only one id allowed)",
            action="store_true",
        )
        return parser

    def do_run(
        self,
        cmd_args: Sequence[str] | None = None,
        output: TextIO = sys.stdout,
    ) -> int:
        args = self.parse_command_line(cmd_args)
        router = self.services.ils.router()

        if args.holding:
            if len(args.ids) != 1:
                output.write("--holding takes exactly one id.\n")
                return 2
            result = router.get_holding(args.ids[0])
        else:
            result = router.get_statuses(args.ids)

        output.write(json_serializer(result, indent=2))
        output.write("\n")
        return 0


class PatronLoginScript(Script):
    """Log a patron in and print the patron record as JSON."""

    name = "shelfgate-login"

    @classmethod
    def arg_parser(cls) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description=cls.__doc__)
        parser.add_argument(
            "username",
            help='Username, optionally with the source, e.g. "libA.jdoe"',
        )
        parser.add_argument(
            "--password",
            help="The patron's password. Prompted for when not given.",
        )
        return parser

    def do_run(
        self,
        cmd_args: Sequence[str] | None = None,
        output: TextIO = sys.stdout,
    ) -> int:
        args = self.parse_command_line(cmd_args)
        password = args.password
        if password is None:
            password = getpass.getpass()

        patron = self.services.ils.router().patron_login(args.username, password)
        if patron is None:
            output.write(f"Login failed for {args.username}.\n")
            return 1

        output.write(json_serializer(patron, indent=2))
        output.write("\n")
        return 0


def status() -> None:
    sys.exit(StatusScript().run())


def login() -> None:
    sys.exit(PatronLoginScript().run())
