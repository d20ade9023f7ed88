"""``python -m mailing_dispatch INPUT OUTPUT --agent ID ...``"""
from __future__ import annotations

import sys

from . import cli

PROG = "python -m mailing_dispatch"


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if args:
        return cli.main(args, prog=PROG)

    # a bare invocation gets the usage text rather than an argparse error
    cli.build_parser(prog=PROG).print_help()
    return 2


if __name__ == "__main__":  # pragma: no cover - module entry point
    sys.exit(main())
