"""news-issue-index entry point

Usage:
    python -m issue_index serve
    python -m issue_index run
    python -m issue_index latest
    python -m issue_index init-db
"""

from __future__ import annotations

import sys

from issue_index.cli import COMMANDS, create_parser, run_command


def main() -> int:
    parser = create_parser()
    args = parser.parse_args()

    if args.command in COMMANDS:
        return run_command(args.command)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
