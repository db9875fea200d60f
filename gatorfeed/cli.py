"""Command-line entry point."""

from __future__ import annotations

import sys
from typing import Sequence

from .commands import Command, CommandError, get_commands
from .database import DatabaseError
from .state import new_state


def main(argv: Sequence[str] | None = None) -> int:
    """Run one command with its arguments; return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        state = new_state()
    except (OSError, ValueError, DatabaseError) as exc:
        print(exc)
        return 1

    with state:
        if not args:
            print("ERROR: Not enough arguments provided")
            return 1
        command = Command(args[0], tuple(args[1:]))
        try:
            get_commands().run(state, command)
        except (CommandError, DatabaseError, OSError, ValueError) as exc:
            print(exc)
            return 1
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())