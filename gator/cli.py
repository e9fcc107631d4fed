"""Entry point of the command-line program."""

from __future__ import annotations

import sys
from typing import Callable, List, Optional

from gator import commands, config
from gator.commands import Command, Commands, State
from gator.database import DatabaseError, connect
from gator.models import User

UserHandler = Callable[[State, Command, User], None]


def middleware_logged_in(handler: UserHandler) -> Callable[[State, Command], None]:
    """Wrap a handler so it receives the current user, failing when there is none."""

    def wrapped(state: State, command: Command) -> None:
        try:
            user = state.db.get_user(state.config.current_user_name)
        except DatabaseError as exc:
            raise commands.CommandError(
                f"user not logged in or doesn't exist: {exc}"
            ) from exc
        handler(state, command, user)

    return wrapped


def build_commands() -> Commands:
    """All the commands the program knows."""
    cmds = Commands()
    cmds.register("login", commands.login_handler)
    cmds.register("register", commands.register_handler)
    cmds.register("reset", commands.reset_handler)
    cmds.register("users", commands.users_handler)
    cmds.register("agg", commands.agg_handler)
    cmds.register("feeds", commands.feeds_handler)
    cmds.register("addfeed", middleware_logged_in(commands.add_feed_handler))
    cmds.register("follow", middleware_logged_in(commands.follow_handler))
    cmds.register("following", middleware_logged_in(commands.following_handler))
    cmds.register("unfollow", middleware_logged_in(commands.unfollow_handler))
    cmds.register("browse", middleware_logged_in(commands.browse_handler))
    return cmds


def main(argv: Optional[List[str]] = None) -> int:
    """Run one command; returns the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        cfg = config.read()
    except (OSError, ValueError) as exc:
        print(f"couldn't set current user: {exc}", file=sys.stderr)
        return 1
    try:
        db = connect(cfg.db_url)
    except DatabaseError as exc:
        print(f"error for opening DB {exc}", file=sys.stderr)
        return 1
    with db:
        if not args:
            print("no command provided", file=sys.stderr)
            return 1
        try:
            build_commands().run(State(cfg, db), Command(args[0], args[1:]))
        except (commands.CommandError, DatabaseError, OSError) as exc:
            print(f"error executing command: {exc}", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())