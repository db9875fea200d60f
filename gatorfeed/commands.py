"""The commands the program understands and how they are dispatched."""

from __future__ import annotations

import functools
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Callable, Sequence

from .models import User
from .rss import scrape_feeds
from .state import State

Handler = Callable[[State, "Command"], None]
UserHandler = Callable[[State, "Command", User], None]


class CommandError(Exception):
    """A command was unknown or given the wrong arguments."""


@dataclass(frozen=True)
class Command:
    name: str
    args: Sequence[str] = ()


@dataclass
class Commands:
    """A registry mapping command names to their handlers."""

    handlers: dict[str, Handler] = field(default_factory=dict)

    def register(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    def run(self, state: State, command: Command) -> None:
        try:
            handler = self.handlers[command.name]
        except KeyError:
            raise CommandError(f'command "{command.name}" does not exist') from None
        handler(state, command)


def logged_in(handler: UserHandler) -> Handler:
    """Wrap a handler so it receives the current user, which must exist."""

    @functools.wraps(handler)
    def wrapper(state: State, command: Command) -> None:
        user = state.db.get_user(state.config.current_user_name)
        handler(state, command, user)

    return wrapper


_UNIT_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_COMPONENT = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]*)")
_INTEGER = re.compile(r"[+-]?\d+")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1h30m"``, ``"1.5s"`` or ``"250ms"``."""
    invalid = ValueError(f'time: invalid duration "{text}"')
    body = text
    negative = False
    if body and body[0] in "+-":
        negative = body[0] == "-"
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise invalid

    total = Fraction(0)
    position = 0
    while position < len(body):
        match = _COMPONENT.match(body, position)
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            raise invalid
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _UNIT_NANOSECONDS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        amount = Fraction(int(whole or "0"))
        if fraction:
            amount += Fraction(int(fraction), 10 ** len(fraction))
        total += amount * _UNIT_NANOSECONDS[unit]
        position = match.end()

    try:
        result = timedelta(microseconds=int(total / 1000))
    except OverflowError:
        raise invalid from None
    return -result if negative else result


def _format_duration(value: timedelta) -> str:
    micros = value // timedelta(microseconds=1)
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros < 1_000:
        return f"{sign}{micros}\u00b5s"
    if micros < 1_000_000:
        millis, rest = divmod(micros, 1_000)
        digits = f".{rest:03d}".rstrip("0") if rest else ""
        return f"{sign}{millis}{digits}ms"
    hours, rest = divmod(micros, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    seconds, rest = divmod(rest, 1_000_000)
    digits = f".{rest:06d}".rstrip("0") if rest else ""
    text = f"{seconds}{digits}s"
    if hours:
        text = f"{hours}h{minutes}m{text}"
    elif minutes:
        text = f"{minutes}m{text}"
    return sign + text


def _now() -> datetime:
    return datetime.now(timezone.utc)


def handle_login(state: State, command: Command) -> None:
    if not command.args:
        raise CommandError("ERROR: expected argument `username`")
    user = state.db.get_user(command.args[0])
    if user.name != command.args[0]:
        raise CommandError("ERROR: user does not exist")
    state.config.set_user(user.name)
    print(f"User has been set to '{user.name}'")


def handle_register(state: State, command: Command) -> None:
    if not command.args:
        raise CommandError("ERROR: expected argument `name`")
    now = _now()
    user = state.db.create_user(uuid.uuid4(), now, now, command.args[0])
    state.config.set_user(user.name)
    print(
        "New user", user.name,
        "created at", user.created_at,
        "updated at", user.updated_at,
        "with id", user.id,
    )


def handle_reset(state: State, command: Command) -> None:
    state.db.delete_users()
    print("users table has been successfully reset")


def handle_users(state: State, command: Command) -> None:
    for user in state.db.get_users():
        suffix = " (current)" if user.name == state.config.current_user_name else ""
        print(f"* {user.name}{suffix}")


def handle_agg(state: State, command: Command) -> None:
    """Scrape one feed per interval, forever, until scraping fails."""
    if not command.args:
        raise CommandError("ERROR: expected argument `time_between_reqs`")
    interval = parse_duration(command.args[0])
    if interval <= timedelta(0):
        raise CommandError("ERROR: time between requests must be positive")
    print("Collecting feeds every", _format_duration(interval))

    seconds = interval.total_seconds()
    next_tick = time.monotonic()
    while True:
        scrape_feeds(state.db)
        next_tick += seconds
        now = time.monotonic()
        if next_tick > now:
            time.sleep(next_tick - now)
        else:
            next_tick = now


def handle_add_feed(state: State, command: Command, user: User) -> None:
    if len(command.args) < 2:
        raise CommandError("ERROR: expected arguments `name` and `url`")
    name, url = command.args[0], command.args[1]
    now = _now()
    feed = state.db.create_feed(uuid.uuid4(), now, now, name, url, user.id)
    now = _now()
    state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    print(feed)


def handle_feeds(state: State, command: Command) -> None:
    for feed in state.db.get_feeds_view():
        print("Feed", feed.name, "with url", feed.url, "created by", feed.user_name)


def handle_follow(state: State, command: Command, user: User) -> None:
    if not command.args:
        raise CommandError("ERROR: expected argument `url`")
    feed = state.db.get_feed_by_url(command.args[0])
    now = _now()
    follow = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    print("Feed:", follow.feed_name, "User:", follow.user_name)


def handle_following(state: State, command: Command, user: User) -> None:
    for follow in state.db.get_feed_follows_for_user(user.name):
        print("-", follow.feed_name)


def handle_unfollow(state: State, command: Command, user: User) -> None:
    if not command.args:
        raise CommandError("ERROR: expected argument `url`")
    feed = state.db.get_feed_by_url(command.args[0])
    state.db.delete_feed_follow(user.id, feed.id)


def handle_browse(state: State, command: Command, user: User) -> None:
    """Show the newest posts of followed feeds; the optional argument is the count."""
    limit = 2
    if command.args and _INTEGER.fullmatch(command.args[0]):
        limit = int(command.args[0])
    for post in state.db.get_posts_for_user(user.id, limit):
        print(post)


def get_commands() -> Commands:
    commands = Commands()
    commands.register("login", handle_login)
    commands.register("register", handle_register)
    commands.register("reset", handle_reset)
    commands.register("users", handle_users)
    commands.register("agg", handle_agg)
    commands.register("addfeed", logged_in(handle_add_feed))
    commands.register("feeds", handle_feeds)
    commands.register("follow", logged_in(handle_follow))
    commands.register("following", logged_in(handle_following))
    commands.register("unfollow", logged_in(handle_unfollow))
    commands.register("browse", logged_in(handle_browse))
    return commands