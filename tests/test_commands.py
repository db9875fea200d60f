import json
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from gatorfeed.commands import (
    Command,
    CommandError,
    Commands,
    get_commands,
    logged_in,
    parse_duration,
)
from gatorfeed.config import read_config
from gatorfeed.database import DuplicateError, NotFoundError
from gatorfeed.state import new_state


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"current_user_name": "", "connection_string": str(tmp_path / "gator.db")}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def state(config_path):
    with new_state(config_path) as current:
        yield current


def run(state, name, *args):
    get_commands().run(state, Command(name, args))


def test_registered_command_names():
    assert set(get_commands().handlers) == {
        "login", "register", "reset", "users", "agg", "addfeed",
        "feeds", "follow", "following", "unfollow", "browse",
    }


def test_unknown_command(state):
    with pytest.raises(CommandError) as excinfo:
        run(state, "nope")
    assert 'command "nope" does not exist' in str(excinfo.value)
    assert "nope" not in get_commands().handlers
    assert state.db.get_users() == []


def test_register_and_run_custom_handler(state):
    seen = []
    commands = Commands()
    commands.register("echo", lambda s, c: seen.append(list(c.args)))
    commands.run(state, Command("echo", ("a", "b")))
    assert seen == [["a", "b"]]


def test_logged_in_passes_current_user(state):
    run(state, "register", "alice")
    seen = []
    logged_in(lambda s, c, user: seen.append(user.name))(state, Command("x"))
    assert seen == ["alice"]


def test_register_sets_current_user(state, config_path, capsys):
    run(state, "register", "alice")
    assert "New user alice" in capsys.readouterr().out
    assert state.config.current_user_name == "alice"
    assert read_config(config_path).current_user_name == "alice"


def test_register_requires_name(state):
    with pytest.raises(CommandError) as excinfo:
        run(state, "register")
    assert "expected argument `name`" in str(excinfo.value)
    assert state.db.get_users() == []


def test_register_duplicate(state):
    run(state, "register", "alice")
    with pytest.raises(DuplicateError):
        run(state, "register", "alice")
    assert [user.name for user in state.db.get_users()] == ["alice"]


def test_login(state, config_path, capsys):
    run(state, "register", "alice")
    run(state, "register", "bob")
    capsys.readouterr()
    run(state, "login", "alice")
    assert capsys.readouterr().out == "User has been set to 'alice'\n"
    assert read_config(config_path).current_user_name == "alice"


def test_login_errors(state, config_path):
    with pytest.raises(CommandError) as excinfo:
        run(state, "login")
    assert "expected argument `username`" in str(excinfo.value)
    with pytest.raises(NotFoundError):
        run(state, "login", "ghost")
    assert state.config.current_user_name == ""
    assert read_config(config_path).current_user_name == ""


def test_users_marks_current(state, capsys):
    run(state, "register", "alice")
    run(state, "register", "bob")
    capsys.readouterr()
    run(state, "users")
    assert capsys.readouterr().out.splitlines() == ["* alice", "* bob (current)"]
    assert [user.name for user in state.db.get_users()] == ["alice", "bob"]
    assert state.config.current_user_name == "bob"


def test_reset(state, capsys):
    run(state, "register", "alice")
    run(state, "reset")
    assert "users table has been successfully reset" in capsys.readouterr().out
    assert state.db.get_users() == []


def test_addfeed_requires_login(state):
    with pytest.raises(NotFoundError):
        run(state, "addfeed", "Example", "https://example.com/rss")
    assert state.db.get_feeds_view() == []


def test_addfeed_requires_two_arguments(state):
    run(state, "register", "alice")
    with pytest.raises(CommandError) as excinfo:
        run(state, "addfeed", "Example")
    assert "`name` and `url`" in str(excinfo.value)
    assert state.db.get_feeds_view() == []


def test_addfeed_follows_and_lists(state, capsys):
    run(state, "register", "alice")
    capsys.readouterr()
    run(state, "addfeed", "Example", "https://example.com/rss")
    out = capsys.readouterr().out
    assert out.startswith("{ID:")
    assert "Name:Example Url:https://example.com/rss" in out
    feed = state.db.get_feed_by_url("https://example.com/rss")
    assert feed.name == "Example"
    assert [f.feed_name for f in state.db.get_feed_follows_for_user("alice")] == ["Example"]

    run(state, "following")
    assert capsys.readouterr().out == "- Example\n"

    run(state, "feeds")
    assert capsys.readouterr().out == "Feed Example with url https://example.com/rss created by alice\n"
    assert len(state.db.get_feeds_view()) == 1


def test_follow_and_unfollow(state, capsys):
    run(state, "register", "alice")
    run(state, "addfeed", "Example", "https://example.com/rss")
    run(state, "register", "bob")
    capsys.readouterr()

    run(state, "follow", "https://example.com/rss")
    assert capsys.readouterr().out == "Feed: Example User: bob\n"
    assert [f.feed_name for f in state.db.get_feed_follows_for_user("bob")] == ["Example"]

    run(state, "unfollow", "https://example.com/rss")
    assert state.db.get_feed_follows_for_user("bob") == []
    assert len(state.db.get_feed_follows_for_user("alice")) == 1


def test_follow_unknown_feed(state):
    run(state, "register", "alice")
    with pytest.raises(NotFoundError):
        run(state, "follow", "https://example.com/none")
    with pytest.raises(CommandError) as excinfo:
        run(state, "unfollow")
    assert "expected argument `url`" in str(excinfo.value)
    assert state.db.get_feed_follows_for_user("alice") == []


def _add_posts(state, count):
    feed = state.db.get_feed_by_url("https://example.com/rss")
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for index in range(count):
        now = datetime.now(timezone.utc)
        state.db.create_post(
            uuid4(), now, now, f"post {index}", f"https://example.com/p{index}",
            "text", base + timedelta(days=index), feed.id,
        )


@pytest.mark.parametrize(
    "args, expected",
    [((), 2), (("abc",), 2), (("3",), 3), (("1",), 1)],
)
def test_browse_limit(state, capsys, args, expected):
    run(state, "register", "alice")
    run(state, "addfeed", "Example", "https://example.com/rss")
    _add_posts(state, 4)
    capsys.readouterr()
    run(state, "browse", *args)
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == expected
    assert "Title:post 3" in lines[0]

    user = state.db.get_user("alice")
    posts = state.db.get_posts_for_user(user.id, expected)
    assert len(posts) == expected
    assert posts[0].title == "post 3"


def test_parse_duration_values():
    assert parse_duration("1m") == timedelta(minutes=1)
    assert parse_duration("0") == timedelta(0)
    assert parse_duration("90m") == parse_duration("1h30m")
    assert parse_duration("1.5s") == parse_duration("1500ms")
    assert parse_duration("-2s") == -parse_duration("2s")
    assert parse_duration("1000us") == parse_duration("1ms")


@pytest.mark.parametrize("text", ["", "5", "abc", "1x", ".s", "-", "1.5.5s"])
def test_parse_duration_rejects(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_agg_errors(state):
    with pytest.raises(CommandError, match="time_between_reqs") as excinfo:
        run(state, "agg")
    assert "expected argument `time_between_reqs`" in str(excinfo.value)
    with pytest.raises(ValueError):
        run(state, "agg", "soon")
    with pytest.raises(CommandError):
        run(state, "agg", "0s")
    assert parse_duration("0s") == timedelta(0)
    assert state.db.get_feeds_view() == []


def test_agg_stops_when_no_feeds(state, capsys):
    with pytest.raises(NotFoundError):
        run(state, "agg", "1m")
    assert capsys.readouterr().out == "Collecting feeds every 1m0s\n"
    assert state.db.get_feeds_view() == []
    with pytest.raises(NotFoundError):
        state.db.get_next_feed_to_fetch()