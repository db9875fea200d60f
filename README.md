# gatorfeed

`gatorfeed` is a small command-line RSS aggregator. You register users,
add RSS feeds, follow the feeds you care about, and let the aggregator
collect posts from them into a local SQLite database. Later you can
browse the newest posts from the feeds you follow.

## Installation

```
pip install .
```

This installs the `gator` command.

## Configuration

`gator` reads its settings from `~/.gatorconfig.json`. The file must
exist before the first run; create it by hand:

```json
{"current_user_name": "", "connection_string": "/home/me/gator.db"}
```

- `connection_string` is the path of the SQLite database file. The file
  and its tables are created on first use. An empty value is an error.
- `current_user_name` is the logged-in user. `gator login` and
  `gator register` rewrite the file to update it.

## Usage

```
gator <command> [arguments...]
```

| Command | Arguments | What it does |
|---|---|---|
| `register` | `name` | Create a user and log in as them |
| `login` | `name` | Switch to an existing user |
| `users` | | List all users, marking the current one with `(current)` |
| `reset` | | Delete all users, together with their feeds, follows and posts |
| `addfeed` | `name url` | Add a feed and follow it as the current user |
| `feeds` | | List all feeds and who added them |
| `follow` | `url` | Follow a feed that has already been added |
| `following` | | List the feeds the current user follows |
| `unfollow` | `url` | Stop following a feed |
| `agg` | `interval` | Fetch feeds forever, one feed every `interval` |
| `browse` | `[limit]` | Show the newest posts from followed feeds (default 2) |

`addfeed`, `follow`, `following`, `unfollow` and `browse` need a
logged-in user that exists in the database.

The interval for `agg` is a duration such as `30s`, `1m`, `1h30m`,
`1.5s` or `250ms` (units `ns`, `us`, `ms`, `s`, `m`, `h`); it must be
positive. Each tick fetches the feed that was fetched least recently
(feeds never fetched come first) and stores its items as posts. Items
whose link is already stored are skipped quietly; any other failure to
store an item prints the item's title and the error, and the run goes
on. Stop it with Ctrl-C.

`browse` takes an optional whole number as the count; an argument that
is not a whole number is ignored and the default of 2 is used.

### Example session

```
gator register alice
gator addfeed "Example Blog" https://example.com/feed.xml
gator agg 1m        # leave running for a while, then Ctrl-C
gator browse 5
```

When a command fails, `gator` prints the error and exits with status 1.
Interrupting a command with Ctrl-C exits with status 130.

## Using it as a library

- `gatorfeed.rss.parse_feed(data)` parses an RSS document (bytes or
  text) into an `RSSFeed` with its `RSSItem`s. The channel title and
  description are HTML-unescaped; item fields are kept as written.
- `gatorfeed.rss.fetch_feed(url, timeout=None)` downloads and parses a
  feed, sending the `User-Agent: gator` header.
- `gatorfeed.rss.parse_publish_date(text)` reads a date in most common
  layouts, taking dates without a zone as UTC, and returns `None` when
  it cannot.
- `gatorfeed.rss.scrape_feeds(db, fetch=fetch_feed)` fetches the next
  due feed and returns the posts it created.
- `gatorfeed.database.connect(path)` opens a database and returns a
  `Queries` object with methods for users, feeds, follows and posts, and
  a `transaction()` context manager. Failures raise `DatabaseError`, or
  its subclasses `NotFoundError` and `DuplicateError`.
- `gatorfeed.state.new_state(config_path=None)` loads the configuration
  and opens its database; the returned `State` is a context manager.
- `gatorfeed.commands.get_commands()` returns the command registry;
  `gatorfeed.cli.main(argv=None)` runs one command and returns the exit
  status.

## Limits

Only RSS documents with a `channel` element are read; Atom feeds yield
no items. Storage is SQLite only.

## Development

```
pip install -e ".[test]"
pytest
```