import argparse
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from errors import ValidationError
from spotify_api.models import ContentType

VERSION = "0.2.0"


class VolumeOp(str, Enum):
    SET = "set"
    UP = "up"
    DOWN = "down"


# -------------------------
# Command variants
# -------------------------

@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Resume:
    pass


@dataclass(frozen=True)
class Toggle:
    pass


@dataclass(frozen=True)
class Next:
    pass


@dataclass(frozen=True)
class Previous:
    pass


@dataclass(frozen=True)
class Current:
    pass


@dataclass(frozen=True)
class Shuffle:
    mode: Optional[str] = None  # on | off | None (toggle)


@dataclass(frozen=True)
class Repeat:
    mode: Optional[str] = None  # on | off | track | None (toggle)


@dataclass(frozen=True)
class Volume:
    op: VolumeOp
    amount: int


@dataclass(frozen=True)
class Play:
    kind: ContentType
    query: str


@dataclass(frozen=True)
class Search:
    kind: ContentType
    query: str
    list_only: bool = False


@dataclass(frozen=True)
class Library:
    query: Optional[str] = None
    list_only: bool = False


@dataclass(frozen=True)
class Device:
    name: Optional[str] = None
    list_only: bool = False


Command = Union[Pause, Resume, Toggle, Next, Previous, Current, Shuffle, Repeat, Volume, Play, Search, Library, Device]


@dataclass(frozen=True)
class Invocation:
    """Everything parsed from argv: at most one command plus the global flags."""

    command: Optional[Command]
    authorize: bool = False
    logout: bool = False
    verbose: bool = False


# -------------------------
# Argument value parsers
# -------------------------

def parse_volume(arg: str) -> Volume:
    """'50' sets, '+5' raises, '-5' lowers. Values above 100 are clamped when applied."""
    text = (arg or "").strip()
    op = VolumeOp.SET
    if text.startswith("+"):
        op, text = VolumeOp.UP, text[1:]
    elif text.startswith("-"):
        op, text = VolumeOp.DOWN, text[1:]

    if not text:
        direction = {VolumeOp.UP: "increase", VolumeOp.DOWN: "decrease"}.get(op)
        if direction:
            raise ValidationError(f"Please provide a value to {direction} the volume by")
        raise ValidationError("Please provide a volume value")

    if not text.isdigit():
        raise ValidationError(f"\"{arg}\" is not a valid volume value [50 | +5 | -5]")

    return Volume(op=op, amount=int(text))


def _mode_parser(name: str, allowed: Sequence[str]):
    def parse(arg: str) -> str:
        mode = (arg or "").strip().lower()
        if mode not in allowed:
            raise argparse.ArgumentTypeError(f"Not a valid {name} mode: '{arg}' (choose from {' | '.join(allowed)})")
        return mode

    return parse


# -------------------------
# Parser
# -------------------------

class CommandParser(argparse.ArgumentParser):
    """ArgumentParser that raises ValidationError instead of exiting on bad input."""

    def error(self, message):
        raise ValidationError(f"{self.prog}: {message}")


TYPE_FLAGS = [
    ("-t", "--track", ContentType.TRACK),
    ("-p", "--playlist", ContentType.PLAYLIST),
    ("-a", "--album", ContentType.ALBUM),
    ("-A", "--artist", ContentType.ARTIST),
    ("-s", "--show", ContentType.SHOW),
    ("-e", "--episode", ContentType.EPISODE),
]


def _add_type_flags(sub: argparse.ArgumentParser, verb: str) -> None:
    group = sub.add_mutually_exclusive_group(required=True)
    for short, long, kind in TYPE_FLAGS:
        group.add_argument(
            short,
            long,
            dest="kind",
            action="store_const",
            const=kind,
            help=f"{verb} {kind.value}s",
        )


def build_parser() -> CommandParser:
    parser = CommandParser(prog="sc", description="Spotify CLI controller")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")

    settings = parser.add_argument_group("Settings")
    exclusive = settings.add_mutually_exclusive_group()
    exclusive.add_argument("--authorize", action="store_true", help="Run the authorization process")
    exclusive.add_argument("--logout", action="store_true", help="Forget the stored credentials")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>", parser_class=CommandParser)

    subparsers.add_parser("current", aliases=["cu"], help="Output current track")
    subparsers.add_parser("pause", aliases=["pa"], help="Pause playback")
    subparsers.add_parser("resume", aliases=["re"], help="Resume playback")
    subparsers.add_parser("toggle", aliases=["to"], help="Toggle resume/pause")
    subparsers.add_parser("next", aliases=["ne"], help="Skip current track")
    subparsers.add_parser("previous", aliases=["prev", "pr"], help="Play previous track")

    shuffle = subparsers.add_parser(
        "shuffle",
        aliases=["sh"],
        help="Control shuffle mode",
        epilog="Toggles between on/off if no mode is supplied",
    )
    shuffle.add_argument("mode", nargs="?", type=_mode_parser("shuffle", ["on", "off"]), help="[on | off] (optional)")

    repeat = subparsers.add_parser(
        "repeat",
        aliases=["rp"],
        help="Control repeat mode",
        epilog="Toggles between on/off if no mode is supplied",
    )
    repeat.add_argument(
        "mode",
        nargs="?",
        type=_mode_parser("repeat", ["on", "off", "track"]),
        help="[on | off | track] (optional)",
    )

    volume = subparsers.add_parser("volume", aliases=["vo"], help="Control volume")
    volume.add_argument("amount", help="Set or change volume in percent [50 | +5 | -5]")

    play = subparsers.add_parser("play", aliases=["pl"], help="Play first matching content")
    _add_type_flags(play, "Play")
    play.add_argument("content", help="Content to play")

    search = subparsers.add_parser("search", aliases=["se"], help="Search content and pick one to play")
    _add_type_flags(search, "Search for")
    search.add_argument("content", help="Content to search for")
    search.add_argument("--list", dest="list_only", action="store_true", help="Only print the results")

    library = subparsers.add_parser("library", aliases=["li"], help="Play from your playlists and saved albums")
    library.add_argument("content", nargs="?", help="Filter by name (optional)")
    library.add_argument("--list", dest="list_only", action="store_true", help="Only print the matches")

    device = subparsers.add_parser("device", aliases=["de"], help="Switch playback to another device")
    device.add_argument("name", nargs="?", help="Device name (optional)")
    device.add_argument("--list", dest="list_only", action="store_true", help="Only print the devices")

    return parser


ALIASES = {
    "cu": "current",
    "pa": "pause",
    "re": "resume",
    "to": "toggle",
    "ne": "next",
    "prev": "previous",
    "pr": "previous",
    "sh": "shuffle",
    "rp": "repeat",
    "vo": "volume",
    "pl": "play",
    "se": "search",
    "li": "library",
    "de": "device",
}


def _require_query(value: Optional[str], verb: str) -> str:
    query = (value or "").strip()
    if not query:
        raise ValidationError(f"Please provide something to {verb}")
    return query


def to_command(args: argparse.Namespace) -> Optional[Command]:
    name = ALIASES.get(args.command, args.command)
    if name is None:
        return None
    if name == "current":
        return Current()
    if name == "pause":
        return Pause()
    if name == "resume":
        return Resume()
    if name == "toggle":
        return Toggle()
    if name == "next":
        return Next()
    if name == "previous":
        return Previous()
    if name == "shuffle":
        return Shuffle(mode=args.mode)
    if name == "repeat":
        return Repeat(mode=args.mode)
    if name == "volume":
        return parse_volume(args.amount)
    if name == "play":
        return Play(kind=args.kind, query=_require_query(args.content, "play"))
    if name == "search":
        return Search(kind=args.kind, query=_require_query(args.content, "search for"), list_only=args.list_only)
    if name == "library":
        return Library(query=(args.content or "").strip() or None, list_only=args.list_only)
    if name == "device":
        return Device(name=(args.name or "").strip() or None, list_only=args.list_only)
    raise ValidationError(f"Unknown command: {args.command}")


def parse_command(argv: Sequence[str]) -> Invocation:
    """Turn argv (without the program name) into an Invocation.

    Raises ValidationError for anything malformed; no I/O happens here.
    """
    parser = build_parser()
    argv = list(argv)
    if not argv:
        raise ValidationError(parser.format_help().rstrip())

    args = parser.parse_args(argv)
    command = to_command(args)

    if command is None and not (args.authorize or args.logout):
        raise ValidationError(parser.format_help().rstrip())

    # --authorize and --logout are actions of their own.
    if command is not None and (args.authorize or args.logout):
        flag = "--authorize" if args.authorize else "--logout"
        raise ValidationError(f"{parser.prog}: {flag} cannot be combined with a command")

    return Invocation(command=command, authorize=args.authorize, logout=args.logout, verbose=args.verbose)
