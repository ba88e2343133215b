import shutil
import sys
import textwrap

from .config import GENRE_COLORS, LEGEND_SIZE, MAX_TERMINAL_WIDTH
from .rooms import Member


def get_terminal_width() -> int:
    return min(MAX_TERMINAL_WIDTH, shutil.get_terminal_size(fallback=(MAX_TERMINAL_WIDTH, 24)).columns)


def clear_terminal() -> None:
    if not sys.stdout.isatty():
        return

    sys.stdout.write("\033[2J\033[3J\033[H")
    sys.stdout.flush()


def legend_entries(size: int = LEGEND_SIZE) -> list[tuple[str, str]]:
    return [(genre, f"#{color:06X}") for genre, color in list(GENRE_COLORS.items())[:size]]


def build_legend_lines() -> list[str]:
    lines = [
        "Galaxy Key",
        "Star size: bigger stars are more popular artists.",
        "Line thickness: thicker, brighter links mean more shared genres.",
        "Star colour (genre):",
    ]
    for genre, color in legend_entries():
        lines.append(f"  {color}  {genre}")
    return lines


def build_member_lines(member: Member, index: int, width: int, is_self: bool = False) -> list[str]:
    name = member.display_name or f"Voyager {member.id[:8]}"
    marker = " (you)" if is_self else ""
    lines = [f"[{index}] {name}{marker} - {len(member.top_artists)} artists"]

    artists_text = ", ".join(artist.name for artist in member.top_artists)
    if not artists_text:
        return lines
    artist_lines = textwrap.wrap(
        artists_text,
        width=max(30, width - 6),
        break_long_words=False,
        break_on_hyphens=False,
    ) or [artists_text]
    for artist_line in artist_lines[:3]:
        lines.append(f"    {artist_line}")
    if len(artist_lines) > 3:
        lines.append("    ...")
    return lines


def build_room_lines(code: str, members: list[Member], unique_artists: int, self_id: str | None = None) -> list[str]:
    width = get_terminal_width()
    divider = "=" * width
    lines: list[str] = [
        divider,
        f"Room: {code}",
        f"Members: {len(members)}   Unique artists: {unique_artists}",
        divider,
    ]

    for index, member in enumerate(members, start=1):
        lines.extend(build_member_lines(member, index, width, is_self=member.id == self_id))
        lines.append("")

    lines.append(divider)
    return lines


def render_room_screen(code: str, members: list[Member], unique_artists: int, self_id: str | None = None) -> None:
    clear_terminal()
    print("\n".join(build_room_lines(code, members, unique_artists, self_id)))
