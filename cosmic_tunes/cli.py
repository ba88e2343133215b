"""CLI entrypoint and high-level application orchestration."""

import argparse
import logging
import time
from pathlib import Path

import uvicorn
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOauthError

from .artists import fetch_top_artists, load_or_fetch_top_artists
from .config import DEFAULT_SERVER_URL, DEFAULT_TIME_RANGE, FRAME_SECONDS, POLL_INTERVAL_SECONDS, TIME_RANGES
from .env import get_env, get_required_env, load_env_file
from .errors import RoomCapacityError
from .group import GroupPoller, HttpRoomClient
from .identity import JsonFileIdentityStore, get_or_create_device_id
from .rooms import Member, merge_artists
from .spotify_client import close_sessions, create_spotify_client
from .ui import build_legend_lines, render_room_screen
from .visualization import GalaxyView, initialize_visualization


def parse_args() -> argparse.Namespace:
    """Parse CLI options for solo snapshots, group sessions, and the web server."""
    parser = argparse.ArgumentParser(description="Render your Spotify top artists as a galaxy")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--width", type=int, default=1280, help="Canvas width in pixels.")
    parser.add_argument("--height", type=int, default=800, help="Canvas height in pixels.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    galaxy = subparsers.add_parser("galaxy", help="Render a snapshot of your own galaxy.")
    galaxy.add_argument("--range", dest="time_range", choices=TIME_RANGES, default=DEFAULT_TIME_RANGE)
    galaxy.add_argument(
        "--refresh",
        action="store_true",
        help="Re-fetch top artists from Spotify and update the local cache.",
    )
    galaxy.add_argument("--frames", type=int, default=300, help="Animation frames to simulate (default: 300).")
    galaxy.add_argument("--out", type=Path, default=Path("galaxy.png"), help="Snapshot file (default: galaxy.png).")

    group = subparsers.add_parser("group", help="Create or join a shared group galaxy.")
    group.add_argument("action", choices=("create", "join"))
    group.add_argument("code", nargs="?", help="Room code to join.")
    group.add_argument("--server", default=None, help=f"Cosmic Tunes server URL (default: {DEFAULT_SERVER_URL}).")
    group.add_argument("--name", default=None, help="Display name shown to other members.")
    group.add_argument(
        "--rounds",
        type=int,
        default=0,
        help="Stop after this many publish/read rounds. 0 means run until Ctrl+C.",
    )
    group.add_argument("--interval", type=float, default=POLL_INTERVAL_SECONDS)
    group.add_argument("--out", type=Path, default=None, help="Write a snapshot of the merged galaxy on exit.")

    serve = subparsers.add_parser("serve", help="Run the web API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    if args.command == "group" and args.action == "join" and not args.code:
        parser.error("group join requires a room code")
    return args


def run_galaxy(args: argparse.Namespace) -> int:
    # Fail early if the OAuth callback is not configured.
    redirect_uri = get_required_env("SPOTIPY_REDIRECT_URI")
    print(f"Using redirect URI: {redirect_uri}")

    # One authenticated client for the whole run.
    sp = create_spotify_client()
    view: GalaxyView | None = None
    try:
        # Confirm which account is signed in.
        profile = sp.current_user()
        print(f"Authenticated as: {profile.get('display_name') or profile.get('id')}")

        # Cached top artists unless --refresh asks for a new fetch.
        artists = load_or_fetch_top_artists(sp, args.time_range, refresh=args.refresh)
        if not artists:
            print("No top artists available; rendering an empty galaxy.")

        # Let the layout settle over the requested frames, then snapshot it.
        view = initialize_visualization(artists, width=args.width, height=args.height)
        print(f"Simulating {args.frames} frames for {len(view.nodes)} artists...")
        view.run(args.frames)
        view.save_snapshot(args.out)
        print(f"Saved galaxy to {args.out}")
        print("\n".join(build_legend_lines()))
        return 0
    except SpotifyOauthError as exc:
        print(f"Spotify sign-in failed: {exc}\nDelete the token cache and sign in again.")
        return 1
    finally:
        # Release display resources and HTTP sessions on every exit path.
        if view is not None:
            view.dispose()
        close_sessions(sp)


def run_group(args: argparse.Namespace) -> int:
    server = args.server or get_env("COSMIC_TUNES_SERVER", DEFAULT_SERVER_URL)
    client = HttpRoomClient(server)

    # Creating a room asks the server for a fresh code; joining uses the given one.
    if args.action == "create":
        try:
            code = client.create()
        except RoomCapacityError:
            print("Could not allocate a room code right now. Please try again.")
            return 1
        print(f"Created room {code}. Share this code with your friends.")
    else:
        code = args.code

    # Stable per-device id so republishing replaces our member record.
    device_id = get_or_create_device_id(JsonFileIdentityStore())
    sp = create_spotify_client()
    # Start empty; the first poll fills in the merged galaxy.
    view = initialize_visualization([], width=args.width, height=args.height)

    def on_members(members: list[Member]) -> None:
        # Runs on the poller thread; the view applies the list on its next frame.
        artists = merge_artists(members)
        view.queue_artists(artists)
        render_room_screen(code, members, len(artists), self_id=device_id)

    poller = GroupPoller(
        code=code,
        member_id=device_id,
        fetch_artists=lambda: fetch_top_artists(sp, DEFAULT_TIME_RANGE),
        client=client,
        on_members=on_members,
        display_name=args.name,
        interval=args.interval,
    )

    poller.start()
    try:
        # Animation runs here; the poller thread only hands over artist lists.
        while not args.rounds or poller.iterations < args.rounds:
            started = time.monotonic()
            view.advance(FRAME_SECONDS)
            time.sleep(max(0.0, FRAME_SECONDS - (time.monotonic() - started)))
    except KeyboardInterrupt:
        print("\nLeaving room.")
    finally:
        # Stop polling before the view goes away.
        poller.stop(timeout=FRAME_SECONDS * 10)
        try:
            if args.out is not None:
                view.advance(FRAME_SECONDS)
                view.save_snapshot(args.out)
                print(f"Saved merged galaxy to {args.out}")
        finally:
            view.dispose()
            close_sessions(sp)

    if poller.failures:
        print(f"{poller.failures} of {poller.iterations} rounds failed; see log output.")
    return 0


def run_server(args: argparse.Namespace) -> int:
    uvicorn.run("cosmic_tunes.server:app", host=args.host, port=args.port)
    return 0


def main() -> int:
    """Run the selected command."""
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Seed credentials from .env before any Spotify call.
    load_env_file()

    if args.command == "galaxy":
        return run_galaxy(args)
    if args.command == "group":
        try:
            return run_group(args)
        except SpotifyException as exc:
            print(f"Spotify request failed: {exc}")
            return 1
    return run_server(args)
