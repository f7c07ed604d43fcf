"""Live test harness for the feed layer.

Usage::

    export EMBYTOK_URL="http://your-server:8096"
    export EMBYTOK_SERVER_TYPE="emby"      # or "plex"
    export EMBYTOK_USERNAME="me"
    export EMBYTOK_CREDENTIAL="password-or-plex-token"

    python -m devtools.feed_harness --feed random --orientation vertical

The script only runs if the required environment variables are set. It logs
in, lists the libraries and prints one page of the feed, which helps when
checking a backend's wire format against a real server.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys


async def _amain() -> None:  # noqa: ANN201
    from embytok import FeedType, OrientationMode, ServerType, Session, Settings

    url = os.getenv("EMBYTOK_URL")
    server_type = os.getenv("EMBYTOK_SERVER_TYPE", ServerType.EMBY.value)
    username = os.getenv("EMBYTOK_USERNAME", "")
    credential = os.getenv("EMBYTOK_CREDENTIAL")

    if not url or not credential:
        print("EMBYTOK_URL and/or EMBYTOK_CREDENTIAL environment variables not set - nothing to do.")
        sys.exit(1)

    parser = argparse.ArgumentParser(description="Quick feed harness")
    parser.add_argument("--library", help="Library name to browse", default=None)
    parser.add_argument(
        "--feed", choices=[t.value for t in FeedType], default=FeedType.LATEST.value
    )
    parser.add_argument(
        "--orientation",
        choices=[m.value for m in OrientationMode],
        default=OrientationMode.BOTH.value,
    )
    parser.add_argument("--pages", type=int, default=1, help="Pages to load")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    settings = Settings(orientation_mode=OrientationMode(args.orientation))
    async with Session(settings) as session:
        profile = await session.login(url, ServerType(server_type), username, credential)
        print(f"Logged in as {profile.username} ({profile.server_type}) at {profile.url}")

        controller = session.controller
        libraries = await controller.load_libraries()
        print(f"Libraries: {len(libraries)}")
        for library in libraries:
            print(f" * {library.id}  {library.name}  ({library.collection_type})")

        selected = next((lib for lib in libraries if lib.name == args.library), None)
        await controller.select_library(selected)
        state = await controller.change_feed_type(FeedType(args.feed))
        if state.epoch == 0:
            # Neither call changed the scope, so nothing has loaded yet
            state = await controller.reset()
        for _ in range(args.pages - 1):
            state = await controller.load_more()

        print(f"Scope: {controller.scope_name}  favorites={len(state.favorites)}")
        print(f"Items: {len(state.items)}  has_more={state.has_more}  next_skip={state.next_skip}")
        for item in state.items:
            star = "*" if item.id in state.favorites else " "
            print(f" {star} {item.id}  {item.name}  [{item.type}]  {item.width}x{item.height}")
            if not item.is_container:
                print(f"     {controller.client.get_video_url(item)}")


def main() -> None:  # noqa: ANN001 - entrypoint
    try:
        asyncio.run(_amain())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
