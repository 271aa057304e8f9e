import argparse

import uvicorn

from playlist_sorter.config import LOG_LEVEL, SERVER_HOST, SERVER_PORT


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the playlist sorter backend.")
    parser.add_argument("--host", default=SERVER_HOST)
    parser.add_argument("--port", type=int, default=SERVER_PORT)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    uvicorn.run(
        "playlist_sorter.api.fastapi_app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
