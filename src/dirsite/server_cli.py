"""CLI entry point for the dirsite API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="dirsite-server",
        description="dirsite API server for directory site provisioning",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, console logs",
    )
    args = parser.parse_args(argv)

    if args.local:
        os.environ["DIRSITE_LOCAL_MODE"] = "1"
        os.environ["DIRSITE_LOCAL"] = "1"

    import uvicorn

    uvicorn.run("dirsite.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
