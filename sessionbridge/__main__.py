from __future__ import annotations

import argparse


def main(argv: list[str] | None = None) -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    parser = argparse.ArgumentParser(prog="sessionbridge")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="restart on source changes")
    args = parser.parse_args(argv)

    uvicorn.run("sessionbridge.app:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
