"""
Command-line entry point for the playback control server.

Responsibilities:
- Parse host/port overrides
- Run the ASGI app under uvicorn
"""

from __future__ import annotations

import argparse


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and serve server.asgi:app."""
    import uvicorn  # pylint: disable=import-outside-toplevel

    parser = argparse.ArgumentParser(description="Segmented video player control server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args(argv)

    uvicorn.run(
        "server.asgi:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )


# ------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------

if __name__ == "__main__":
    main()
