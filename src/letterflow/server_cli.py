"""CLI entry point for the Letterflow API server."""

import argparse
import os

_LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="letterflow-server",
        description="Letterflow API server: letter review and approval workflow",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database and filesystem document storage",
    )
    parser.add_argument("--storage-dir", help="Directory for the filesystem document store (implies --local)")
    parser.add_argument("--log-level", choices=_LOG_LEVELS, default=None, help="Override LETTERFLOW_LOG_LEVEL")
    parser.add_argument("--reload", action="store_true", help="Restart the server when source files change")
    return parser


def apply_environment(args: argparse.Namespace) -> None:
    """Export CLI choices as LETTERFLOW_* variables before the app module is imported."""
    # Local storage URLs are built from host and port
    os.environ["LETTERFLOW_HOST"] = args.host
    os.environ["LETTERFLOW_PORT"] = str(args.port)
    if args.local or args.storage_dir:
        os.environ["LETTERFLOW_LOCAL_MODE"] = "1"
    if args.storage_dir:
        os.environ["LETTERFLOW_LOCAL_STORAGE_DIR"] = args.storage_dir
    if args.log_level:
        os.environ["LETTERFLOW_LOG_LEVEL"] = args.log_level


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    apply_environment(args)

    import uvicorn

    uvicorn.run(
        "letterflow.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level or os.environ.get("LETTERFLOW_LOG_LEVEL", "info"),
    )


if __name__ == "__main__":
    main()
