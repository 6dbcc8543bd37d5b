"""Main entry point for the FastAPI application."""

import argparse
import os

import uvicorn

from zecko import create_app
from zecko.config import load_config_from_env


def main() -> None:
    """Run the FastAPI application using Uvicorn."""
    parser = argparse.ArgumentParser(
        description="Run the Zecko auth service FastAPI application.",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Path to the environment configuration file.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the FastAPI application on.",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to run the FastAPI application on.",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of worker processes to run.",
    )
    parser.add_argument(
        "--create-admin",
        action="store_true",
        help="Prompt for an admin account, created if the database has no users.",
    )
    args = parser.parse_args()
    if args.create_admin and (args.reload or args.workers > 1):
        parser.error("--create-admin cannot be combined with --reload or --workers")

    admin_credentials = None
    if args.create_admin:
        config = load_config_from_env(args.env_file)
        admin_credentials = config.security_manager.initialize_admin_account()

    if args.reload or args.workers > 1:
        # Reloading and multiple workers need an import string; ENV_FILE carries the path.
        os.environ["ENV_FILE"] = args.env_file
        app = "zecko.app:create_app"
    else:
        app = create_app(args.env_file, admin_credentials)
    uvicorn.run(
        app,
        factory=isinstance(app, str),
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers,
    )


if __name__ == "__main__":
    main()
