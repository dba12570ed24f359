"""Command line entry point: run the panel API or create an administrator."""

import argparse
import asyncio
import logging
import os
import sys

import uvicorn
from aiosqlite import connect as aiosqlite_connect

from clinic_admin import create_app
from clinic_admin.auth import register_account
from clinic_admin.common import PartialRegistrationError, Role, SignUpError
from clinic_admin.config import AppConfig, configure_logging, load_config_from_env
from clinic_admin.identity import IdentityQueries, LocalIdentityProvider
from clinic_admin.profiles import ProfileQueries

LOGGER = logging.getLogger(__name__)


async def create_admin(config: AppConfig) -> int:
    """Prompt for and register an administrator account.

    :param config: Application configuration
    :return: Process exit code
    """
    name, email, password = config.security_manager.prompt_admin_account()

    async with aiosqlite_connect(config.database_path) as db_connection:
        identity_queries = IdentityQueries(db_connection)
        profiles = ProfileQueries(db_connection)
        await identity_queries.initialize_tables()
        await profiles.initialize_tables()

        identity_provider = LocalIdentityProvider(
            identity_queries,
            config.security_manager,
        )
        try:
            await register_account(
                identity_provider,
                profiles,
                name,
                email,
                password,
                Role.ADMIN,
            )
        except SignUpError as e:
            LOGGER.error("Could not create the administrator: %s", e)
            return 1
        except PartialRegistrationError as e:
            LOGGER.error("%s (identity %s needs manual repair)", e, e.identity_id)
            return 2

    LOGGER.info("Administrator %s created", email)
    return 0


def main() -> None:
    """Run the panel API with Uvicorn, or create an administrator."""
    parser = argparse.ArgumentParser(
        description="Clinic admin panel API.",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Path to the environment configuration file.",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the API server.")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the FastAPI application on.",
    )
    serve_parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to run the FastAPI application on.",
    )
    serve_parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development.",
    )

    subparsers.add_parser(
        "create-admin",
        help="Interactively create an administrator account.",
    )

    args = parser.parse_args()

    if args.command == "create-admin":
        config = load_config_from_env(args.env_file)
        configure_logging(config)
        sys.exit(asyncio.run(create_admin(config)))

    host = getattr(args, "host", "127.0.0.1")
    port = getattr(args, "port", 8000)
    reload = getattr(args, "reload", False)

    if reload:
        # reload needs an import string; the factory reads ENV_FILE
        os.environ["ENV_FILE"] = args.env_file
        uvicorn.run(
            "clinic_admin:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
        )
        return

    app = create_app(args.env_file)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
