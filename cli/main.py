"""CLI entry point and argument parsing"""

import argparse
import asyncio
import logging
import sys
import traceback
from typing import List, Optional

import settings
from config.store import ConfigError
from sso.errors import SSOError
from utils.debug_console import configure_logging, create_debug_console
from cli.factory import Factory
from cli.login import LoginOptions, run_login
from cli.logout import run_logout
from cli.whoami import run_whoami

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rhoas", description="Red Hat OpenShift Application Services CLI")
    parser.add_argument("--debug", "-d", action="store_true", default=settings.DEBUG, help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    login = subparsers.add_parser("login", help="Log in to RHOAS")
    login.add_argument(
        "--api-gateway",
        default="production",
        help="URL of the API gateway, or an alias (production, staging)"
    )
    login.add_argument(
        "--auth-url",
        default="production",
        help="URL of the identity provider, or an alias (production, staging)"
    )
    login.add_argument(
        "--secondary-auth-url",
        default="production",
        help="URL of the secondary SSO realm, or an alias (production, staging)"
    )
    login.add_argument("--client-id", default=settings.DEFAULT_CLIENT_ID, help="OpenID client ID")
    login.add_argument(
        "--scope",
        dest="scopes",
        action="append",
        default=None,
        help="OpenID scope to request, may be repeated"
    )
    login.add_argument(
        "--insecure",
        action="store_true",
        help="Allow insecure communication with the server by disabling TLS certificate and host name verification"
    )
    login.add_argument(
        "--print-sso-url",
        action="store_true",
        help="Print the login URL instead of opening a browser"
    )
    login.add_argument(
        "--token", "-t",
        default=None,
        help=f"Offline token from {settings.OFFLINE_TOKEN_URL}"
    )

    subparsers.add_parser("logout", help="Log out from RHOAS")
    subparsers.add_parser("whoami", help="Print the current username")

    return parser


async def run_command(factory: Factory, args: argparse.Namespace) -> None:
    if args.command == "login":
        opts = LoginOptions(
            api_gateway=args.api_gateway,
            auth_url=args.auth_url,
            secondary_auth_url=args.secondary_auth_url,
            client_id=args.client_id,
            scopes=args.scopes or list(settings.DEFAULT_SCOPES),
            insecure=args.insecure,
            print_sso_url=args.print_sso_url,
            offline_token=args.token,
        )
        await run_login(factory, opts)
    elif args.command == "logout":
        await run_logout(factory)
    elif args.command == "whoami":
        await run_whoami(factory)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI"""
    args = build_parser().parse_args(argv)

    debug_logger = configure_logging(args.debug, settings.DEBUG_LOG_FILE)
    console = create_debug_console(debug_enabled=args.debug, debug_logger=debug_logger)
    factory = Factory(console, debug=args.debug)

    try:
        asyncio.run(run_command(factory, args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except (SSOError, ConfigError, ValueError) as e:
        console.print(f"[red]ERROR:[/red] {e}")
        if args.debug:
            traceback.print_exc()
        return 1
    except Exception as e:
        console.print(f"\n[red]Fatal error:[/red] {e}")
        if args.debug:
            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
