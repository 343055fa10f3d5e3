"""Whoami command"""

import logging

from connection import DEFAULT_CONFIG_SKIP_SECONDARY_AUTH
from sso import get_username
from .factory import Factory

logger = logging.getLogger(__name__)


async def run_whoami(factory: Factory) -> None:
    """Print the username of the logged in user"""
    connection = await factory.connection(DEFAULT_CONFIG_SKIP_SECONDARY_AUTH)
    async with connection:
        username, found = get_username(connection.primary.access_token)

    if found:
        factory.console.print(username, markup=False, highlight=False)
    else:
        logger.info("Access token has no username claim")
        factory.console.print("[yellow]Your access token does not contain a username[/yellow]")
