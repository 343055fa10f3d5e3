"""Logout command"""

from connection import DEFAULT_CONFIG_SKIP_SECONDARY_AUTH
from .factory import Factory


async def run_logout(factory: Factory) -> None:
    """End the provider sessions and remove the stored tokens"""
    connection = await factory.connection(DEFAULT_CONFIG_SKIP_SECONDARY_AUTH)
    async with connection:
        await connection.logout()

    factory.console.print("[green]✓[/green] Successfully logged out")
