"""discord.py – Discord Input Adapter

Purpose
-------
Listens to the Discord gateway and forwards four kinds of events to the
:class:`~stats_bridge.database.writer.AggregateWriter`:

* ``on_ready``          → ``bot_ready`` (first ready of the process only)
* ``on_message``        → ``message`` (bot-authored messages are skipped)
* ``on_member_join``    → ``member_join``
* ``on_member_remove``  → ``member_leave``

Each handler flattens the ``discord.py`` object graph into a plain mapping
(ids as strings) and hands it to the writer.  The Firestore client is
synchronous, so the write runs on a single worker thread owned by the
listener: the gateway heartbeat stays responsive and writes reach Firestore
one at a time, in arrival order.  Whatever happens in the writer stays there; the
gateway client never sees an exception from this adapter.

Required intents: guilds, guild messages, message content and members (the
last two are privileged and must be enabled in the developer portal).
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

import discord

from stats_bridge.database.models import EventType

__all__ = [
    "DiscordListener",
    "build_intents",
    "ready_record",
    "message_record",
    "member_record",
]

logger = logging.getLogger(__name__)


def _snowflake(value: Any) -> Optional[str]:
    return None if value is None else str(value)


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


def ready_record(client: discord.Client) -> Dict[str, Any]:
    user = client.user
    return {
        "botName": str(user),
        "botId": _snowflake(user.id),
        "guildCount": len(client.guilds),
        "userCount": len(client.users),
    }


def message_record(message: discord.Message) -> Dict[str, Any]:
    author = message.author
    guild = message.guild
    return {
        "messageId": _snowflake(message.id),
        "content": message.content,
        "author": {
            "id": _snowflake(author.id),
            "username": author.name,
            "discriminator": author.discriminator,
            "avatar": author.display_avatar.url,
        },
        "channel": {
            "id": _snowflake(message.channel.id),
            # DM channels carry no name.
            "name": getattr(message.channel, "name", None),
        },
        "guild": {
            "id": _snowflake(guild.id) if guild else None,
            "name": guild.name if guild else None,
        },
    }


def member_record(member: discord.Member) -> Dict[str, Any]:
    guild = member.guild
    return {
        "userId": _snowflake(member.id),
        "username": member.name,
        "guildId": _snowflake(guild.id),
        "guildName": guild.name,
        "memberCount": guild.member_count,
    }


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.guilds = True
    intents.guild_messages = True
    intents.message_content = True
    intents.members = True
    return intents


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class DiscordListener(discord.Client):
    """
    Discord client that mirrors gateway events into Firestore.

    Parameters
    ----------
    writer:
        The :class:`AggregateWriter` (anything with ``save(event_type, data)``).
    token:
        The bot's authentication token.
    """

    def __init__(self, writer, token: str, **options: Any) -> None:
        options.setdefault("intents", build_intents())
        super().__init__(**options)
        self.writer = writer
        self.token = token
        self._ready_recorded = False
        self._write_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="firestore-writer")

    async def _forward(self, event_type: EventType, data: Dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._write_executor, self.writer.save, event_type, data)
        except Exception as e:
            logger.error(f"Unexpected error while forwarding {event_type.value}: {e}", exc_info=True)

    async def on_ready(self) -> None:
        logger.info(f"Discord bot ready: logged in as {self.user} (ID: {self.user.id})")
        # on_ready fires again after gateway reconnects.
        if self._ready_recorded:
            return
        self._ready_recorded = True
        await self._forward(EventType.BOT_READY, ready_record(self))

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        await self._forward(EventType.MESSAGE, message_record(message))

    async def on_member_join(self, member: discord.Member) -> None:
        await self._forward(EventType.MEMBER_JOIN, member_record(member))

    async def on_member_remove(self, member: discord.Member) -> None:
        await self._forward(EventType.MEMBER_LEAVE, member_record(member))

    async def close(self) -> None:
        await super().close()
        # Let queued writes finish before the process exits.
        await asyncio.get_running_loop().run_in_executor(None, self._write_executor.shutdown)

    def run_bot(self) -> None:
        """Start the Discord bot event loop.  This method blocks until closed."""
        logger.info("Starting Discord bot…")
        # discord.py installs its own log handler unless told otherwise.
        self.run(self.token, log_handler=None)
