"""Slack tools: one Slack Web API call per tool, rendered as display text."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from core.exceptions import InvalidRequestError, UpstreamError
from integrations.slack_client import SlackAPIError, SlackClient
from tools.registry import ToolRegistry

logger = structlog.get_logger(__name__)

# Slack errors meaning "this token cannot use search.messages"
SEARCH_FALLBACK_ERRORS = {"not_allowed_token_type", "missing_scope"}

FALLBACK_CHANNEL_SCAN = 10
FALLBACK_CHANNEL_LIST_LIMIT = 50
FALLBACK_HISTORY_LIMIT = 50
MIN_SEARCH_TERM_LENGTH = 3
USERS_SHOWN = 20

registry = ToolRegistry()


def _truncate(text: str, length: int) -> str:
    return text[:length] + ("..." if len(text) > length else "")


def _require(args: Dict[str, Any], name: str) -> Any:
    value = args.get(name)
    if value in (None, ""):
        raise InvalidRequestError(f"Missing required argument: {name}")
    return value


def _int_arg(args: Dict[str, Any], name: str, default: int) -> int:
    value = args.get(name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Argument {name} must be a number")


def _format_ts(ts: Optional[str]) -> str:
    if not ts:
        return "unknown time"
    when = datetime.fromtimestamp(float(ts), tz=timezone.utc)
    return when.strftime("%Y-%m-%d %H:%M:%S UTC")


def search_terms(query: str) -> List[str]:
    """Lowercased whitespace-split terms longer than two characters."""
    return [term for term in query.lower().split() if len(term) >= MIN_SEARCH_TERM_LENGTH]


def message_matches(text: Optional[str], terms: List[str]) -> bool:
    """True if any term is a substring of the lowercased text."""
    lowered = (text or "").lower()
    return any(term in lowered for term in terms)


# ─── Search ────────────────────────────────────────────────────


@registry.tool(
    name="slack_search_messages",
    description="Search for messages across Slack channels",
    input_schema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "limit": {"type": "number", "description": "Number of results (default: 20)", "default": 20},
        },
        "required": ["query"],
    },
)
async def search_messages(slack: SlackClient, args: Dict[str, Any]) -> str:
    query = _require(args, "query")
    limit = _int_arg(args, "limit", 20)

    try:
        data = await slack.search_messages(query, count=limit)
    except SlackAPIError as e:
        if e.slack_error in SEARCH_FALLBACK_ERRORS:
            logger.info("search.messages unavailable for token, using fallback search", slack_error=e.slack_error)
            return await fallback_search(slack, query, limit)
        raise

    matches = data.get("messages", {}).get("matches", [])
    lines = [
        f"**#{(match.get('channel') or {}).get('name', 'unknown')}** "
        f"({match.get('username', 'unknown')}): {_truncate(match.get('text') or '', 200)}"
        for match in matches
    ]
    return f"Found {len(lines)} messages:\n\n" + "\n\n".join(lines)


async def fallback_search(slack: SlackClient, query: str, limit: int) -> str:
    """Client-side search over recent history of the channels the user is in.

    Used only when the token lacks search scope. Channels that fail to load
    are skipped.
    """
    data = await slack.list_conversations(
        types="public_channel,private_channel",
        limit=FALLBACK_CHANNEL_LIST_LIMIT,
    )
    terms = search_terms(query)
    results: List[tuple[str, str]] = []

    for channel in data.get("channels", [])[:FALLBACK_CHANNEL_SCAN]:
        if not channel.get("is_member"):
            continue

        try:
            history = await slack.conversation_history(channel["id"], limit=FALLBACK_HISTORY_LIMIT)
        except UpstreamError as e:
            logger.debug("Skipping channel in fallback search", channel=channel.get("id"), error=e.message)
            continue

        for message in history.get("messages", []):
            if message_matches(message.get("text"), terms):
                results.append((channel.get("name", channel["id"]), message.get("text") or "No text"))

        if len(results) >= limit:
            break

    results = results[:limit]
    lines = [f"**#{name}**: {_truncate(text, 200)}" for name, text in results]
    return f"Found {len(results)} messages (fallback search):\n\n" + "\n\n".join(lines)


# ─── Channels ──────────────────────────────────────────────────


@registry.tool(
    name="slack_get_channels",
    description="List available channels",
    input_schema={
        "type": "object",
        "properties": {
            "types": {
                "type": "string",
                "description": "Channel types (default: public_channel)",
                "default": "public_channel",
            },
            "limit": {"type": "number", "description": "Number of channels (default: 100)", "default": 100},
        },
    },
)
async def get_channels(slack: SlackClient, args: Dict[str, Any]) -> str:
    data = await slack.list_conversations(
        types=args.get("types") or "public_channel",
        limit=_int_arg(args, "limit", 100),
    )
    channels = data.get("channels", [])
    lines = [
        f"**#{ch.get('name')}** ({ch.get('num_members', 0)} members): "
        f"{(ch.get('topic') or {}).get('value') or 'No topic'}"
        for ch in channels
    ]
    return f"Found {len(channels)} channels:\n\n" + "\n".join(lines)


@registry.tool(
    name="slack_get_channel_history",
    description="Get recent messages from a specific channel",
    input_schema={
        "type": "object",
        "properties": {
            "channel": {"type": "string", "description": "Channel ID or name"},
            "limit": {"type": "number", "description": "Number of messages (default: 50)", "default": 50},
        },
        "required": ["channel"],
    },
)
async def get_channel_history(slack: SlackClient, args: Dict[str, Any]) -> str:
    data = await slack.conversation_history(_require(args, "channel"), limit=_int_arg(args, "limit", 50))
    lines = [
        f"**{_format_ts(msg.get('ts'))}** ({msg.get('user', 'unknown')}): "
        f"{_truncate(msg.get('text') or 'No text', 300)}"
        for msg in data.get("messages", [])
    ]
    return "Recent messages in channel:\n\n" + "\n\n".join(lines)


@registry.tool(
    name="slack_get_channel_info",
    description="Get basic information about a channel",
    input_schema={
        "type": "object",
        "properties": {
            "channel": {"type": "string", "description": "Channel ID"},
        },
        "required": ["channel"],
    },
)
async def get_channel_info(slack: SlackClient, args: Dict[str, Any]) -> str:
    data = await slack.conversation_info(_require(args, "channel"))
    ch = data.get("channel", {})
    return "\n".join([
        f"**#{ch.get('name')}** ({ch.get('id')})",
        f"Private: {'yes' if ch.get('is_private') else 'no'}",
        f"Members: {ch.get('num_members', 'unknown')}",
        f"Topic: {(ch.get('topic') or {}).get('value') or 'No topic'}",
        f"Purpose: {(ch.get('purpose') or {}).get('value') or 'No purpose'}",
    ])


# ─── Messages ──────────────────────────────────────────────────


@registry.tool(
    name="slack_send_message",
    description="Send a message to a channel",
    input_schema={
        "type": "object",
        "properties": {
            "channel": {"type": "string", "description": "Channel ID or name"},
            "text": {"type": "string", "description": "Message text"},
            "thread_ts": {"type": "string", "description": "Timestamp of parent message to reply in thread"},
        },
        "required": ["channel", "text"],
    },
)
async def send_message(slack: SlackClient, args: Dict[str, Any]) -> str:
    channel = _require(args, "channel")
    await slack.post_message(channel, _require(args, "text"), thread_ts=args.get("thread_ts"))
    return f"Message sent successfully to {channel}"


@registry.tool(
    name="slack_send_dm",
    description="Send a direct message to a user",
    input_schema={
        "type": "object",
        "properties": {
            "user": {"type": "string", "description": "User ID"},
            "text": {"type": "string", "description": "Message text"},
        },
        "required": ["user", "text"],
    },
)
async def send_dm(slack: SlackClient, args: Dict[str, Any]) -> str:
    user = _require(args, "user")
    text = _require(args, "text")
    opened = await slack.open_conversation(user)
    channel = (opened.get("channel") or {}).get("id")
    if not channel:
        raise UpstreamError("Could not open DM channel")
    await slack.post_message(channel, text)
    return f"Direct message sent to {user}"


# ─── Users ─────────────────────────────────────────────────────


@registry.tool(
    name="slack_get_users",
    description="List workspace users",
    input_schema={
        "type": "object",
        "properties": {
            "limit": {"type": "number", "description": "Number of users (default: 100)", "default": 100},
        },
    },
)
async def get_users(slack: SlackClient, args: Dict[str, Any]) -> str:
    data = await slack.list_users(limit=_int_arg(args, "limit", 100))
    users = [m for m in data.get("members", []) if not m.get("deleted") and not m.get("is_bot")]

    lines = []
    for user in users[:USERS_SHOWN]:
        email = (user.get("profile") or {}).get("email")
        line = f"**{user.get('real_name') or user.get('name')}** (@{user.get('name')})"
        if email:
            line += f" - {email}"
        lines.append(line)
    return f"Found {len(users)} users:\n\n" + "\n".join(lines)


@registry.tool(
    name="slack_get_user_info",
    description="Get information about a specific user",
    input_schema={
        "type": "object",
        "properties": {
            "user": {"type": "string", "description": "User ID"},
        },
        "required": ["user"],
    },
)
async def get_user_info(slack: SlackClient, args: Dict[str, Any]) -> str:
    data = await slack.user_info(_require(args, "user"))
    user = data.get("user", {})
    profile = user.get("profile") or {}
    return "\n".join([
        f"**{user.get('real_name') or user.get('name')}** (@{user.get('name')}, {user.get('id')})",
        f"Title: {profile.get('title') or 'n/a'}",
        f"Email: {profile.get('email') or 'n/a'}",
        f"Timezone: {user.get('tz') or 'n/a'}",
        f"Admin: {'yes' if user.get('is_admin') else 'no'}",
    ])


def get_tool_registry() -> ToolRegistry:
    """Get the registry holding every Slack tool."""
    return registry
