from typing import Optional

import discord

from core.context import BotContext
from core.errors import DomainError, ValidationError
from core.logger import get_logger


logger = get_logger(__name__)

VARIATION_SELECTOR = "\ufe0f"


def normalize_emoji(raw: Optional[str]) -> str:
    """Reduce an emoji to a comparable key: the id for custom emoji, the bare text otherwise."""
    text = (raw or "").strip()
    if not text:
        raise ValidationError("Emoji cannot be empty")
    emoji = discord.PartialEmoji.from_str(text)
    if emoji.id is not None:
        return str(emoji.id)
    if text.startswith("<") or text.endswith(">"):
        raise ValidationError(f"Couldn't parse {text} as an emoji")
    return text.replace(VARIATION_SELECTOR, "")


class VerificationGate:
    def __init__(self, context: BotContext) -> None:
        self.context = context

    async def handle_reaction(
        self,
        server_id: Optional[int],
        message_id: int,
        emoji: str,
        user_id: int,
        bot: bool = False,
    ) -> bool:
        """Grant the verified role when the reaction matches; returns whether it did."""
        if server_id is None or bot:
            return False
        try:
            policy = self.context.servers.get(server_id)
        except DomainError as exc:
            logger.error("Could not load verification policy for %s: %s", server_id, exc)
            return False
        if policy is None or not policy.verification_enabled:
            return False
        if policy.verification_message_id != message_id:
            return False
        try:
            expected = normalize_emoji(policy.verification_emoji)
        except ValidationError as exc:
            logger.warning("Verification emoji for %s is unusable (%s); skipping", server_id, exc)
            return False
        try:
            actual = normalize_emoji(emoji)
        except ValidationError:
            return False
        if actual != expected:
            return False
        try:
            if not self.context.platform.has_role(server_id, policy.verified_role_id):
                logger.warning(
                    "Verified role %s no longer exists in %s; cannot verify user %s",
                    policy.verified_role_id,
                    server_id,
                    user_id,
                )
                return False
            await self.context.platform.add_roles(
                server_id,
                user_id,
                {policy.verified_role_id},
                "Verified via reaction",
            )
        except DomainError as exc:
            logger.error("Failed to verify user %s in %s: %s", user_id, server_id, exc)
            return False
        except Exception:
            logger.exception("Unexpected error verifying user %s in %s", user_id, server_id)
            return False
        logger.info("Verified user %s in %s", user_id, server_id)
        return True
