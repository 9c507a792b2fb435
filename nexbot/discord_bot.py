# nexbot discord front end
import asyncio
import logging
from typing import Dict, Optional
import discord
import requests
from discord.ext import commands
from nexbot.config.settings import CHAT_API_URL, DISCORD_BOT_TOKEN

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DISCORD_MESSAGE_LIMIT = 2000

HELP_MESSAGE = """
**Available Commands:**

`!price <coin>` - Current price of a cryptocurrency (e.g., `!price btc`)
`!news` - Latest crypto headlines
`!holding <coin>` - How much of a coin you hold (needs `!login`)
`!login <token>` - Link your Cryptonex token (DM only)
`!logout` - Forget your linked token

**Natural Language:**
Mention me or DM me, for example:
- "What's the price of Bitcoin?"
- "And its market cap?"
- "Buy 50 dollars worth of eth"
- "Show my wallet"
"""

intents = discord.Intents.default()
intents.message_content = True

bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

# discord user id -> trading backend credential
linked_tokens: Dict[int, str] = {}


def ask_backend(message: str, credential: Optional[str] = None) -> str:
    """Forward a message to the chat API and return the text to show."""
    headers = {"Authorization": credential} if credential else {}
    try:
        response = requests.post(CHAT_API_URL, json={"message": message}, headers=headers, timeout=60)
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Chat API error: {e}")
        return "Something went wrong. 😞"
    if "error" in data:
        return f"❌ Error: {data['error']}"
    return data.get("reply", "")[:DISCORD_MESSAGE_LIMIT]


def as_credential(token: str) -> str:
    """Normalize a pasted token or full "Bearer ..." header value."""
    token = token.strip()
    if token.lower().startswith("bearer "):
        token = token[len("bearer "):].strip()
    return f"Bearer {token}"


async def relay(channel, author_id: int, message: str) -> None:
    reply = await asyncio.to_thread(ask_backend, message, linked_tokens.get(author_id))
    await channel.send(reply or "I couldn't come up with an answer.")


@bot.event
async def on_ready():
    logger.info(f"Chat bot is online as {bot.user}")


@bot.event
async def on_message(message):
    if message.author == bot.user:
        return

    if message.content.startswith('!'):
        await bot.process_commands(message)
        return

    if bot.user.mentioned_in(message) or isinstance(message.channel, discord.DMChannel):
        content = message.content.replace(bot.user.mention, "").strip()
        if content.lower() in ['help', 'commands', '?', 'what can you do']:
            await message.channel.send(HELP_MESSAGE)
            return
        async with message.channel.typing():
            await relay(message.channel, message.author.id, content)


@bot.command(name="price")
async def price(ctx, coin: str):
    """Get current price of a cryptocurrency"""
    await relay(ctx, ctx.author.id, f"what is the price of {coin}")


@bot.command(name="news")
async def news(ctx):
    """Show the latest headlines"""
    await relay(ctx, ctx.author.id, "latest news")


@bot.command(name="holding")
async def holding(ctx, coin: str):
    """Check a position in the linked account"""
    if ctx.author.id not in linked_tokens:
        await ctx.send("Link your account first with `!login <token>` in a DM.")
        return
    await relay(ctx, ctx.author.id, f"am i holding {coin}")


@bot.command(name="login")
async def login(ctx, *, token: str):
    """Link a trading backend token to this Discord user"""
    if not isinstance(ctx.channel, discord.DMChannel):
        await ctx.send("Please send `!login` in a direct message so your token stays private.")
        return
    linked_tokens[ctx.author.id] = as_credential(token)
    await ctx.send("✅ Account linked. You can now trade and ask about your portfolio.")


@bot.command(name="logout")
async def logout(ctx):
    """Forget the linked token"""
    linked_tokens.pop(ctx.author.id, None)
    await ctx.send("Account unlinked.")


@bot.command(name="commands")
async def show_commands(ctx):
    """Show available commands"""
    await ctx.send(HELP_MESSAGE)


if __name__ == "__main__":
    try:
        bot.run(DISCORD_BOT_TOKEN)
    except Exception as e:
        logger.error(f"Error starting Discord bot: {e}")
