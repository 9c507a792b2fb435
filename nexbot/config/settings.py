import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Discord
DISCORD_BOT_TOKEN = os.getenv("DISCORD_BOT_TOKEN")
CHAT_API_URL = os.getenv("CHAT_API_URL", "http://localhost:8000/chat")

# API Keys
TOGETHER_API_KEY = os.getenv("TOGETHER_API_KEY")

# Trading backend
TRADING_BACKEND_URL = os.getenv("TRADING_BACKEND_URL", "https://cryptonex-backend.onrender.com").rstrip("/")
TRADING_BACKEND_TIMEOUT = float(os.getenv("TRADING_BACKEND_TIMEOUT", "10.0"))

# Market data cache
MARKET_DB_PATH = os.getenv("MARKET_DB_PATH", "crypto.db")

# LLM Settings
LLM_MODEL = os.getenv("LLM_MODEL", "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free")
LLM_MAX_TOKENS = 20  # coin / intent classification answers are a single word
LLM_REPLY_MAX_TOKENS = int(os.getenv("LLM_REPLY_MAX_TOKENS", "1024"))
LLM_TEMPERATURE = 0.7
LLM_CLASSIFY_TEMPERATURE = 0.0
LLM_TOP_P = 0.9

# Conversation
NEWS_LIMIT = 5
HISTORY_MAX_ENTRIES = 20
PROMPT_HISTORY_ENTRIES = 10
SESSION_MAX_USERS = int(os.getenv("SESSION_MAX_USERS", "10000"))
SESSION_IDLE_TTL = float(os.getenv("SESSION_IDLE_TTL", "0"))  # seconds, 0 keeps sessions for the process lifetime
SESSION_SERIALIZE = _flag("SESSION_SERIALIZE")
