import logging
import sqlite3
from typing import List, Optional
from fastapi.concurrency import run_in_threadpool
from nexbot.config.settings import MARKET_DB_PATH, NEWS_LIMIT
from nexbot.models.lookup import Lookup
from nexbot.models.market import CoinFact, NewsItem

logger = logging.getLogger(__name__)

COIN_QUERY = (
    "SELECT name, symbol, price, market_cap, volume_24h, change_24h, last_updated "
    "FROM crypto_prices WHERE LOWER(name) = ? OR LOWER(symbol) = ? "
    "ORDER BY last_updated DESC LIMIT 1"
)
NEWS_QUERY = (
    "SELECT title, url, source, published_at FROM crypto_news "
    "ORDER BY published_at DESC LIMIT ?"
)


class MarketDataGateway:
    """Read-only access to the cached coin prices and news headlines.

    The tables are filled by a separate ingestion job. Any database error is
    logged and reported as an absent result.
    """

    def __init__(self, db_path: str = MARKET_DB_PATH):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create the cache tables if they do not exist yet."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS crypto_prices (
                    name TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    price REAL,
                    market_cap REAL,
                    volume_24h REAL,
                    change_24h REAL,
                    last_updated TEXT
                )
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS crypto_news (
                    title TEXT NOT NULL,
                    url TEXT,
                    source TEXT,
                    published_at TEXT
                )
                """)
            conn.commit()

    def _find_coin(self, coin: str) -> Optional[CoinFact]:
        key = coin.lower()
        conn = self._connect()
        try:
            row = conn.execute(COIN_QUERY, (key, key)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return CoinFact(**dict(row))

    def _latest_news(self, limit: int) -> List[NewsItem]:
        conn = self._connect()
        try:
            rows = conn.execute(NEWS_QUERY, (limit,)).fetchall()
        finally:
            conn.close()
        return [NewsItem(**dict(row)) for row in rows]

    async def find_coin(self, coin: Optional[str]) -> Lookup[CoinFact]:
        if not coin:
            return Lookup.absent()
        try:
            fact = await run_in_threadpool(self._find_coin, str(coin))
        except sqlite3.Error as e:
            logger.error(f"Coin lookup failed for {coin}: {e}")
            return Lookup.absent()
        return Lookup.present(fact) if fact else Lookup.absent()

    async def latest_news(self, limit: int = NEWS_LIMIT) -> List[NewsItem]:
        try:
            return await run_in_threadpool(self._latest_news, limit)
        except sqlite3.Error as e:
            logger.error(f"News lookup failed: {e}")
            return []
