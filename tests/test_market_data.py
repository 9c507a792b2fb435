import asyncio
import sqlite3

from nexbot.services.market_data import MarketDataGateway


def _gateway(tmp_path):
    gateway = MarketDataGateway(db_path=str(tmp_path / "crypto.db"))
    gateway.init_db()
    conn = sqlite3.connect(gateway.db_path)
    conn.executemany(
        "INSERT INTO crypto_prices (name, symbol, price, market_cap, volume_24h, change_24h, last_updated) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            ("Bitcoin", "BTC", 41000.0, 8.0e11, 3.0e10, -2.0, "2026-10-18T08:00:00Z"),
            ("Bitcoin", "BTC", 42012.5, 8.2e11, 3.1e10, -1.5, "2026-10-18T09:00:00Z"),
            ("Ethereum", "ETH", 2500.0, 3.0e11, 1.2e10, 2.5, "2026-10-18T09:00:00Z"),
        ],
    )
    conn.executemany(
        "INSERT INTO crypto_news (title, url, source, published_at) VALUES (?, ?, ?, ?)",
        [(f"story {i}", f"https://n/{i}", "wire", f"2026-10-{i + 1:02d}T00:00:00Z") for i in range(7)],
    )
    conn.commit()
    conn.close()
    return gateway


def test_find_coin_by_name_or_symbol_picks_latest(tmp_path):
    gateway = _gateway(tmp_path)

    by_name = asyncio.run(gateway.find_coin("BITCOIN"))
    by_symbol = asyncio.run(gateway.find_coin("btc"))

    assert by_name.found and by_symbol.found
    assert by_name.value.price == 42012.5
    assert by_symbol.value.last_updated == "2026-10-18T09:00:00Z"


def test_find_coin_absent(tmp_path):
    gateway = _gateway(tmp_path)

    assert not asyncio.run(gateway.find_coin("dogecoin"))
    assert not asyncio.run(gateway.find_coin(None))


def test_latest_news_is_bounded_and_ordered(tmp_path):
    gateway = _gateway(tmp_path)

    news = asyncio.run(gateway.latest_news(5))

    assert [item.title for item in news] == ["story 6", "story 5", "story 4", "story 3", "story 2"]


def test_database_errors_become_absent(tmp_path):
    # no tables created
    gateway = MarketDataGateway(db_path=str(tmp_path / "empty.db"))

    assert not asyncio.run(gateway.find_coin("btc"))
    assert asyncio.run(gateway.latest_news()) == []
