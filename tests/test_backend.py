"""Route-level tests for the chat API."""

import sqlite3

from fastapi.testclient import TestClient

from conftest import FakeAccount, FakeComposer, FakeMarket, FakeSlots
from nexbot.backend import create_app
from nexbot.models.market import Intent
from nexbot.policy import DialoguePolicy
from nexbot.services.market_data import MarketDataGateway
from nexbot.services.sessions import SessionStore


def _client(composer=None, intent=Intent.PRICE, market=None):
    slots = FakeSlots(coins={"bitcoin": "bitcoin", "eth": "eth"}, intent=intent)
    market = market if market is not None else FakeMarket()
    account = FakeAccount()
    policy = DialoguePolicy(
        slots=slots,
        market=market,
        account=account,
        composer=composer or FakeComposer(),
    )
    sessions = SessionStore(max_users=100, idle_ttl=0)
    client = TestClient(create_app(policy=policy, sessions=sessions))
    client.slots = slots
    return client, sessions, market, account


def test_missing_message_is_rejected_without_side_effects():
    client, sessions, market, account = _client()

    for body in ({}, {"message": ""}, {"message": 42}):
        response = client.post("/chat", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}

    assert client.post("/chat", content=b"not json").status_code == 400
    assert len(sessions) == 0
    assert market.news_calls == 0
    assert account.calls == []
    assert client.slots.extract_calls == 0


def test_reply_is_recorded_in_session():
    client, sessions, _, _ = _client()

    response = client.post("/chat", json={"message": "  What is the price of Bitcoin?"})

    assert response.status_code == 200
    assert response.json() == {"reply": "💰 Current price of Bitcoin (BTC) is $42012.50"}
    session = sessions.get("testclient")
    assert session.last_coin == "bitcoin"
    assert session.history == [
        "User: what is the price of bitcoin?",
        "Bot: 💰 Current price of Bitcoin (BTC) is $42012.50",
    ]


def test_follow_up_resolves_coin_from_memory():
    client, _, _, _ = _client()

    client.post("/chat", json={"message": "eth price"})
    response = client.post("/chat", json={"message": "and now?"})

    assert response.json()["reply"] == "💰 Current price of Ethereum (ETH) is $2500.00"


def test_sessions_are_keyed_by_credential():
    client, sessions, _, _ = _client()

    client.post("/chat", json={"message": "bitcoin price"}, headers={"Authorization": "Bearer one"})
    client.post("/chat", json={"message": "eth price"}, headers={"Authorization": "Bearer two"})

    assert sessions.get("Bearer one").last_coin == "bitcoin"
    assert sessions.get("Bearer two").last_coin == "eth"


def test_history_is_capped_across_many_messages():
    client, sessions, _, _ = _client()

    for i in range(15):
        client.post("/chat", json={"message": f"bitcoin price {i}"})

    history = sessions.get("testclient").history
    assert len(history) == 20
    assert history[0] == "User: bitcoin price 5"


def test_generative_failure_is_internal_error():
    client, sessions, _, _ = _client(composer=FakeComposer(error=RuntimeError("model down")), intent=Intent.GENERAL)

    response = client.post("/chat", json={"message": "tell me a joke"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert sessions.get("testclient").history == []


def test_health():
    client, _, _, _ = _client()

    assert client.get("/health").json() == {"status": "ok"}


def test_startup_prepares_market_data_tables(tmp_path):
    market = MarketDataGateway(db_path=str(tmp_path / "fresh.db"))
    client, _, _, _ = _client(market=market)

    with client:
        response = client.post("/chat", json={"message": "latest news"})

    assert response.json() == {"reply": "No news available at the moment."}
    conn = sqlite3.connect(market.db_path)
    tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    conn.close()
    assert {"crypto_prices", "crypto_news"} <= tables
