"""Shared fakes for the chat assistant test suite."""

from typing import Dict, List, Optional

import pytest

from nexbot.models.lookup import Lookup
from nexbot.models.market import CoinFact, Intent, NewsItem
from nexbot.models.trade import Holding, OrderResult, Wallet
from nexbot.policy import DialoguePolicy

BITCOIN = CoinFact(
    name="Bitcoin",
    symbol="btc",
    price=42012.5,
    market_cap=820000000000.0,
    volume_24h=31500000000.25,
    change_24h=-1.75,
    last_updated="2026-10-18T09:00:00Z",
)
ETHEREUM = CoinFact(
    name="Ethereum",
    symbol="eth",
    price=2500.0,
    market_cap=300000000000.0,
    volume_24h=12000000000.0,
    change_24h=2.5,
    last_updated="2026-10-18T09:00:00Z",
)


class FakeSlots:
    def __init__(self, coins: Optional[Dict[str, str]] = None, intent: Intent = Intent.GENERAL):
        self.coins = coins or {}
        self.intent = intent
        self.intent_calls = 0
        self.extract_calls = 0

    async def extract_coin(self, text):
        self.extract_calls += 1
        for word, coin in self.coins.items():
            if word in text:
                return coin
        return None

    async def classify_intent(self, text, coin):
        self.intent_calls += 1
        return self.intent


class FakeMarket:
    def __init__(self, facts=(BITCOIN, ETHEREUM), news: Optional[List[NewsItem]] = None):
        self.facts = {}
        for fact in facts:
            self.facts[fact.name.lower()] = fact
            self.facts[fact.symbol.lower()] = fact
        self.news = news or []
        self.news_calls = 0

    async def find_coin(self, coin):
        fact = self.facts.get(str(coin).lower()) if coin else None
        return Lookup.present(fact) if fact else Lookup.absent()

    async def latest_news(self, limit=5):
        self.news_calls += 1
        return sorted(self.news, key=lambda n: n.published_at, reverse=True)[:limit]


class FakeAccount:
    def __init__(self, balance: Optional[float] = 1000.0, holdings: Optional[List[Holding]] = None,
                 profile: Optional[dict] = None, order_result: Optional[OrderResult] = None):
        self.balance = balance
        self.holdings = holdings
        self.profile = profile
        self.orders: List[dict] = []
        self.transactions: List[dict] = []
        self.order_result = order_result or OrderResult(success=True, data={"id": 1})
        self.submitted = []
        self.calls: List[str] = []

    async def get_profile(self, credential):
        self.calls.append("profile")
        return Lookup.present(self.profile) if self.profile else Lookup.absent()

    async def get_portfolio(self, credential):
        self.calls.append("portfolio")
        return Lookup.present(self.holdings) if self.holdings is not None else Lookup.absent()

    async def get_wallet(self, credential):
        self.calls.append("wallet")
        if self.balance is None:
            return Lookup.absent()
        return Lookup.present(Wallet(id=7, balance=self.balance))

    async def get_order_history(self, credential):
        self.calls.append("orders")
        return Lookup.present(self.orders)

    async def get_wallet_transactions(self, credential):
        self.calls.append("transactions")
        return Lookup.present(self.transactions)

    async def submit_order(self, credential, order):
        self.submitted.append(order)
        return self.order_result


class FakeComposer:
    def __init__(self, reply: str = "llm answer", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def compose(self, query, history=(), context_parts=()):
        self.calls.append({"query": query, "history": list(history), "context": list(context_parts)})
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def slots():
    return FakeSlots(coins={"bitcoin": "bitcoin", "btc": "btc", "eth": "eth"})


@pytest.fixture
def market():
    return FakeMarket()


@pytest.fixture
def account():
    return FakeAccount(holdings=[Holding(coin_id="bitcoin", name="Bitcoin", symbol="btc", quantity=0.5)])


@pytest.fixture
def composer():
    return FakeComposer()


@pytest.fixture
def policy(slots, market, account, composer):
    return DialoguePolicy(slots=slots, market=market, account=account, composer=composer)
