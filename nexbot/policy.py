import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence
from nexbot.config.settings import NEWS_LIMIT, PROMPT_HISTORY_ENTRIES
from nexbot.models.market import CoinFact, Intent
from nexbot.models.session import UserSession
from nexbot.models.trade import ORDER_QUANTITY_PLACES, Holding, OrderRequest
from nexbot.services.account import AccountGateway
from nexbot.services.composer import ResponseComposer
from nexbot.services.market_data import MarketDataGateway
from nexbot.services.slots import SlotExtractor

logger = logging.getLogger(__name__)

NEWS_KEYWORDS = ("news", "headlines", "latest news")
DOLLAR_KEYWORDS = ("dollar", "usd", "worth")
HOLDING_KEYWORDS = ("holding", "am i holding")
ACCOUNT_KEYWORDS = ("profile", "portfolio", "orders", "wallet", "transaction")
AMOUNT_RE = re.compile(r"(\d+(\.\d+)?)")
CONTEXT_ITEMS = 5

NO_NEWS = "No news available at the moment."
NO_COIN_TO_TRADE = "Please specify which coin you want to trade."
NO_WALLET = "❌ Couldn't fetch wallet balance."
NO_PORTFOLIO = "❌ Couldn't fetch your portfolio."
LOW_BALANCE = "Insufficient wallet balance to buy."
LOW_QUANTITY = "Insufficient quantity to sell."
ORDER_FAILED = "❌ Failed to place the order. "


def trim_number(value: Optional[float], places: int = 8) -> str:
    """Fixed-point rendering without trailing zeros, e.g. 2.0 -> "2"."""
    if value is None:
        return "N/A"
    text = f"{value:.{places}f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def grouped(value: Optional[float]) -> str:
    """Thousands separators with at most three decimals, e.g. 1234567.5 -> "1,234,567.5"."""
    if value is None:
        return "N/A"
    text = f"{value:,.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def money(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.2f}"


def no_data(coin: str) -> str:
    return f"⚠️ Couldn't find data for {coin}"


def find_holding(holdings: Sequence[Holding], coin: str) -> Optional[Holding]:
    return next((h for h in holdings if h.matches(coin)), None)


def contains_any(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword in text for keyword in keywords)


@dataclass
class Turn:
    """Everything a branch may look at for one incoming message."""
    text: str
    credential: Optional[str]
    coin: Optional[str]
    history: List[str] = field(default_factory=list)


@dataclass
class Outcome:
    reply: str
    branch: str
    mentioned_coin: Optional[str] = None


@dataclass(frozen=True)
class Branch:
    name: str
    matches: Callable[[Turn], bool]
    handle: Callable[[Turn], Awaitable[Optional[str]]]


class DialoguePolicy:
    """Routes a chat message to the first branch that can answer it.

    Branches are tried in a fixed order: news, trade, holdings, market data and
    finally the LLM fallback. A branch whose predicate matches owns the reply,
    including any rejection it produces. The market data branch is the only one
    that can pass, which it does for ``general`` intent so the LLM answers.
    """

    def __init__(
        self,
        slots: SlotExtractor,
        market: MarketDataGateway,
        account: AccountGateway,
        composer: ResponseComposer,
        history_entries: int = PROMPT_HISTORY_ENTRIES,
    ):
        self.slots = slots
        self.market = market
        self.account = account
        self.composer = composer
        self.history_entries = history_entries
        self.branches = [
            Branch("news", lambda t: contains_any(t.text, NEWS_KEYWORDS), self.answer_news),
            Branch("trade", self._wants_trade, self.place_order),
            Branch("holdings", self._wants_holdings, self.answer_holdings),
            Branch("market", lambda t: bool(t.coin), self.answer_market),
            Branch("fallback", lambda t: True, self.answer_freeform),
        ]

    async def respond(self, text: str, credential: Optional[str], session: UserSession) -> Outcome:
        mentioned = await self.slots.extract_coin(text)
        turn = Turn(
            text=text,
            credential=credential,
            coin=mentioned or session.last_coin,
            history=session.recent(self.history_entries),
        )
        for branch in self.branches:
            if not branch.matches(turn):
                continue
            reply = await branch.handle(turn)
            if reply is not None:
                logger.info(f"Answered via {branch.name} branch (coin={turn.coin})")
                return Outcome(reply=reply, branch=branch.name, mentioned_coin=mentioned)
        raise RuntimeError("no dialogue branch produced a reply")

    @staticmethod
    def _wants_trade(turn: Turn) -> bool:
        return bool(turn.credential) and ("buy" in turn.text or "sell" in turn.text)

    @staticmethod
    def _wants_holdings(turn: Turn) -> bool:
        return bool(turn.coin) and bool(turn.credential) and contains_any(turn.text, HOLDING_KEYWORDS)

    async def answer_news(self, turn: Turn) -> str:
        items = await self.market.latest_news(NEWS_LIMIT)
        if not items:
            return NO_NEWS
        lines = ["Here are the latest news headlines:"]
        for item in items[:NEWS_LIMIT]:
            lines.append(f"• {item.title} (Source: {item.source}, Published: {item.published_at})")
        return "\n".join(lines) + "\n"

    async def place_order(self, turn: Turn) -> str:
        text = turn.text
        order_type = "BUY" if "buy" in text else "SELL"
        verb = order_type.lower()

        match = AMOUNT_RE.search(text)
        amount = float(match.group(1)) if match else 0.0
        if amount <= 0:
            return f"Please specify the amount to {verb}."
        is_dollar = contains_any(text, DOLLAR_KEYWORDS)

        if not turn.coin:
            return NO_COIN_TO_TRADE
        lookup = await self.market.find_coin(turn.coin)
        if not lookup or not lookup.value.price:
            return no_data(turn.coin)
        fact: CoinFact = lookup.value

        quantity = amount / fact.price if order_type == "BUY" and is_dollar else amount
        quantity = round(quantity, ORDER_QUANTITY_PLACES)
        if quantity <= 0:
            logger.info(f"Rejected {order_type} {fact.symbol}: amount {amount} rounds to zero quantity")
            return f"The amount is too small to {verb}. Please specify a larger amount."

        if order_type == "BUY":
            wallet = await self.account.get_wallet(turn.credential)
            if not wallet:
                return NO_WALLET
            cost = amount if is_dollar else quantity * fact.price
            if cost > wallet.value.balance:
                logger.info(f"Rejected BUY {fact.symbol}: cost {cost:.2f} exceeds balance {wallet.value.balance:.2f}")
                return LOW_BALANCE
        else:
            portfolio = await self.account.get_portfolio(turn.credential)
            if not portfolio:
                return NO_PORTFOLIO
            holding = find_holding(portfolio.value, turn.coin)
            if holding is None:
                logger.info(f"Rejected SELL {turn.coin}: not held")
                return f"You are not holding {turn.coin}."
            if holding.quantity < quantity:
                logger.info(f"Rejected SELL {turn.coin}: holding {holding.quantity} < {quantity}")
                return LOW_QUANTITY

        order = OrderRequest.build(fact.name.lower(), quantity, order_type)
        result = await self.account.submit_order(turn.credential, order)
        if result.success:
            return f"Order placed successfully for {verb}ing {fact.name}."
        return ORDER_FAILED + (result.error or "Unknown error")

    async def answer_holdings(self, turn: Turn) -> str:
        portfolio = await self.account.get_portfolio(turn.credential)
        if not portfolio:
            return NO_PORTFOLIO
        holding = find_holding(portfolio.value, turn.coin)
        if holding is None:
            return f"You are not holding {turn.coin}."
        reply = f"Yes, you are holding {trim_number(holding.quantity)} {holding.name} ({holding.symbol})."
        price = await self.market.find_coin(holding.coin_id)
        if price and price.value.price:
            reply += f" Its current value is ${holding.quantity * price.value.price:.2f}."
        return reply

    async def answer_market(self, turn: Turn) -> Optional[str]:
        lookup = await self.market.find_coin(turn.coin)
        if not lookup:
            return no_data(turn.coin)
        fact: CoinFact = lookup.value
        intent = await self.slots.classify_intent(turn.text, turn.coin)
        if intent is Intent.PRICE:
            return f"💰 Current price of {fact.name} ({fact.symbol.upper()}) is ${money(fact.price)}"
        if intent is Intent.MARKET_CAP:
            return f"📊 Market Cap: ${grouped(fact.market_cap)}"
        if intent is Intent.VOLUME:
            return f"💹 24h Volume: ${grouped(fact.volume_24h)}"
        if intent is Intent.CHANGE:
            return f"📈 24h Change: {trim_number(fact.change_24h)}%"
        return None

    async def answer_freeform(self, turn: Turn) -> str:
        context_parts: List[str] = []
        if turn.credential and contains_any(turn.text, ACCOUNT_KEYWORDS):
            context_parts = await self.account_context(turn)
        return await self.composer.compose(turn.text, turn.history, context_parts)

    async def account_context(self, turn: Turn) -> List[str]:
        """Fetch the user's account data concurrently; failed pieces are left out."""
        credential = turn.credential
        jobs: Dict[str, Awaitable] = {
            "profile": self.account.get_profile(credential),
            "portfolio": self.account.get_portfolio(credential),
            "wallet": self.account.get_wallet(credential),
        }
        if "orders" in turn.text:
            jobs["orders"] = self.account.get_order_history(credential)
        if "transaction" in turn.text:
            jobs["transactions"] = self.account.get_wallet_transactions(credential)

        results = await asyncio.gather(*jobs.values(), return_exceptions=True)
        found = {}
        for name, result in zip(jobs, results):
            if isinstance(result, Exception):
                logger.error(f"Account {name} fetch raised: {result}")
            elif result:
                found[name] = result.value

        parts = []
        profile = found.get("profile")
        if profile:
            parts.append(
                f"👤 User Profile:\n- Name: {profile.get('fullName')}\n- Email: {profile.get('email')}\n"
                f"- Phone: {profile.get('mobile') or 'Not provided'}"
            )
        holdings = found.get("portfolio")
        if holdings:
            details = await asyncio.gather(*(self._describe_holding(h) for h in holdings))
            parts.append("📦 Portfolio Holdings:\n" + "\n".join(details))
        wallet = found.get("wallet")
        if wallet:
            parts.append(f"💰 Wallet Balance: ${wallet.balance:.2f}\n🔖 Wallet ID: #FAVHJY{wallet.id}")
        orders = found.get("orders")
        if orders:
            parts.append("🧾 Recent Orders:\n" + "\n".join(describe_order(o) for o in orders[:CONTEXT_ITEMS]))
        transactions = found.get("transactions")
        if transactions:
            parts.append(
                "🔁 Recent Transactions:\n"
                + "\n".join(describe_transaction(t) for t in transactions[:CONTEXT_ITEMS])
            )
        return parts

    async def _describe_holding(self, holding: Holding) -> str:
        lookup = await self.market.find_coin(holding.coin_id)
        price = lookup.value.price if lookup else None
        value = money(holding.quantity * price) if price else "N/A"
        return f"- {trim_number(holding.quantity)} {holding.symbol} (${value}) @ ${money(price) if price else 'N/A'}"


def describe_order(order: Dict) -> str:
    item = order.get("orderItem") or {}
    coin = item.get("coin") or order.get("coin") or {}
    symbol = str(coin.get("symbol") or "?").upper()
    quantity = item.get("quantity", order.get("quantity"))
    if quantity is None:
        quantity = "?"
    price = order.get("price")
    status = order.get("status") or "UNKNOWN"
    line = f"- {order.get('orderType', 'ORDER')} {quantity} {symbol}"
    if isinstance(price, (int, float)):
        line += f" @ ${price:.2f}"
    return f"{line} ({status}, {order.get('timestamp', 'n/a')})"


def describe_transaction(tx: Dict) -> str:
    amount = tx.get("amount")
    amount_text = f"${amount:.2f}" if isinstance(amount, (int, float)) else str(amount)
    purpose = tx.get("purpose")
    line = f"- {tx.get('date', 'n/a')} {tx.get('type', 'TRANSACTION')} {amount_text}"
    return f"{line} ({purpose})" if purpose else line
