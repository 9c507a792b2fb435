import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from nexbot.config.settings import HISTORY_MAX_ENTRIES, LOG_LEVEL
from nexbot.policy import DialoguePolicy
from nexbot.services.account import AccountGateway
from nexbot.services.composer import ResponseComposer
from nexbot.services.llm import LLMService
from nexbot.services.market_data import MarketDataGateway
from nexbot.services.sessions import SessionStore
from nexbot.services.slots import SlotExtractor

# Set up logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


class ChatReply(BaseModel):
    reply: str


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def build_policy() -> DialoguePolicy:
    llm_service = LLMService()
    return DialoguePolicy(
        slots=SlotExtractor(llm_service),
        market=MarketDataGateway(),
        account=AccountGateway(),
        composer=ResponseComposer(llm_service),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    market = getattr(app.state.policy, "market", None)
    if isinstance(market, MarketDataGateway):
        logger.info(f"Preparing market data cache at {market.db_path}")
        market.init_db()
    yield


def create_app(policy: Optional[DialoguePolicy] = None, sessions: Optional[SessionStore] = None) -> FastAPI:
    app = FastAPI(title="Cryptonex Chat", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.policy = policy if policy is not None else build_policy()
    app.state.sessions = sessions if sessions is not None else SessionStore()

    @app.post("/chat", response_model=ChatReply)
    async def chat(request: Request, authorization: Optional[str] = Header(None)):
        try:
            data = await request.json()
        except ValueError:
            data = None
        message = data.get("message") if isinstance(data, dict) else None
        if not message or not isinstance(message, str):
            return _error(400, "Message is required")

        clean_message = message.lower().strip()
        # anonymous callers share a session per client host
        session_key = authorization or (request.client.host if request.client else "anonymous")
        sessions: SessionStore = request.app.state.sessions

        try:
            async with sessions.guard(session_key):
                session = sessions.get(session_key)
                outcome = await request.app.state.policy.respond(clean_message, authorization, session)
                if outcome.mentioned_coin:
                    session.last_coin = outcome.mentioned_coin
                session.record(clean_message, outcome.reply, HISTORY_MAX_ENTRIES)
                sessions.upsert(session_key, session)
        except Exception as e:
            logger.error(f"Chat error: {e}", exc_info=True)
            return _error(500, "Internal server error")

        return ChatReply(reply=outcome.reply)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
