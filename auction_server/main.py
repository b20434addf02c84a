from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from jsonschema import ValidationError

from .admin import config as admin_config
from .admin import health as admin_health
from .admin import stats as admin_stats
from .auction.engine import BiddingEngine
from .auction.results import (
    AuctionHasBids,
    AuctionNotActive,
    AuctionNotFound,
    BidTooLow,
    BuyNowUnavailable,
    InvalidBidAmount,
    NotAuthorized,
    PersistenceFailure,
    describe,
)
from .auction.scopes import build_scope
from .auction.service import AuctionService
from .config import ServerConfig, get_server_config
from .storage import AuctionExists, build_storage
from .timestamps import TimestampError
from .validation.validator import SchemaRegistry, get_schema_registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    server_config = get_server_config()
    logging.getLogger("auction_server").setLevel(server_config.logging.level)
    schema_registry = get_schema_registry()
    storage = build_storage(server_config)
    bidding = server_config.bidding
    engine = BiddingEngine(
        storage,
        build_scope(bidding.serialization),
        minimum_increment=bidding.minimum_increment,
        max_attempts=bidding.serialization.max_attempts,
    )
    auction_service = AuctionService(storage=storage, soft_close=bidding.soft_close)

    app.state.server_config = server_config
    app.state.schema_registry = schema_registry
    app.state.storage = storage
    app.state.engine = engine
    app.state.auction_service = auction_service
    app.state.start_time = datetime.now(timezone.utc)
    logger.info(
        "auction server ready storage=%s serialization=%s increment=%s",
        server_config.storage.backend,
        bidding.serialization.backend,
        bidding.minimum_increment,
    )

    yield


app = FastAPI(
    title="ROSTRY Auction Server",
    version="1.0.0",
    docs_url="/docs",
    lifespan=lifespan,
)

app.include_router(admin_health.router)
app.include_router(admin_stats.router)
app.include_router(admin_config.router)


# Dependency helpers ---------------------------------------------------------


def get_server_settings(request: Request) -> ServerConfig:
    return request.app.state.server_config


def get_schema_service(request: Request) -> SchemaRegistry:
    return request.app.state.schema_registry


def get_engine(request: Request) -> BiddingEngine:
    return request.app.state.engine


def get_auction_service(request: Request) -> AuctionService:
    return request.app.state.auction_service


_REJECTION_STATUS = {
    AuctionNotFound: status.HTTP_404_NOT_FOUND,
    AuctionNotActive: status.HTTP_409_CONFLICT,
    AuctionHasBids: status.HTTP_409_CONFLICT,
    BuyNowUnavailable: status.HTTP_409_CONFLICT,
    NotAuthorized: status.HTTP_403_FORBIDDEN,
    BidTooLow: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidBidAmount: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def rejection_status(result: Any) -> int:
    for kind, code in _REJECTION_STATUS.items():
        if isinstance(result, kind):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _validate(schemas: SchemaRegistry, name: str, payload: dict[str, Any]) -> None:
    try:
        schemas.validate(name, payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc.message)) from exc


# Routes ---------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root(settings: ServerConfig = Depends(get_server_settings)) -> dict[str, Any]:
    return {
        "service": "rostry-auction-server",
        "version": app.version,
        "bidding": {
            "minimum_increment": str(settings.bidding.minimum_increment),
            "serialization_backend": settings.bidding.serialization.backend,
        },
    }


@app.get("/ping", tags=["meta"])
async def ping() -> dict[str, Any]:
    return {"status": "ok", "version": app.version}


@app.post("/auctions", tags=["auctions"], status_code=status.HTTP_201_CREATED)
async def create_auction(
    payload: dict[str, Any] = Body(...),
    schemas: SchemaRegistry = Depends(get_schema_service),
    service: AuctionService = Depends(get_auction_service),
) -> dict[str, Any]:
    _validate(schemas, "auction_create", payload)
    try:
        auction = await service.create_auction(**payload)
    except AuctionExists as exc:
        raise HTTPException(status_code=409, detail=f"auction {exc} already exists") from exc
    except (TimestampError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return auction.to_dict()


@app.get("/auctions", tags=["auctions"])
async def find_auction(
    product_id: str = Query(...),
    service: AuctionService = Depends(get_auction_service),
) -> dict[str, Any]:
    auction = await service.find_open_auction_for_product(product_id)
    return {"product_id": product_id, "auction": auction.to_dict() if auction else None}


@app.get("/auctions/{auction_id}", tags=["auctions"])
async def get_auction(
    auction_id: str,
    service: AuctionService = Depends(get_auction_service),
) -> dict[str, Any]:
    auction = await service.get_auction(auction_id)
    if auction is None:
        raise HTTPException(status_code=404, detail="Auction not found")
    return auction.to_dict()


@app.get("/auctions/{auction_id}/bids", tags=["bids"])
async def list_bids(
    auction_id: str,
    service: AuctionService = Depends(get_auction_service),
) -> dict[str, Any]:
    if await service.get_auction(auction_id) is None:
        raise HTTPException(status_code=404, detail="Auction not found")
    bids = await service.list_bids(auction_id)
    return {"auction_id": auction_id, "bids": [bid.to_dict() for bid in bids]}


@app.post("/auctions/{auction_id}/bids", tags=["bids"], status_code=status.HTTP_201_CREATED)
async def place_bid(
    auction_id: str,
    payload: dict[str, Any] = Body(...),
    schemas: SchemaRegistry = Depends(get_schema_service),
    engine: BiddingEngine = Depends(get_engine),
    settings: ServerConfig = Depends(get_server_settings),
) -> dict[str, Any]:
    _validate(schemas, "bid_request", payload)
    try:
        result = await asyncio.wait_for(
            engine.place_bid(auction_id, payload["user_id"], payload["amount"]),
            timeout=settings.bidding.bid_timeout_ms / 1000,
        )
    except asyncio.TimeoutError as exc:
        raise HTTPException(status_code=504, detail="bid timed out, please retry") from exc
    if not result.accepted:
        raise HTTPException(status_code=rejection_status(result), detail=describe(result))
    return describe(result)


@app.post("/auctions/{auction_id}/cancel", tags=["auctions"])
async def cancel_auction(
    auction_id: str,
    payload: dict[str, Any] = Body(...),
    schemas: SchemaRegistry = Depends(get_schema_service),
    engine: BiddingEngine = Depends(get_engine),
) -> dict[str, Any]:
    _validate(schemas, "auction_cancel", payload)
    result = await engine.cancel_auction(auction_id, payload["seller_id"])
    if not result.accepted:
        raise HTTPException(status_code=rejection_status(result), detail=describe(result))
    return describe(result)


@app.post("/auctions/{auction_id}/buy-now", tags=["auctions"])
async def buy_now(
    auction_id: str,
    payload: dict[str, Any] = Body(...),
    schemas: SchemaRegistry = Depends(get_schema_service),
    engine: BiddingEngine = Depends(get_engine),
) -> dict[str, Any]:
    _validate(schemas, "buy_now", payload)
    result = await engine.buy_now(auction_id, payload["buyer_id"])
    if not result.accepted:
        raise HTTPException(status_code=rejection_status(result), detail=describe(result))
    return describe(result)
