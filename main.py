import logging
from typing import Callable, Iterable, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

import config
from database import SessionLocal, init_db
from routers import subscriptions_router
from services.subscription_ledger import system_clock
from services.token_client import TokenRegistry

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    session_factory: Optional[sessionmaker] = None,
    token_registry: Optional[TokenRegistry] = None,
    clock: Optional[Callable[[], int]] = None,
    payment_listeners: Iterable[Callable] = (),
) -> FastAPI:
    """
    Build the API. Collaborators default to the configured database, an empty
    token registry and the system clock; deployments register their token clients
    on app.state.token_registry.
    """
    app = FastAPI(title="Subscription Ledger")

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.session_factory = session_factory or SessionLocal
    app.state.token_registry = token_registry if token_registry is not None else TokenRegistry()
    app.state.clock = clock or system_clock
    app.state.payment_listeners = list(payment_listeners)

    app.include_router(subscriptions_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


# App instance
app = create_app()


if __name__ == "__main__":
    init_db()
    logger.info(f"Starting subscription ledger on {config.HOST}:{config.PORT}")
    uvicorn.run("main:app", host=config.HOST, port=config.PORT)
