import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import fieldpos.models  # ensure models are registered
from fieldpos.core.config import CORS_ORIGINS, LOG_LEVEL
from fieldpos.utils.database import engine, Base
from fieldpos.routers import (
    collections_router,
    customers_router,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # DEV ONLY – use migrations in production
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
    yield


app = FastAPI(title="Field Collection POS API", version="1.0", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(customers_router.router)
app.include_router(collections_router.router)


@app.get("/")
def root():
    return {"message": "Field Collection POS backend is running"}


@app.get("/health")
def health():
    return {"status": "OK"}
