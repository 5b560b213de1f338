from contextlib import asynccontextmanager

from fastapi import FastAPI

from molda_ledger.logging_config import setup_logging, get_logger
from molda_ledger.routers.users import router as users_router
from molda_ledger.routers.accounts import router as accounts_router
from molda_ledger.routers.categories import router as categories_router
from molda_ledger.routers.transactions import router as transactions_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    logger.info("Molda Ledger API starting")
    yield


app = FastAPI(title="Molda Ledger API", lifespan=lifespan)

app.include_router(users_router)
app.include_router(accounts_router)
app.include_router(categories_router)
app.include_router(transactions_router)


@app.get("/")
def read_root():
    return "Server is running."
