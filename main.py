import logging
from fastapi import FastAPI, Request
from database import init_db
from config import configure_logging

# --- IMPORT ROUTERS (APIs) ---
from routers import fees, transactions, stock, invoices, members, reports, locale
from routers import bulk_import

configure_logging()
logger = logging.getLogger(__name__)

# --- CREATE DATABASE TABLES ---
init_db()

app = FastAPI(title="Library Back Office")


# ==========================================
# LOCALE MIDDLEWARE
# ==========================================
@app.middleware("http")
async def locale_middleware(request: Request, call_next):
    request.state.locale = locale.resolve_locale(request)
    response = await call_next(request)
    return response


# --- REGISTER ROUTERS ---
app.include_router(fees.router)
app.include_router(transactions.router)
app.include_router(stock.router)
app.include_router(invoices.router)
app.include_router(members.router)
app.include_router(reports.router)
app.include_router(bulk_import.router)
app.include_router(locale.router)


@app.get("/")
def index(request: Request):
    return {"app": app.title, "locale": request.state.locale}

logger.info("Library back office started")
