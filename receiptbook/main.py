import os

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from receiptbook import models  # noqa: F401  register tables
from receiptbook.database import engine, Base
from receiptbook.logging_config import setup_logging
from receiptbook.middleware import BearerAuthMiddleware, RequestLoggingMiddleware
from receiptbook.ratelimit import limiter
from receiptbook.routes import maintenance, receipts

load_dotenv()

# Sentry
sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        traces_sample_rate=0.1,
        send_default_pii=False,
    )

logger = setup_logging()

app = FastAPI(title="Receiptbook API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Middleware added last runs first: CORS, then logging, then auth
app.add_middleware(BearerAuthMiddleware, client_secret=os.getenv("CLIENT_SECRET", ""))
app.add_middleware(RequestLoggingMiddleware)

origins = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in origins],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

# Create tables (use Alembic in production)
Base.metadata.create_all(bind=engine)

# Routes
app.include_router(receipts.router, prefix="/api")
app.include_router(maintenance.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok"}
