import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env from payflow/.env
backend_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(backend_dir, ".env"))

# Import after dotenv is loaded
from payflow.core.config import settings, validate_config  # noqa: E402
from payflow.core.logging import configure_logging  # noqa: E402
from payflow.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from payflow.core.validation import validate_env  # noqa: E402
from payflow.core.database import create_all_tables  # noqa: E402
from payflow.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from payflow.api import health, payments  # noqa: E402
from payflow.features.billing.registry import describe_enabled_provider  # noqa: E402
from payflow.features.plans.service import seed_plans  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("payflow")
    logger.info("Starting payflow backend...")
    app.state.startup_time = time.time()
    create_all_tables()
    seed_plans()
    provider = describe_enabled_provider()
    logger.info(
        "billing.provider",
        extra={"provider": provider["provider"], "enabled": provider["enabled"]},
    )
    try:
        yield
    finally:
        logging.getLogger("payflow").info("Stopping payflow backend...")


app = FastAPI(title="payflow - Checkout & Verification", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(payments.router)
app.include_router(health.router)
app.include_router(health.root_router)
