from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .logging_config import setup_logging, get_logger
from .errors import VantageError, InvalidPayloadError, UnknownError
from .models.common import ActionResponse
from .services.cache import TaggedCache
from .routers.users import router as users_router
from .routers.accounts import router as accounts_router
from .routers.transactions import router as transactions_router
from .routers.categories import router as categories_router
from .routers.budgets import router as budgets_router
from .routers.goals import router as goals_router
from .routers.dashboard import router as dashboard_router

setup_logging()
logger = get_logger(__name__)


app = FastAPI(title="Vantage")
app.state.cache = TaggedCache()


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ActionResponse.fail(message).model_dump())


async def vantage_error_handler(request: Request, exc: VantageError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} failed with {exc.code}: {exc.message}")
    return _envelope(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} rejected payload: {exc.errors()}")
    return _envelope(InvalidPayloadError.status_code, InvalidPayloadError.default_message)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} hit a database error")
    return _envelope(UnknownError.status_code, UnknownError.default_message)


app.add_exception_handler(VantageError, vantage_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)

app.include_router(users_router)
app.include_router(accounts_router)
app.include_router(transactions_router)
app.include_router(categories_router)
app.include_router(budgets_router)
app.include_router(goals_router)
app.include_router(dashboard_router)


@app.get("/")
def read_root():
    return "Server is running."
