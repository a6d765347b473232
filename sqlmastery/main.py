"""
FastAPI application for the SQL Mastery Challenge game
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Config
from .game_routes import game_router
from .rate_limiter import limiter, rate_limit_exceeded_handler
from .secure_execution import sanitize_json_data
from .services import build_services

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

Config.validate_config()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: levels are loaded once and stay immutable for the process lifetime
    app.state.services = build_services()
    logger.info("SQL Mastery Challenge API started")
    yield
    # Shutdown: close every live sandbox and cancel its expiry timer
    app.state.services.shutdown()


app = FastAPI(title="SQL Mastery Challenge API",
              description="Learn SQL by solving levels against isolated sandbox databases",
              version="1.0.0",
              lifespan=lifespan)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request data"})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=sanitize_json_data({"error": exc.detail}),
    )


app.include_router(game_router)


@app.get("/api/health")
def health_check():
    return {"status": "healthy", "service": "SQL Mastery Challenge API", "version": "1.0.0"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sqlmastery.main:app", host=Config.HOST, port=Config.PORT)
