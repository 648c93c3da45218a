"""
FastAPI main application for the Minimal Books API.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.auth import AuthError, TokenService, TokenValidator, UserDirectory
from api.config import APIConfig
from api.database import build_engine, build_session_factory, init_db
from api.models import ErrorResponse
from api.routes import build_router
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Minimal Books API")
    init_db(app.state.engine)

    yield

    # Shutdown
    logger.info("Shutting down Minimal Books API")
    app.state.engine.dispose()


def create_app(config: Optional[APIConfig] = None) -> FastAPI:
    """
    Build the application.

    Args:
        config: Settings to use; read from the environment when omitted

    Raises:
        ConfigurationError: If the JWT settings are missing
        ValueError: If a protected route name matches no route
    """
    config = config or APIConfig()

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug,
    )

    # Fails before the app exists if the signing settings are absent
    token_service = TokenService(config)
    token_validator = TokenValidator(config)
    user_directory = UserDirectory.from_config(config)
    router = build_router(config.protected_routes)

    app = FastAPI(
        title=config.api_title,
        description=f"""
    {config.api_description}

    ## Authentication

    Obtain a token from `POST /auth/token`, then send it on protected routes:

    ```
    Authorization: Bearer your_token_here
    ```

    Tokens expire {config.access_token_expire_minutes} minutes after issuance.
    """,
        version=config.api_version,
        lifespan=lifespan,
    )

    engine = build_engine(config.database_url)
    app.state.config = config
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.token_service = token_service
    app.state.token_validator = token_validator
    app.state.user_directory = user_directory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=config.cors_allow_methods,
        allow_headers=config.cors_allow_headers,
    )

    # Exception handlers
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc: HTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.detail,
                status_code=exc.status_code
            ).model_dump(),
            headers=exc.headers
        )

    @app.exception_handler(AuthError)
    async def auth_exception_handler(request, exc: AuthError):
        """Handle rejected bearer tokens."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.message,
                detail=exc.error,
                status_code=exc.status_code
            ).model_dump(),
            headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="Internal server error",
                detail=str(exc) if config.debug else None,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
            ).model_dump()
        )

    app.include_router(router)

    logger.info(
        "Application configured",
        database=engine.url.render_as_string(hide_password=True),
        users=len(user_directory),
        protected_routes=sorted(config.protected_routes),
    )
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
