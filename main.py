# main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
import uvicorn

from logger.logger import logger

# Try to import config - if any required configs are missing,
# the app will exit before starting
try:
    import config
except Exception as e:
    logger.critical(f"Failed to load configuration: {e}")
    import sys
    sys.exit(1)

from db.db import init_db, close_db_connection, init_object_storage
from routes.routes import setup_routes
from services.connection_manager import ConnectionManager
from services.exceptions import MessagingError
from services.presence_registry import PresenceRegistry


def register_exception_handlers(app: FastAPI):
    """Every failure reaches the client as {"success": false, "message": ...}"""

    @app.exception_handler(MessagingError)
    async def messaging_error_handler(request: Request, exc: MessagingError):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message},
            headers=headers
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = f"{location}: {errors[0].get('msg', message)}" if location else errors[0].get("msg", message)
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": message}
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"}
        )


def create_app(connect_services: bool = True) -> FastAPI:
    # Initialize FastAPI app
    app = FastAPI(title="Direct Messaging API")

    # Process-wide realtime state, shared by every request and connection
    app.state.presence = PresenceRegistry()
    app.state.connections = ConnectionManager()

    register_exception_handlers(app)

    # Setup routes
    setup_routes(app)

    if connect_services:
        # Startup and shutdown events
        @app.on_event("startup")
        async def startup_db_client():
            logger.info("Starting up application")
            await init_db()
            await init_object_storage()

        @app.on_event("shutdown")
        async def shutdown_db_client():
            logger.info("Shutting down application")
            await app.state.connections.drain()
            await close_db_connection()

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
