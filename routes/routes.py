from fastapi import FastAPI
from .messages import router as message_routes
from .realtime import router as realtime_router

def setup_routes(app: FastAPI):
    @app.get("/")
    async def root():
        return {"message": "API is alive!"}

    # Include the router with a prefix
    app.include_router(
        message_routes,
        prefix="/messages",
        tags=["messages"],
    )

    app.include_router(
        realtime_router,
        tags=["realtime"],
    )
