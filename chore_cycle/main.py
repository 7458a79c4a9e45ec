from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chore_cycle.logging_config import configure_logging
from chore_cycle.routers import auths, chores, websockets
from chore_cycle.services.websocket_service import websocket_manager

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await websocket_manager.start_subscriber()
    yield
    await websocket_manager.stop_subscriber()


app = FastAPI(
    title="Chore Cycle API",
    version="1.0.0",
    description="Rotating chores with per-user realtime updates over WebSocket",
    lifespan=lifespan,
)

# CORS middleware for the mobile client
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auths.router, prefix="/api")
app.include_router(chores.router, prefix="/api")
app.include_router(websockets.router)


@app.get("/")
async def root():
    return {
        "message": "Chore Cycle API",
        "docs": "/docs",
        "websocket": "/ws",
        "auth": "/api/auth"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
