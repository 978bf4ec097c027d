"""Main FastAPI server with WebSocket support."""
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from pokerroom import __version__
from pokerroom.config import config
from pokerroom.game.errors import GameError, StorageError
from pokerroom.state.redis_client import redis_client
from pokerroom.session.room_service import RoomService
from pokerroom.protocol.handlers import MessageHandler
from pokerroom.utils.logger import get_logger

logger = get_logger(__name__)


# Process-wide room service and handler
service = RoomService()
handler = MessageHandler(service)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    await redis_client.connect()
    await redis_client.ping()
    logger.info("Poker room server started")
    yield
    await service.shutdown()
    await redis_client.disconnect()
    logger.info("Poker room server shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Poker Room Server",
    description="Multiplayer Texas Hold'em rooms over WebSocket",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware - allow local development
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",  # Allow any localhost port
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/api/rooms/{room_code}")
async def get_room(room_code: str):
    """Spectator view of a room."""
    try:
        return await service.get_room_state(room_code)
    except GameError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=e.message)


# WebSocket endpoint
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for game communication."""
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    service.connections.register(connection_id, websocket)
    logger.debug(f"Connection {connection_id} opened")

    try:
        while True:
            data = await websocket.receive_text()

            response = await handler.handle_message(connection_id, data)

            if response:
                await websocket.send_json(response)

    except WebSocketDisconnect:
        logger.debug(f"Connection {connection_id} closed")
    finally:
        try:
            await service.disconnect(connection_id)
        except StorageError as e:
            logger.error(f"Failed to record disconnect of {connection_id}: {e.message}")


# Entry point
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pokerroom.main:app",
        host=config.host,
        port=config.port,
        reload=True,
    )
