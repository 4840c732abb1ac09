"""FastAPI host: parameter panel endpoints and live galaxy broadcast."""
from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import numpy as np
from fastapi import APIRouter, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError
from starlette.websockets import WebSocketState

from .config import DEFAULT_CONFIG, PARAM_BOUNDS, AppConfig, GalaxyParams
from .errors import GalaxyError, ResourceDisposalError
from .generator import GalaxyGenerator
from .presets import get_preset, list_presets
from .random_source import NumpyRandomSource
from .scene import PointCloud, Scene

logger = logging.getLogger(__name__)


# ============================================================================
# Pydantic Models
# ============================================================================

def _bounded(name: str) -> Any:
    low, high, _step = PARAM_BOUNDS[name]
    return Field(default=None, ge=low, le=high)


class ParamsUpdate(BaseModel):
    """Committed change from the parameter panel; omitted fields keep their value."""
    particle_count: Optional[int] = _bounded("particle_count")
    particle_size: Optional[float] = _bounded("particle_size")
    branches: Optional[int] = _bounded("branches")
    radius: Optional[float] = _bounded("radius")
    spin: Optional[float] = _bounded("spin")
    randomness: Optional[float] = _bounded("randomness")
    randomness_power: Optional[float] = _bounded("randomness_power")
    inside_color: Optional[str] = None
    outside_color: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ============================================================================
# Galaxy Service
# ============================================================================

def _encode(values: np.ndarray) -> str:
    return base64.b64encode(values.astype("<f4").tobytes()).decode("ascii")


def galaxy_payload(cloud: PointCloud, generation: int) -> Dict[str, Any]:
    """Serialise a displayed point cloud for clients."""
    buffer = cloud.buffer
    return {
        "generation": generation,
        "object_id": cloud.id,
        "count": buffer.count,
        "particle_size": cloud.material.size,
        "blending": cloud.material.blending,
        "encoding": "float32-base64",
        "positions": _encode(buffer.flat_positions()),
        "colors": _encode(buffer.flat_colors()),
    }


def _summary(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: payload[key] for key in ("generation", "object_id", "count", "particle_size")}


class GalaxyService:
    """
    Holds the current parameters, the scene and the generator for one app.

    Regeneration goes through ``lock``; broadcasts happen outside it using
    the immutable payload built right after generation.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self.params: GalaxyParams = config.params
        self.scene = Scene()
        self.generator = GalaxyGenerator(self.scene, NumpyRandomSource(config.seed))
        self.lock = asyncio.Lock()
        self.clients: set = set()
        self.payload: Optional[Dict[str, Any]] = None
        self.scene.subscribe(self._on_scene_change)

    def _on_scene_change(self, event: str, obj: PointCloud) -> None:
        if event == "remove" and self.payload is not None and self.payload["object_id"] == obj.id:
            self.payload = None
        logger.debug(f"Scene {event}: {obj!r} (live objects: {len(self.scene)})")

    def regenerate(self, params: Optional[GalaxyParams] = None) -> Dict[str, Any]:
        """Generate with ``params`` (default: current) and make them current."""
        params = params if params is not None else self.params
        self.generator.generate(params)
        self.params = params
        self.payload = galaxy_payload(self.generator.current, self.generator.generation)
        return self.payload

    def params_state(self) -> Dict[str, Any]:
        return {
            "params": self.params.as_dict(),
            "bounds": {
                name: {"min": low, "max": high, "step": step}
                for name, (low, high, step) in PARAM_BOUNDS.items()
            },
        }

    async def broadcast(self, message: Dict[str, Any]) -> None:
        """Send ``message`` to every connected client, dropping dead ones."""
        dead_clients = set()
        for client in list(self.clients):
            try:
                if client.client_state == WebSocketState.CONNECTED:
                    await client.send_json(message)
                else:
                    dead_clients.add(client)
            except Exception as e:
                logger.warning(f"Error sending to client: {type(e).__name__}: {e}")
                dead_clients.add(client)

        if dead_clients:
            logger.info(f"Removing {len(dead_clients)} dead clients")
        self.clients.difference_update(dead_clients)

    def close(self) -> None:
        self.generator.release()


async def _keepalive_loop(service: GalaxyService) -> None:
    """Periodically tell clients which generation is displayed."""
    while True:
        await asyncio.sleep(service.config.broadcast_interval)
        if service.clients:
            await service.broadcast({"type": "heartbeat", "generation": service.generator.generation})


# ============================================================================
# REST Endpoints
# ============================================================================

router = APIRouter()


def _service(request: Request) -> GalaxyService:
    return request.app.state.galaxy


def _http_error(exc: GalaxyError) -> HTTPException:
    """Bad parameters are the client's fault; a stuck scene is a conflict."""
    if isinstance(exc, ResourceDisposalError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.get("/health")
async def health() -> Dict[str, str]:
    """Health check."""
    return {"status": "ok"}


@router.get("/params")
async def get_params(request: Request) -> Dict[str, Any]:
    """Current parameters and their bounds."""
    service = _service(request)
    async with service.lock:
        return service.params_state()


@router.post("/params")
async def update_params(update: ParamsUpdate, request: Request) -> Dict[str, Any]:
    """Apply a committed parameter change and regenerate the galaxy."""
    service = _service(request)
    async with service.lock:
        try:
            payload = service.regenerate(service.params.replace(**update.changes()))
        except GalaxyError as e:
            raise _http_error(e)
        state = service.params_state()
    await service.broadcast({"type": "galaxy", "payload": payload})
    return {**state, "galaxy": _summary(payload)}


@router.post("/regenerate")
async def regenerate(request: Request) -> Dict[str, Any]:
    """Regenerate with the current parameters and fresh randomness."""
    service = _service(request)
    async with service.lock:
        try:
            payload = service.regenerate()
        except GalaxyError as e:
            raise _http_error(e)
    await service.broadcast({"type": "galaxy", "payload": payload})
    return {"galaxy": _summary(payload)}


@router.get("/galaxy")
async def get_galaxy(request: Request) -> Dict[str, Any]:
    """Currently displayed galaxy with encoded buffers."""
    service = _service(request)
    async with service.lock:
        if service.payload is None:
            raise HTTPException(status_code=404, detail="No galaxy displayed")
        return service.payload


@router.get("/presets")
async def get_presets() -> List[Dict[str, Any]]:
    """List available presets."""
    return [
        {"name": p.name, "description": p.description, "params": p.params.as_dict()}
        for p in list_presets()
    ]


@router.post("/presets/{name}")
async def apply_preset(name: str, request: Request) -> Dict[str, Any]:
    """Switch to a preset and regenerate."""
    service = _service(request)
    try:
        preset = get_preset(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    async with service.lock:
        try:
            payload = service.regenerate(preset.params)
        except GalaxyError as e:
            raise _http_error(e)
        state = service.params_state()
    await service.broadcast({"type": "galaxy", "payload": payload})
    return {"preset": preset.name, **state, "galaxy": _summary(payload)}


# ============================================================================
# WebSocket
# ============================================================================

def _handle_message(service: GalaxyService, message: Any) -> Dict[str, Any]:
    """Apply a client command and return the new galaxy payload."""
    if not isinstance(message, dict):
        raise ValueError("Message must be an object")
    msg_type = message.get("type")

    if msg_type == "update_params":
        params = message.get("params")
        if not isinstance(params, dict):
            raise ValueError("Message missing 'params'")
        update = ParamsUpdate(**params)
        return service.regenerate(service.params.replace(**update.changes()))

    elif msg_type == "regenerate":
        return service.regenerate()

    elif msg_type == "use_preset":
        name = message.get("name")
        if name is None:
            raise ValueError("Message missing 'name'")
        return service.regenerate(get_preset(name).params)

    raise ValueError(f"Unknown message type {msg_type!r}")


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Clients receive the current galaxy, then every regeneration."""
    service: GalaxyService = websocket.app.state.galaxy
    await websocket.accept()
    service.clients.add(websocket)
    logger.info(f"WebSocket client connected, total clients: {len(service.clients)}")

    try:
        async with service.lock:
            payload = service.payload
        await websocket.send_json({"type": "galaxy", "payload": payload})

        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
                async with service.lock:
                    payload = _handle_message(service, message)
            except (ValueError, ValidationError, GalaxyError) as exc:
                await websocket.send_json({"type": "error", "detail": str(exc)})
                continue
            await service.broadcast({"type": "galaxy", "payload": payload})

    except WebSocketDisconnect as e:
        logger.info(f"WebSocket disconnected: {e.code}")
    finally:
        service.clients.discard(websocket)
        logger.info(f"Client removed, remaining clients: {len(service.clients)}")


# ============================================================================
# FastAPI App
# ============================================================================

def create_app(config: AppConfig = DEFAULT_CONFIG) -> FastAPI:
    """Build the app and generate the initial galaxy."""
    service = GalaxyService(config)
    service.regenerate()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(_keepalive_loop(service))
        yield
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        service.close()

    app = FastAPI(title="Spiral Galaxy Generator", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.galaxy = service
    app.include_router(router)
    return app


def _load_config() -> AppConfig:
    path = os.environ.get("GALAXY_CONFIG")
    if path:
        logger.info(f"Loading configuration from {path}")
        return AppConfig.load(path)
    return DEFAULT_CONFIG


app = create_app(_load_config())
