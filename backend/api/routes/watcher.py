"""
Zeami Watcher Control Routes.

REST endpoints to start, stop and inspect the file watcher.
Requires Python 3.11+.
"""

import asyncio
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from api.dependencies import get_watcher_service, require_watcher_service, set_watcher_service
from api.routes.websocket import broadcast_stats, broadcast_watch_event, get_manager
from utils.config import WatcherSettings, get_settings
from utils.logger import get_logger
from watcher.config import WatchConfig, WatcherPreset, WatchTarget, preset_config
from watcher.errors import ConfigurationError, WatchSourceError
from watcher.service import ServiceState, WatcherService

router = APIRouter()
logger = get_logger("api.watcher")


class WatchTargetModel(BaseModel):
    """A watch target as exchanged with the UI."""

    path: str
    description: str = ""
    recursive: bool = True
    priority: int = Field(default=5, ge=0, le=255)

    @classmethod
    def from_target(cls, target: WatchTarget) -> "WatchTargetModel":
        return cls(
            path=target.path.as_posix(),
            description=target.description,
            recursive=target.recursive,
            priority=target.priority,
        )

    def to_target(self) -> WatchTarget:
        return WatchTarget(Path(self.path), self.description, self.recursive, self.priority)


class WatchConfigModel(BaseModel):
    """
    Watch configuration as exchanged with the UI.

    Range checks are left to WatchConfig.validate() so they surface as 400.
    """

    targets: list[WatchTargetModel] | None = None
    debounce_ms: int = 100
    recursive: bool = True
    event_buffer_size: int = 1000
    verbose: bool = False
    project_root: str | None = None
    filter_rules: list[str] = []
    poll_fallback: bool = True
    force_polling: bool = False
    poll_interval_ms: int = 1000

    @classmethod
    def from_config(cls, config: WatchConfig) -> "WatchConfigModel":
        return cls(
            targets=[WatchTargetModel.from_target(t) for t in config.targets],
            debounce_ms=config.debounce_ms,
            recursive=config.recursive,
            event_buffer_size=config.event_buffer_size,
            verbose=config.verbose,
            project_root=str(config.project_root),
            filter_rules=[
                rule if isinstance(rule, str) else f"{rule.rule_type.value}:{rule.pattern}"
                for rule in config.filter_rules
            ],
            poll_fallback=config.poll_fallback,
            force_polling=config.force_polling,
            poll_interval_ms=config.poll_interval_ms,
        )

    def to_config(self, default_root: Path) -> WatchConfig:
        config = WatchConfig(project_root=Path(self.project_root) if self.project_root else default_root)
        changes = self.model_dump(exclude={"targets", "project_root", "filter_rules"})
        if self.targets is not None:
            changes["targets"] = tuple(t.to_target() for t in self.targets)
        changes["filter_rules"] = tuple(self.filter_rules)
        return config.with_changes(**changes)


class StartRequest(BaseModel):
    """Request model for starting the watcher."""

    preset: WatcherPreset | None = Field(default=None, description="Named preset to start with")
    config: WatchConfigModel | None = Field(default=None, description="Full configuration")


class StartResponse(BaseModel):
    """Response model for the start operation."""

    status: str
    state: str
    source: str | None = None
    warnings: list[str] = []


class StatusResponse(BaseModel):
    """Response model for the watcher status."""

    running: bool
    state: str
    source: str | None = None


class StatsResponse(BaseModel):
    """Response model for pipeline statistics."""

    raw_count: int
    filtered_out_count: int
    passed_filter_count: int
    emitted_count: int
    dropped_count: int
    error_count: int
    filter_efficiency: float
    throughput: float


def build_config(request: StartRequest | None, settings: WatcherSettings) -> WatchConfig:
    """
    Resolve the configuration for a start request.

    An explicit config wins over a preset; with neither, the environment
    settings are used.
    """
    if request is not None and request.config is not None:
        return request.config.to_config(settings.project_root)
    if request is not None and request.preset is not None:
        return preset_config(request.preset, project_root=settings.project_root)
    return WatchConfig.from_settings(settings)


@router.post("/start", response_model=StartResponse)
async def start_watcher(request: StartRequest | None = None) -> StartResponse:
    """Start the watcher, replacing a previously stopped instance."""
    current = get_watcher_service()
    if current is not None and current.state is not ServiceState.STOPPED:
        raise HTTPException(status_code=409, detail="Watcher is already running")

    try:
        config = build_config(request, get_settings().watcher)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    service = WatcherService(config, on_event=broadcast_watch_event)
    service.set_event_loop(asyncio.get_running_loop())

    try:
        warnings = await asyncio.to_thread(service.start)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except WatchSourceError as e:
        logger.error("watcher_start_failed", error=str(e))
        raise HTTPException(status_code=503, detail=str(e)) from e

    set_watcher_service(service)
    return StartResponse(
        status="started",
        state=service.state.value,
        source=service.source_name,
        warnings=[str(w) for w in warnings],
    )


@router.post("/stop", response_model=StatusResponse)
async def stop_watcher(
    service: WatcherService = Depends(require_watcher_service),
) -> StatusResponse:
    """Stop the running watcher."""
    if not service.is_running():
        raise HTTPException(status_code=409, detail="Watcher is not running")

    await asyncio.to_thread(service.stop)
    return StatusResponse(running=service.is_running(), state=service.state.value)


@router.get("/status", response_model=StatusResponse)
async def get_status() -> StatusResponse:
    """Report whether the watcher is running."""
    service = get_watcher_service()
    if service is None:
        return StatusResponse(running=False, state=ServiceState.STOPPED.value)
    return StatusResponse(
        running=service.is_running(),
        state=service.state.value,
        source=service.source_name,
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    service: WatcherService = Depends(require_watcher_service),
) -> StatsResponse:
    """Get a snapshot of the pipeline counters."""
    return StatsResponse(**service.get_stats().to_dict())


@router.post("/stats/emit", response_model=StatsResponse)
async def emit_stats(
    service: WatcherService = Depends(require_watcher_service),
) -> StatsResponse:
    """Push the current counters to every WebSocket client as fs-watch-stats."""
    stats = service.get_stats()
    await broadcast_stats(stats)
    logger.debug("stats_emitted", clients=get_manager().connection_count)
    return StatsResponse(**stats.to_dict())


@router.get("/presets/{preset}", response_model=WatchConfigModel)
async def get_preset(preset: WatcherPreset) -> WatchConfigModel:
    """Get the configuration a preset expands to."""
    config = preset_config(preset, project_root=get_settings().watcher.project_root)
    return WatchConfigModel.from_config(config)
