"""
Adaptive Examination API

In-process REST surface over the CAT engine. Manages exam sessions in
memory, administers items, accepts scored responses and reports results.
"""

import logging
import random
import time
import uuid

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from .errors import (
    DuplicateResponseError,
    InvalidConfigError,
    InvalidScoreError,
    UnknownItemError,
)
from .irt import probability
from .models import Category, Difficulty, IRTParameters, Item, ItemMetadata, ItemType, Result
from .parameters import CalibratedParameterProvider, HeuristicParameterProvider
from .pool import ItemPool
from .selection import ItemSelector
from .session import CATEngine, SessionConfig
from .simulation import build_synthetic_pool, simulate_session

logger = logging.getLogger(__name__)

# ============================================================
# CONSTANTS
# ============================================================

VERSION = "1.0.0"
MAX_SESSIONS = 10_000
SESSION_TTL_SECONDS = 6 * 3600  # idle time before a session is evicted
MAX_ITEM_POOL_SIZE = 2000

# ============================================================
# REQUEST MODELS
# ============================================================


class ItemCreate(BaseModel):
    """Request model for an item in a session's pool.

    Leave a, b and c unset to derive parameters from the metadata.
    """

    id: str | None = None
    category: Category
    item_type: ItemType
    difficulty: Difficulty = Difficulty.MEDIUM
    content: str = ""
    a: float | None = Field(None, gt=0, le=4, description="Calibrated discrimination")
    b: float | None = Field(None, ge=-4, le=4, description="Calibrated difficulty")
    c: float | None = Field(None, ge=0, lt=1, description="Calibrated guessing")

    @model_validator(mode="after")
    def check_calibration(self) -> "ItemCreate":
        """Calibrated items need both a and b; c alone is not a calibration."""
        given = [name for name in ("a", "b", "c") if getattr(self, name) is not None]
        if given and (self.a is None or self.b is None):
            raise ValueError(
                f"Calibrated items need both a and b (got only {', '.join(given)})"
            )
        return self


class SessionCreate(BaseModel):
    """Request model for starting an exam session."""

    item_pool: list[ItemCreate] = Field(..., min_length=1, max_length=MAX_ITEM_POOL_SIZE)
    min_items: int = Field(85, ge=0, le=MAX_ITEM_POOL_SIZE)
    max_items: int = Field(150, ge=1, le=MAX_ITEM_POOL_SIZE)
    time_limit_minutes: float = Field(300.0, gt=0, le=24 * 60)
    passing_standard: float = Field(0.0, ge=-4, le=4, description="Passing theta (logits)")
    seed: int | None = Field(None, description="Seed for parameters and item selection")


class ResponseSubmit(BaseModel):
    """Request model for a scored response."""

    item_id: str
    score: float = Field(..., description="Score from the item scorer, in [0, 1]")
    time_spent: float = Field(
        0.0, ge=0, allow_inf_nan=False, description="Seconds spent on the item"
    )


# ============================================================
# RESPONSE MODELS
# ============================================================


class ItemResponse(BaseModel):
    id: str
    category: Category
    item_type: ItemType
    difficulty: Difficulty
    cognitive_level: int
    content: str
    a: float
    b: float
    c: float
    probability_correct: float


class AbilityResponse(BaseModel):
    theta: float
    standard_error: float
    confidence_interval: list[float]
    questions_answered: int


class CategoryPerformanceResponse(BaseModel):
    category: Category
    correct: float
    total: int
    percentage: int


class ItemTypePerformanceResponse(BaseModel):
    item_type: ItemType
    correct: float
    total: int
    percentage: int


class TimeAnalysisResponse(BaseModel):
    average_seconds: float
    fastest_seconds: float
    slowest_seconds: float
    total_seconds: float
    slow_misses: list[str]


class ResultResponse(BaseModel):
    theta: float
    standard_error: float
    confidence_interval: list[float]
    passing_probability: float
    percentile: float
    performance_level: str
    items_administered: int
    elapsed_seconds: float
    status: str
    stopping_reason: str
    final_determination: str
    passed: bool
    category_performance: list[CategoryPerformanceResponse]
    strengths: list[Category]
    weaknesses: list[Category]
    item_type_performance: list[ItemTypePerformanceResponse]
    time_analysis: TimeAnalysisResponse


class SessionStatusResponse(BaseModel):
    session_id: str
    status: str
    current_ability: AbilityResponse
    remaining_seconds: float
    next_item: ItemResponse | None
    result: ResultResponse | None


class SimulationStepResponse(BaseModel):
    step: int
    item_difficulty: float
    score: float
    estimated_theta: float
    standard_error: float


class SimulationResponse(BaseModel):
    true_theta: float
    final_estimate: float
    estimation_error: float
    standard_error: float
    items_used: int
    status: str
    final_determination: str
    history: list[SimulationStepResponse]


class HealthResponse(BaseModel):
    status: str
    version: str
    active_sessions: int


class DeleteResponse(BaseModel):
    status: str


# ============================================================
# APP
# ============================================================

app = FastAPI(
    title="Adaptive Examination Engine",
    description="3PL computerized adaptive testing with confidence-interval stopping",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a safe 500 response."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# In-memory session storage
sessions: dict[str, dict] = {}


def _is_expired(session: dict, now: float) -> bool:
    """Idle past the TTL; a running exam also gets at least its time limit."""
    ttl = SESSION_TTL_SECONDS
    engine: CATEngine | None = session.get("engine")
    if engine is not None and engine.session is not None and engine.session.is_active:
        ttl = max(ttl, engine.session.config.time_limit_seconds)
    return now - session["last_seen"] > ttl


def _evict_expired_sessions() -> None:
    """Remove sessions nobody has touched for longer than their TTL."""
    now = time.time()
    expired = [sid for sid, s in sessions.items() if _is_expired(s, now)]
    for sid in expired:
        del sessions[sid]
    if expired:
        logger.info("Evicted %d expired sessions", len(expired))


# ============================================================
# ENDPOINTS
# ============================================================


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint for monitoring and orchestration."""
    return HealthResponse(
        status="ok",
        version=VERSION,
        active_sessions=len(sessions),
    )


@app.post("/sessions", response_model=SessionStatusResponse, status_code=201)
async def create_session(request: SessionCreate) -> SessionStatusResponse:
    """Start an adaptive exam over the supplied item pool.

    Returns the initial ability estimate and the first item to administer.
    """
    _evict_expired_sessions()

    if len(sessions) >= MAX_SESSIONS:
        raise HTTPException(
            status_code=503,
            detail=f"Server at capacity ({MAX_SESSIONS} active sessions). Try again later.",
        )

    try:
        config = SessionConfig(
            min_items=request.min_items,
            max_items=request.max_items,
            time_limit_minutes=request.time_limit_minutes,
            passing_standard=request.passing_standard,
        )
        pool = _build_pool(request.item_pool, random.Random(request.seed))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    selector_rng = random.Random(request.seed)
    engine = CATEngine(pool, selector=ItemSelector(rng=selector_rng))
    state = engine.start_session(config)
    item = engine.next_item()

    now = time.time()
    sessions[state.session_id] = {
        "engine": engine,
        "current_item": item,
        "created_at": now,
        "last_seen": now,
    }

    return _build_status(state.session_id)


@app.get("/sessions/{session_id}", response_model=SessionStatusResponse)
async def get_session(session_id: str) -> SessionStatusResponse:
    """Get session status, including the item currently awaiting a response."""
    _get_session(session_id)
    return _build_status(session_id)


@app.post("/sessions/{session_id}/responses", response_model=SessionStatusResponse)
async def submit_response(session_id: str, response: ResponseSubmit) -> SessionStatusResponse:
    """Submit a scored response and receive the next item.

    The session completes when the stopping rule triggers; the result is
    then included in the response.
    """
    session = _get_session(session_id)
    engine: CATEngine = session["engine"]

    if engine.session is None or not engine.session.is_active:
        raise HTTPException(status_code=409, detail="Session already completed")

    try:
        state = engine.process_response(response.item_id, response.score, response.time_spent)
    except InvalidScoreError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except UnknownItemError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DuplicateResponseError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    session["current_item"] = None
    if state is not None and not state.status.is_terminal:
        session["current_item"] = engine.next_item()

    return _build_status(session_id)


@app.get("/sessions/{session_id}/results", response_model=ResultResponse)
async def get_results(session_id: str) -> ResultResponse:
    """Final result of a completed session."""
    session = _get_session(session_id)
    result = session["engine"].get_results()
    if result is None:
        raise HTTPException(status_code=409, detail="Session still in progress")
    return _build_result(result)


@app.delete("/sessions/{session_id}", response_model=DeleteResponse)
async def delete_session(session_id: str) -> DeleteResponse:
    """Delete a session and free its resources."""
    _get_session(session_id)
    del sessions[session_id]
    return DeleteResponse(status="deleted")


@app.get("/simulate", response_model=SimulationResponse)
async def simulate_exam(
    true_theta: float = Query(0.0, ge=-4, le=4),
    pool_size: int = Query(300, ge=1, le=MAX_ITEM_POOL_SIZE),
    min_items: int = Query(30, ge=0, le=MAX_ITEM_POOL_SIZE),
    max_items: int = Query(100, ge=1, le=MAX_ITEM_POOL_SIZE),
    passing_standard: float = Query(0.0, ge=-4, le=4),
    seed: int | None = Query(None),
) -> SimulationResponse:
    """Simulate an adaptive exam for an examinee of known ability.

    Builds a synthetic pool and answers items by drawing from the 3PL
    model at true_theta. Returns step-by-step convergence history.
    """
    try:
        config = SessionConfig(
            min_items=min_items, max_items=max_items, passing_standard=passing_standard
        )
    except InvalidConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    pool = build_synthetic_pool(pool_size, random.Random(seed))
    report = simulate_session(pool, true_theta, config, seed=seed)

    return SimulationResponse(
        true_theta=true_theta,
        final_estimate=round(report.result.theta, 3),
        estimation_error=round(report.estimation_error, 3),
        standard_error=round(report.result.standard_error, 3),
        items_used=len(report.history),
        status=report.result.status.value,
        final_determination=report.result.final_determination.value,
        history=[
            SimulationStepResponse(
                step=s.step,
                item_difficulty=round(s.item_difficulty, 2),
                score=s.score,
                estimated_theta=round(s.estimated_theta, 3),
                standard_error=round(s.standard_error, 3),
            )
            for s in report.history
        ],
    )


# ============================================================
# HELPERS
# ============================================================


def _get_session(session_id: str) -> dict:
    if session_id not in sessions:
        raise HTTPException(status_code=404, detail="Session not found")
    session = sessions[session_id]
    session["last_seen"] = time.time()
    return session


def _build_pool(items: list[ItemCreate], rng: random.Random) -> ItemPool:
    """Build a pool, preferring calibrated parameters where all three are given.

    Raises:
        ValueError: On duplicate item ids.
    """
    metadata: list[ItemMetadata] = []
    calibrations: dict[str, IRTParameters] = {}

    for spec in items:
        item_id = spec.id or f"q_{uuid.uuid4().hex[:8]}"
        metadata.append(
            ItemMetadata(
                id=item_id,
                category=spec.category,
                item_type=spec.item_type,
                difficulty=spec.difficulty,
                content=spec.content,
            )
        )
        if spec.a is not None and spec.b is not None:
            calibrations[item_id] = IRTParameters(
                a=spec.a, b=spec.b, c=spec.c if spec.c is not None else 0.0
            )

    heuristic = HeuristicParameterProvider(rng)
    if calibrations:
        provider = CalibratedParameterProvider(calibrations, fallback=heuristic)
        return ItemPool.from_metadata(metadata, provider)
    return ItemPool.from_metadata(metadata, heuristic)


def _build_item(item: Item, theta: float) -> ItemResponse:
    return ItemResponse(
        id=item.id,
        category=item.category,
        item_type=item.item_type,
        difficulty=item.difficulty,
        cognitive_level=item.cognitive_level,
        content=item.content,
        a=round(item.params.a, 3),
        b=round(item.params.b, 3),
        c=round(item.params.c, 3),
        probability_correct=round(probability(theta, item.params), 3),
    )


def _build_result(result: Result) -> ResultResponse:
    return ResultResponse(
        theta=round(result.theta, 3),
        standard_error=round(result.standard_error, 3),
        confidence_interval=[round(x, 3) for x in result.confidence_interval],
        passing_probability=round(result.passing_probability, 4),
        percentile=round(result.percentile, 1),
        performance_level=result.performance_level,
        items_administered=result.items_administered,
        elapsed_seconds=round(result.elapsed_seconds, 1),
        status=result.status.value,
        stopping_reason=result.stopping_reason.value,
        final_determination=result.final_determination.value,
        passed=result.passed,
        category_performance=[
            CategoryPerformanceResponse(
                category=category,
                correct=round(perf.correct, 2),
                total=perf.total,
                percentage=perf.percentage,
            )
            for category, perf in result.category_performance.items()
        ],
        strengths=list(result.strengths),
        weaknesses=list(result.weaknesses),
        item_type_performance=[
            ItemTypePerformanceResponse(
                item_type=item_type,
                correct=round(perf.correct, 2),
                total=perf.total,
                percentage=perf.percentage,
            )
            for item_type, perf in result.item_type_performance.items()
        ],
        time_analysis=TimeAnalysisResponse(
            average_seconds=round(result.timing.average_seconds, 1),
            fastest_seconds=round(result.timing.fastest_seconds, 1),
            slowest_seconds=round(result.timing.slowest_seconds, 1),
            total_seconds=round(result.timing.total_seconds, 1),
            slow_misses=list(result.timing.slow_misses),
        ),
    )


def _build_status(session_id: str) -> SessionStatusResponse:
    """Build a status response from current session state."""
    session = sessions[session_id]
    engine: CATEngine = session["engine"]
    state = engine.state
    if state is None:
        raise HTTPException(status_code=404, detail="Session not found")

    ability = AbilityResponse(
        theta=round(state.theta, 3),
        standard_error=round(state.standard_error, 3),
        confidence_interval=[round(x, 3) for x in state.confidence_interval],
        questions_answered=state.questions_answered,
    )

    current_item: Item | None = session["current_item"]
    next_item = _build_item(current_item, state.theta) if current_item else None

    result = engine.get_results()

    return SessionStatusResponse(
        session_id=session_id,
        status=state.status.value,
        current_ability=ability,
        remaining_seconds=round(engine.remaining_time(), 1),
        next_item=next_item,
        result=_build_result(result) if result else None,
    )


# ============================================================
# MAIN
# ============================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8002)
