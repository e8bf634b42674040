"""Oracle API router: point-in-time prices, backfill jobs and stored series."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from chronoprice.api.deps import get_db, get_health_checker, get_resolver, get_scheduler
from chronoprice.api.schemas.oracle import (
    CancelResponse,
    HealthResponse,
    InterpolationResponse,
    JobList,
    JobStatusResponse,
    PriceHistoryResponse,
    PricePointResponse,
    PriceRequest,
    PriceResponse,
    PurgeResponse,
    ScheduleRequest,
    SourceStats,
    StatsResponse,
    validate_address,
)
from chronoprice.collection.scheduler import CollectionScheduler
from chronoprice.db.repos.job_repo import JobRepo
from chronoprice.db.repos.price_store import PriceStore
from chronoprice.domain.enums import JobState, Network
from chronoprice.exceptions import PriceUnavailableError
from chronoprice.oracle.health import HealthChecker
from chronoprice.oracle.resolver import PriceResolver

router = APIRouter(prefix="/api/oracle", tags=["oracle"])

DbDep = Annotated[AsyncSession, Depends(get_db)]
ResolverDep = Annotated[PriceResolver, Depends(get_resolver)]
SchedulerDep = Annotated[CollectionScheduler, Depends(get_scheduler)]
HealthDep = Annotated[HealthChecker, Depends(get_health_checker)]


def _token_or_422(token: str) -> str:
    try:
        return validate_address(token)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.post("/price", response_model=PriceResponse)
async def get_price(body: PriceRequest, db: DbDep, resolver: ResolverDep) -> PriceResponse:
    result = await resolver.resolve_price(body.token, body.network.value, body.timestamp)
    await db.commit()
    return PriceResponse.from_result(result)


@router.post("/schedule", response_model=JobStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def schedule_collection(body: ScheduleRequest, scheduler: SchedulerDep) -> JobStatusResponse:
    job = await scheduler.schedule(
        body.token, body.network.value, start=body.start_timestamp, end=body.end_timestamp
    )
    return JobStatusResponse.from_status(job)


@router.get("/jobs", response_model=JobList)
async def list_jobs(
    scheduler: SchedulerDep,
    state: Optional[JobState] = None,
    token: Optional[str] = None,
    network: Optional[Network] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> JobList:
    jobs, total = await scheduler.list_jobs(
        state=state,
        token=token,
        network=network.value if network else None,
        limit=limit,
        offset=offset,
    )
    return JobList(jobs=[JobStatusResponse.from_status(j) for j in jobs], total=total, limit=limit, offset=offset)


@router.delete("/jobs", response_model=PurgeResponse)
async def purge_jobs(scheduler: SchedulerDep, older_than_days: int = Query(7, ge=0)) -> PurgeResponse:
    """Delete finished jobs (completed, failed, cancelled) older than the cutoff."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
    purged = await scheduler.purge_finished(cutoff)
    return PurgeResponse(purged=purged, older_than=cutoff)


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: uuid.UUID, scheduler: SchedulerDep) -> JobStatusResponse:
    job = await scheduler.get_status(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobStatusResponse.from_status(job)


@router.delete("/jobs/{job_id}", response_model=CancelResponse)
async def cancel_job(job_id: uuid.UUID, scheduler: SchedulerDep) -> CancelResponse:
    cancelled = await scheduler.cancel(job_id)
    return CancelResponse(job_id=job_id, cancelled=cancelled)


@router.get("/interpolate", response_model=InterpolationResponse)
async def interpolate_price(
    db: DbDep,
    resolver: ResolverDep,
    token: str,
    network: Network,
    timestamp: int = Query(..., ge=0),
) -> InterpolationResponse:
    """Interpolation tier only: no cache, no external fetch."""
    token = _token_or_422(token)
    estimate = await resolver.interpolation.interpolate(token, network.value, timestamp)
    if estimate is None:
        raise PriceUnavailableError(token, network.value, timestamp)
    await db.commit()
    return InterpolationResponse(
        token=token,
        network=network.value,
        timestamp=timestamp,
        price=estimate.price,
        confidence=estimate.confidence,
        interpolation=estimate.provenance,
    )


@router.get("/prices/{network}/{token}/latest", response_model=PricePointResponse)
async def latest_price(network: Network, token: str, db: DbDep) -> PricePointResponse:
    token = _token_or_422(token)
    point = await PriceStore(db).get_latest(token, network.value)
    if point is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No stored prices for {token} on {network.value}")
    return PricePointResponse.from_point(point)


@router.get("/prices/{network}/{token}/history", response_model=PriceHistoryResponse)
async def price_history(
    network: Network,
    token: str,
    db: DbDep,
    start: int = Query(..., ge=0),
    end: int = Query(..., ge=0),
    limit: int = Query(1000, ge=1, le=10000),
) -> PriceHistoryResponse:
    token = _token_or_422(token)
    if end < start:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="end must not be before start")
    points = await PriceStore(db).get_range(token, network.value, start, end, limit=limit)
    return PriceHistoryResponse(
        token=token,
        network=network.value,
        start=start,
        end=end,
        points=[PricePointResponse.from_point(p) for p in points],
        count=len(points),
    )


@router.get("/stats", response_model=StatsResponse)
async def stats(db: DbDep, token: Optional[str] = None, network: Optional[Network] = None) -> StatsResponse:
    network_value = network.value if network else None
    store = PriceStore(db)
    rows = await store.source_stats(token=token, network=network_value)
    summary = await store.summary(token=token, network=network_value)
    jobs = await JobRepo(db).count_by_state(token=token, network=network_value)
    return StatsResponse(
        sources=[SourceStats(**row) for row in rows],
        total=summary["total_prices"],
        unique_tokens=summary["unique_tokens"],
        networks=summary["networks"],
        latest_update=summary["latest_update"],
        jobs=jobs,
    )


@router.get("/health", response_model=HealthResponse)
async def oracle_health(checker: HealthDep, response: Response) -> HealthResponse:
    """Check store, cache and queue. 503 when any of them is down."""
    report = await checker.check()
    if not report.healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse.model_validate(report.model_dump())
