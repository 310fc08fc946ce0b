from fastapi import APIRouter

from sqlagent.api.deps import PoolDep
from sqlagent.schemas import Envelope

router = APIRouter(prefix="/utils", tags=["utils"])


@router.get("/liveness/")
async def liveness() -> bool:
    """
    Liveness check: the process is alive and responsive. No database I/O.
    """
    return True


@router.get("/health-check/")
async def health_check(pool: PoolDep) -> Envelope:
    """
    Pool statistics: number of cached handles and connections currently checked out.
    """
    return Envelope(success=True, data=[pool.stats()])
