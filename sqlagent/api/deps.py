from typing import Annotated

from fastapi import Depends, Request

from sqlagent.core.pool import ConnectionPool


def get_pool(request: Request) -> ConnectionPool:
    """The ConnectionPool created by the application lifespan."""
    return request.app.state.pool


PoolDep = Annotated[ConnectionPool, Depends(get_pool)]
