from functools import wraps
from typing import Any, Awaitable, Callable, ParamSpec, TypeVar

from doccrud.db.base import DatabaseClient

P = ParamSpec('P')
T = TypeVar('T')


def transactional(
    *,
    transacted: bool = True,
):
    """
    Run the decorated coroutine inside ``DatabaseClient.session``.

    The session is passed as the ``session`` keyword argument. A caller
    that already supplies ``session`` keeps it and no new scope is opened.
    """
    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            if kwargs.get('session') is not None:
                return await func(*args, **kwargs)

            db = _extract_client(args, kwargs)
            async with db.session(transacted=transacted) as session:
                kwargs['session'] = session
                return await func(*args, **kwargs)
        return wrapper
    return decorator


def _extract_client(args: tuple[Any, ...], kwargs: dict[str, Any]) -> DatabaseClient:
    if args and isinstance(args[0], DatabaseClient):
        return args[0]
    if isinstance(kwargs.get('db'), DatabaseClient):
        return kwargs['db']
    if args and isinstance(getattr(args[0], '_db', None), DatabaseClient):
        return args[0]._db
    raise ValueError("No database client found in function arguments")
