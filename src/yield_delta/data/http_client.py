import aiohttp, asyncio
from loguru import logger
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=15)


def _log_retry(retry_state):
    name = getattr(retry_state.fn, "__name__", "request")
    logger.warning(f"{name} failed (attempt {retry_state.attempt_number}): {retry_state.outcome.exception()}; retrying")


# Idempotent reads only; transactions are never retried.
retry_reads = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((asyncio.TimeoutError, aiohttp.ClientError)),
    before_sleep=_log_retry,
    reraise=True,
)


@asynccontextmanager
async def http_session():
    async with aiohttp.ClientSession(timeout=DEFAULT_TIMEOUT) as s:
        yield s


@retry_reads
async def get_json(url: str, params: Optional[Dict[str, Any]]=None, headers: Optional[Dict[str,str]]=None):
    async with http_session() as s:
        async with s.get(url, params=params, headers=headers) as r:
            r.raise_for_status()
            return await r.json(content_type=None)


async def post_json(url: str, payload: Dict[str, Any], headers: Optional[Dict[str,str]]=None, idempotent: bool = True):
    """POST a JSON body. Quote/info endpoints are idempotent and get retried."""
    async def _post():
        async with http_session() as s:
            async with s.post(url, json=payload, headers={"Accept": "application/json", **(headers or {})}) as r:
                r.raise_for_status()
                return await r.json(content_type=None)

    if idempotent:
        return await retry_reads(_post)()
    return await _post()
