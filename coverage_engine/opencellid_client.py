import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from .coverage_exceptions import (
    TileFetchError,
    TileFetchTimeout,
    UpstreamRejected,
    UpstreamResponseError,
)
from .error_handling import describe_error, is_transient_error, mask_key, redact, retry_with_backoff
from .models import BoundingBox, RadioType, TowerRecord

logger = logging.getLogger(__name__)

# OpenCelliD error document code for "no cells in this area"
NO_CELLS_ERROR_CODE = 1


class OpenCelliDConfig(BaseModel):
    """Tower lookup (OpenCelliD getInArea) configuration"""
    api_key: Optional[str] = None
    base_url: str = "https://opencellid.org/cell/getInArea"
    timeout: float = 20.0  # per tile attempt
    max_attempts: int = 3
    retry_base_delay: float = 0.4
    result_limit: int = 50
    max_concurrency: int = 4
    request_timeout: Optional[float] = 60.0  # whole grid
    user_agent: str = "coverage-engine/1.0"


@dataclass
class TileFailure:
    tile_index: int
    tile: BoundingBox
    error: TileFetchError

    @property
    def kind(self) -> str:
        if isinstance(self.error, TileFetchTimeout):
            return "timeout"
        if isinstance(self.error, UpstreamRejected):
            return "upstream_rejected"
        if isinstance(self.error, UpstreamResponseError):
            return "bad_response"
        return "error"


@dataclass
class GridFetchResult:
    towers: List[TowerRecord] = field(default_factory=list)
    failures: List[TileFailure] = field(default_factory=list)
    tiles_total: int = 0
    deadline_reached: bool = False

    @property
    def tiles_succeeded(self) -> int:
        return self.tiles_total - len(self.failures)


def _first_present(cell: Dict[str, Any], *keys: str):
    for key in keys:
        value = cell.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_cell(cell: Dict[str, Any]) -> Optional[TowerRecord]:
    """Build a TowerRecord from one upstream cell document, None if malformed"""
    try:
        lac = _first_present(cell, "lac", "area")
        tac = _first_present(cell, "tac")
        area_code = int(lac) if lac not in (None, 0, "0") else int(tac or 0)

        updated = cell.get("updated")
        last_seen = None
        if updated:
            last_seen = datetime.fromtimestamp(int(updated), tz=timezone.utc)

        return TowerRecord(
            mcc=int(cell["mcc"]),
            mnc=int(_first_present(cell, "mnc", "net")),
            area_code=area_code,
            cell_id=int(_first_present(cell, "cellid", "cell", "cid")),
            radio=RadioType.parse(cell.get("radio")),
            lat=float(cell["lat"]),
            lon=float(cell["lon"]),
            samples=int(cell.get("samples") or 0),
            last_seen=last_seen,
        )
    except (KeyError, TypeError, ValueError, OverflowError, OSError):
        return None


class TowerFetcher:
    """Client for the OpenCelliD area lookup, one query per tile"""

    def __init__(self, config: OpenCelliDConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client
        if not config.api_key:
            logger.warning("OpenCelliD API key not configured - tile queries will be rejected upstream")

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._client

    async def fetch_tile(self, tile: BoundingBox, tile_index: int = 0) -> List[TowerRecord]:
        """Fetch towers inside one tile.

        Transient transport failures are retried up to ``max_attempts`` with
        linear backoff; HTTP error statuses are raised immediately as
        UpstreamRejected.

        Raises:
            TileFetchTimeout: every attempt failed transiently
            UpstreamRejected: upstream answered with an error status/document
            UpstreamResponseError: upstream body was not a cell list
        """
        async def attempt() -> List[TowerRecord]:
            return await asyncio.wait_for(self._request_tile(tile, tile_index), timeout=self.config.timeout)

        def log_retry(attempt_no: int, error: BaseException) -> None:
            logger.warning(
                f"Tile {tile_index} attempt {attempt_no}/{self.config.max_attempts} failed: {describe_error(error)}",
                extra={"tile": tile_index, "attempt": attempt_no},
            )

        try:
            return await retry_with_backoff(
                attempt,
                max_attempts=self.config.max_attempts,
                base_delay=self.config.retry_base_delay,
                on_retry=log_retry,
            )
        except TileFetchError:
            raise
        except Exception as e:
            if is_transient_error(e):
                raise TileFetchTimeout(
                    f"tile {tile_index} failed after {self.config.max_attempts} attempts: {describe_error(e)}",
                    tile=tile,
                    attempts=self.config.max_attempts,
                    last_error=e,
                ) from e
            raise TileFetchError(f"tile {tile_index} failed: {describe_error(e)}", tile=tile) from e

    async def _request_tile(self, tile: BoundingBox, tile_index: int) -> List[TowerRecord]:
        params = {
            "key": self.config.api_key or "",
            "BBOX": tile.to_query_param(),
            "limit": self.config.result_limit,
            "format": "json",
        }
        start = time.monotonic()
        response = await self.client.get(
            self.config.base_url,
            params=params,
            headers={"User-Agent": self.config.user_agent},
        )
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.debug(
            f"GET {redact(str(response.request.url), self.config.api_key)} -> {response.status_code} "
            f"(key={mask_key(self.config.api_key)})",
            extra={"tile": tile_index, "response_time_ms": round(elapsed_ms, 1)},
        )

        if response.status_code >= 400:
            # Auth, quota and rate-limit answers pass through untouched
            raise UpstreamRejected(
                f"tile {tile_index}: upstream responded {response.status_code} {response.reason_phrase}",
                tile=tile,
                status_code=response.status_code,
                body_snippet=redact(response.text, self.config.api_key),
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamResponseError(f"tile {tile_index}: response is not JSON: {e}", tile=tile)

        if isinstance(data, dict) and data.get("error"):
            if data.get("code") == NO_CELLS_ERROR_CODE:
                return []
            raise UpstreamRejected(
                f"tile {tile_index}: upstream error {data.get('code')}: {data.get('error')}",
                tile=tile,
                status_code=response.status_code,
                body_snippet=str(data),
            )

        cells = data.get("cells") if isinstance(data, dict) else data
        if cells is None:
            cells = []
        if not isinstance(cells, list):
            raise UpstreamResponseError(f"tile {tile_index}: unexpected response format", tile=tile)

        towers = []
        for cell in cells:
            tower = parse_cell(cell) if isinstance(cell, dict) else None
            if tower is None:
                logger.debug(f"Skipping malformed cell in tile {tile_index}: {cell!r}")
                continue
            towers.append(tower)
        return towers

    async def fetch_grid(self, tiles: List[BoundingBox]) -> GridFetchResult:
        """Fetch every tile with bounded concurrency, tolerating partial failure.

        Tile results are concatenated in tile order. When the whole-grid
        deadline passes, unfinished tiles are cancelled and recorded as
        timeouts while finished tiles are kept.
        """
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrency))
        per_tile: Dict[int, List[TowerRecord]] = {}
        failures: Dict[int, TileFailure] = {}

        async def worker(index: int, tile: BoundingBox) -> None:
            async with semaphore:
                try:
                    per_tile[index] = await self.fetch_tile(tile, index)
                except TileFetchError as e:
                    logger.warning(f"Tile {index} contributes no towers: {e}", extra={"tile": index})
                    failures[index] = TileFailure(index, tile, e)
                except Exception as e:
                    logger.error(f"Unexpected error fetching tile {index}: {describe_error(e)}", exc_info=True)
                    failures[index] = TileFailure(index, tile, TileFetchError(describe_error(e), tile=tile))

        tasks = [asyncio.create_task(worker(i, tile)) for i, tile in enumerate(tiles)]
        deadline_reached = False
        try:
            if tasks:
                _, pending = await asyncio.wait(tasks, timeout=self.config.request_timeout)
                if pending:
                    deadline_reached = True
                    logger.warning(
                        f"Request deadline ({self.config.request_timeout}s) reached with "
                        f"{len(pending)}/{len(tasks)} tiles unfinished; using partial results"
                    )
                    for task in pending:
                        task.cancel()
                    await asyncio.gather(*pending, return_exceptions=True)
        finally:
            # Caller abandoned the request: stop in-flight tile fetches
            for task in tasks:
                if not task.done():
                    task.cancel()

        for index, tile in enumerate(tiles):
            if index not in per_tile and index not in failures:
                failures[index] = TileFailure(index, tile, TileFetchTimeout(
                    f"tile {index} cancelled at request deadline", tile=tile,
                ))

        towers: List[TowerRecord] = []
        for index in sorted(per_tile):
            towers.extend(per_tile[index])

        return GridFetchResult(
            towers=towers,
            failures=[failures[i] for i in sorted(failures)],
            tiles_total=len(tiles),
            deadline_reached=deadline_reached,
        )

    async def close(self):
        """Close the HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
