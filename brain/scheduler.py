"""
Tick scheduling helpers.

run_batch fans a tick out over a list of agents, sequentially or on a
thread pool. One agent's failure never affects the others: whatever goes
wrong comes back as that agent's TickOutcome. run_forever repeats the
batch on a fixed interval.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, List, Optional

from .models import TickOutcome
from .tick import TickProcessor
from .ttl_store import utcnow

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO, log_file: str = 'bots.log'):
    """Root logging to the console and to LOG_DIR/<log_file>."""
    from config import config
    config.ensure_dirs()

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(os.path.join(config.LOG_DIR, log_file)),
            logging.StreamHandler(),
        ]
    )


def _safe_tick(processor: TickProcessor, agent_id: int, tick_id: str) -> TickOutcome:
    try:
        return processor.process_tick(agent_id, tick_id)
    except Exception as e:
        logger.exception(f"Tick {tick_id}: agent {agent_id} crashed")
        return TickOutcome(agent_id, tick_id, 'error', reason=str(e))


def run_batch(processor: TickProcessor, agent_ids: Iterable[int],
              workers: Optional[int] = None, tick_id: Optional[str] = None,
              batch_size: Optional[int] = None) -> List[TickOutcome]:
    """
    Run one tick for every agent.

    Args:
        processor: Shared TickProcessor
        agent_ids: Agents to tick
        workers: Thread count (1 = sequential). Defaults to TICK_WORKERS.
        tick_id: Tick id shared by the batch (defaults to the current minute)
        batch_size: Agents submitted per round. Defaults to TICK_BATCH_SIZE.

    Returns:
        One TickOutcome per agent. Sequential runs keep the input order;
        threaded runs return outcomes in completion order.
    """
    from config import config

    agent_ids = list(agent_ids)
    workers = config.TICK_WORKERS if workers is None else workers
    batch_size = batch_size or config.TICK_BATCH_SIZE
    tick_id = tick_id or utcnow().strftime('%Y%m%d%H%M')

    outcomes: List[TickOutcome] = []
    if workers <= 1:
        for agent_id in agent_ids:
            outcomes.append(_safe_tick(processor, agent_id, tick_id))
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            for start in range(0, len(agent_ids), batch_size):
                chunk = agent_ids[start:start + batch_size]
                futures = {executor.submit(_safe_tick, processor, agent_id, tick_id): agent_id
                           for agent_id in chunk}
                for future in as_completed(futures):
                    outcomes.append(future.result())

    succeeded = sum(1 for o in outcomes if o.status == 'success')
    errors = sum(1 for o in outcomes if o.status == 'error')
    logger.info(f"Tick {tick_id}: {len(outcomes)} agents, {succeeded} acted, {errors} errors")
    return outcomes


def run_forever(processor: TickProcessor, agent_ids: Callable[[], Iterable[int]],
                interval_minutes: Optional[float] = None,
                stop: Optional[threading.Event] = None,
                workers: Optional[int] = None):
    """
    Tick every agent once per interval until `stop` is set.

    `agent_ids` is called before each round so agents added or deactivated
    by admin tooling are picked up without a restart.
    """
    from config import config

    interval = 60 * (interval_minutes if interval_minutes is not None else config.TICK_INTERVAL_MINUTES)
    stop = stop or threading.Event()
    logger.info(f"Scheduler started, interval {interval:.0f}s")

    while not stop.is_set():
        started = time.monotonic()
        try:
            run_batch(processor, agent_ids(), workers=workers)
        except Exception as e:
            logger.error(f"Tick round failed: {e}")
        elapsed = time.monotonic() - started
        stop.wait(max(0.0, interval - elapsed))

    logger.info("Scheduler stopped")
