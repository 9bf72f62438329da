"""
Decision Trace Logger

Writes one JSON line per decided tick: agent, tick, objective, the final
weight vector, the chosen category and what came of it. Useful for
offline tuning of the strategy constants and for debugging a single bot.
"""

import json
import logging
import os
from datetime import datetime
from typing import Dict, Optional

# Create dedicated decision logger
decision_logger = logging.getLogger("decision_trace")
decision_logger.setLevel(logging.INFO)
decision_logger.propagate = False  # Don't propagate to root logger

_file_handler: Optional[logging.FileHandler] = None


def _log_path() -> str:
    from config import config
    return os.path.join(config.LOG_DIR, "decisions.jsonl")


def _ensure_handler():
    """Lazily initialize the file handler."""
    global _file_handler
    if _file_handler is None:
        path = _log_path()
        os.makedirs(os.path.dirname(path), exist_ok=True)
        _file_handler = logging.FileHandler(path)
        _file_handler.setFormatter(logging.Formatter('%(message)s'))  # Raw format
        decision_logger.addHandler(_file_handler)


def is_enabled() -> bool:
    from config import config
    return config.DECISION_LOG_ENABLED


def log_decision(
    agent_id: int,
    tick_id: str,
    objective: str,
    weights: Dict[str, float],
    category: Optional[str],
    success: Optional[bool] = None,
    reason: str = "",
    phase: str = "",
    blocked=None,
):
    """
    Append one decision record.

    Args:
        agent_id: The deciding agent
        tick_id: Scheduler tick id
        objective: Objective in force this tick
        weights: Final (post-redistribution) category weights
        category: Chosen category, or None when everything was blocked
        success: Whether the action succeeded (None if nothing ran)
        reason: Outcome reason string
        phase: Game phase of the snapshot
        blocked: Categories that were blocked
    """
    if not is_enabled():
        return
    _ensure_handler()

    entry = {
        'ts': datetime.now().isoformat(),
        'agent_id': agent_id,
        'tick_id': tick_id,
        'phase': phase,
        'objective': objective,
        'weights': {k: round(v, 2) for k, v in weights.items()},
        'blocked': list(blocked or []),
        'category': category,
        'success': success,
        'reason': reason,
    }
    try:
        decision_logger.info(json.dumps(entry, default=str))
    except Exception as e:
        # Use standard logging for errors (decision_logger might be broken)
        logging.getLogger(__name__).error(f"Error writing decision trace: {e}")


def flush():
    """Flush the decision log."""
    if _file_handler:
        _file_handler.flush()


def close():
    """Close the file handler (tests, shutdown)."""
    global _file_handler
    if _file_handler is not None:
        _file_handler.close()
        decision_logger.removeHandler(_file_handler)
        _file_handler = None
