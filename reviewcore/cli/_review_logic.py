import random
from pathlib import Path
from typing import Optional

from reviewcore.cli.review_ui import start_review_flow
from reviewcore.config import settings
from reviewcore.db.database import ScheduleDatabase
from reviewcore.fallback import FallbackSelector
from reviewcore.scheduler import AdaptiveScheduler
from reviewcore.session_generator import SessionGenerator


def build_generator(
    db: ScheduleDatabase, seed: Optional[int] = None
) -> SessionGenerator:
    """
    Wire a SessionGenerator over an open database.

    The fallback shuffle is seeded with `seed`, or with the configured
    `fallback_seed` when no seed is given.
    """
    if seed is None:
        seed = settings.fallback_seed
    selector = FallbackSelector(db, rng=random.Random(seed))
    return SessionGenerator(
        store=db,
        history=db,
        scheduler=AdaptiveScheduler(),
        fallback_selector=selector,
    )


def review_logic(
    learner_id: str,
    db_path: Path,
    limit: Optional[int] = None,
) -> int:
    """
    Set up and start a review session for the learner.

    Opens the database, initializes the schema, and launches the interactive
    review flow.

    Returns:
        int: The number of answers whose progress could not be saved.
    """
    with ScheduleDatabase(db_path=db_path) as db_manager:
        db_manager.initialize_schema()
        generator = build_generator(db_manager)
        return start_review_flow(
            generator, learner_id, limit or settings.session_limit
        )
