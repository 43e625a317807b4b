from datetime import datetime, timedelta
from typing import Optional

from schemas import utcnow

DECAY_WINDOW = timedelta(days=7)


def is_decaying(last_practiced: datetime, now: Optional[datetime] = None) -> bool:
    """True once a skill has gone strictly longer than a week without a pass."""
    now = now or utcnow()
    return now - last_practiced > DECAY_WINDOW
