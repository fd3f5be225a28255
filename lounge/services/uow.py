import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from lounge.config import EnginePolicy
from lounge.errors import PersistenceConflict
from lounge.models.common import utcnow
from lounge.schemas.common import Actor, SYSTEM_ACTOR
from lounge.util.notify import LogNotifier, Notifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ServiceContext:
    """Everything a committing engine operation needs, passed explicitly."""
    db: Session
    policy: EnginePolicy
    actor: Actor = field(default_factory=lambda: SYSTEM_ACTOR)
    notifier: Notifier = field(default_factory=LogNotifier)
    clock: Callable[[], datetime] = utcnow
    outbox: list[dict] = field(default_factory=list)

    def now(self) -> datetime:
        return self.clock()

    def emit(self, event: dict) -> None:
        # delivered only once the surrounding transaction has committed
        self.outbox.append(event)

    def deliver(self) -> None:
        """Send committed events. Call with no seat or item lock held."""
        pending, self.outbox[:] = list(self.outbox), []
        for ev in pending:
            try:
                self.notifier.send(ev)
            except Exception:
                logger.exception("notifier failed for %s", ev.get("type"))


def run_in_transaction(ctx: ServiceContext, fn: Callable[[], T], retries: int = 1,
                       deliver: bool = True) -> T:
    """Run ``fn`` and commit it as one unit.

    An optimistic-concurrency failure is retried from a fresh read ``retries``
    times before surfacing as ``PersistenceConflict``. Any other error rolls
    everything back, queued notifications included. With ``deliver=False``
    committed events stay in the outbox until ``ctx.deliver()``.
    """
    db = ctx.db
    attempt = 0
    while True:
        mark = len(ctx.outbox)
        try:
            result = fn()
            db.commit()
            break
        except StaleDataError as exc:
            db.rollback()
            del ctx.outbox[mark:]
            if attempt >= retries:
                raise PersistenceConflict("record changed concurrently, please retry") from exc
            attempt += 1
            logger.info("stale write, retrying (%s/%s)", attempt, retries)
        except Exception:
            db.rollback()
            del ctx.outbox[mark:]
            raise

    if deliver:
        ctx.deliver()
    return result
