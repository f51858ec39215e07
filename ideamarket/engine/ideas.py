import logging

from sqlalchemy import func, select, update

from ..audit import record_system_log
from ..errors import Conflict, NotFound
from ..models import Comment, Idea, IdeaStatus, isoformat, utcnow

logger = logging.getLogger(__name__)


def get_idea(session, idea_id):
    idea = session.get(Idea, idea_id)
    if idea is None:
        raise NotFound(f"Idea {idea_id} not found")
    return idea


def next_mmb_no(session):
    current = session.scalar(select(func.max(Idea.mmb_no)))
    return (current or 0) + 1


def create_idea(session, author_id, payload):
    idea = Idea(
        mmb_no=next_mmb_no(session),
        author_id=author_id,
        title=payload.title,
        summary=payload.summary,
        detail=payload.detail,
        price=payload.price,
        is_exclusive=payload.is_exclusive,
        deadline=payload.deadline,
        status=IdeaStatus.PUBLISHED,
    )
    session.add(idea)
    session.commit()
    logger.info("Idea %s (no. %s) published by %s", idea.id, idea.mmb_no, author_id)
    return idea


def add_comment(session, idea, author_id, text):
    # Discussion is only open while the idea is published
    if idea.status != IdeaStatus.PUBLISHED:
        raise Conflict("Comments are closed for this idea")
    comment = Comment(idea_id=idea.id, author_id=author_id, text=text)
    session.add(comment)
    session.commit()
    return comment


def update_idea(session, idea, changes, actor_id=None, ip_address=None):
    """Apply admin edits from the idea management screen."""
    before = {}
    for field, value in changes.items():
        old = getattr(idea, field)
        before[field] = isoformat(old) if field == 'deadline' else old
        setattr(idea, field, value)
    idea.updated_at = utcnow()

    after = dict(changes)
    if 'deadline' in after:
        after['deadline'] = isoformat(after['deadline'])
    record_system_log(
        session,
        action='UPDATE_IDEA',
        user_id=actor_id,
        target_table='ideas',
        target_id=idea.id,
        description=f"Idea {idea.mmb_no} updated",
        before_data=before,
        after_data=after,
        ip_address=ip_address,
    )
    session.commit()
    return idea


def mark_overdue(session, now=None):
    """Move published ideas past their deadline to ``overdue``.

    Returns the number of ideas changed.
    """
    now = now or utcnow()
    result = session.execute(
        update(Idea)
        .where(Idea.status == IdeaStatus.PUBLISHED)
        .where(Idea.deadline.is_not(None))
        .where(Idea.deadline < now)
        .values(status=IdeaStatus.OVERDUE, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    changed = result.rowcount or 0
    if changed:
        record_system_log(
            session,
            action='MARK_OVERDUE',
            log_type='scheduled_task',
            target_table='ideas',
            description=f"{changed} idea(s) passed their deadline",
            after_data={'count': changed},
        )
    session.commit()
    logger.info("Marked %d idea(s) overdue", changed)
    return changed
