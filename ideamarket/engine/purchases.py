import logging

from flask import current_app
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError

from .. import db
from ..audit import record_system_log
from ..errors import Conflict, NotFound
from ..models import Idea, IdeaStatus, Sold, utcnow
from ..utils import contains_pattern

logger = logging.getLogger(__name__)


class PurchaseWorkflow:
    """
    Purchases of ideas and their administration.

    A workflow is built per request around an explicit SQLAlchemy session.
    Every mutating method commits exactly once, so the purchase record, the
    idea's status/counter and the audit entry always change together.
    """

    def __init__(self, session, documentation_fee=0):
        self.session = session
        self.documentation_fee = documentation_fee

    @classmethod
    def for_request(cls):
        """A workflow on the request-scoped session, priced from the app config."""
        return cls(db.session, current_app.config.get('FORMAL_DOCUMENTATION_FEE', 0))

    def _get_sold(self, sold_id):
        sold = self.session.get(Sold, str(sold_id))
        if sold is None:
            raise NotFound(f"Purchase {sold_id} not found")
        return sold

    def purchase(self, idea_id, buyer_id, contact, ip_address=None):
        """
        Buy an idea.

        Args:
            idea_id: id of the idea being bought.
            buyer_id: profile id of the buyer.
            contact: a ``PurchaseRequest`` with the buyer's contact fields.
            ip_address: caller address for the audit entry.

        Returns:
            The new ``Sold`` record.

        Raises:
            NotFound: the idea does not exist.
            Conflict: the idea is not on sale, is sold out, or the buyer
                already owns it.
        """
        idea = self.session.get(Idea, idea_id)
        if idea is None:
            raise NotFound(f"Idea {idea_id} not found")
        if not idea.is_purchasable:
            if idea.status == IdeaStatus.SOLDOUT:
                raise Conflict("This idea is already sold out")
            raise Conflict(f"Ideas in status '{idea.status}' cannot be purchased")

        # The status check is repeated in the UPDATE itself, so a buyer who read
        # the idea before a competing purchase committed matches no row.
        now = utcnow()
        if idea.is_exclusive:
            changes = {'status': IdeaStatus.SOLDOUT}
            new_status = IdeaStatus.SOLDOUT
        else:
            changes = {'purchase_count': Idea.purchase_count + 1}
            new_status = IdeaStatus.CLOSED
        result = self.session.execute(
            update(Idea)
            .where(Idea.id == idea.id, Idea.status == IdeaStatus.CLOSED)
            .values(updated_at=now, **changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            logger.info("Idea %s was sold out before %s could buy it", idea_id, buyer_id)
            raise Conflict("This idea is already sold out")

        amount = idea.price + (self.documentation_fee if contact.formal_documentation else 0)
        sold = Sold(
            idea_id=idea.id,
            user_id=buyer_id,
            phone_number=contact.phone_number,
            company=contact.company,
            manager=contact.manager,
            industry=contact.industry,
            formal_documentation=contact.formal_documentation,
            amount=amount,
        )
        self.session.add(sold)

        try:
            self.session.flush()
            record_system_log(
                self.session,
                action='PURCHASE_IDEA',
                log_type='other',
                user_id=buyer_id,
                target_table='sold',
                target_id=sold.id,
                description=f"Purchased idea {idea.mmb_no}",
                after_data={'idea_id': idea.id, 'amount': amount, 'status': new_status},
                ip_address=ip_address,
            )
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.info("Duplicate purchase of idea %s by %s", idea_id, buyer_id)
            raise Conflict("You have already purchased this idea")

        logger.info("Idea %s purchased by %s (sold %s)", idea_id, buyer_id, sold.id)
        return sold

    def set_payment_status(self, sold_id, is_paid, actor_id=None, ip_address=None,
                           action='UPDATE_SOLD_STATUS', log_type='admin_action'):
        """Flip the payment flag. The idea is never touched."""
        sold = self._get_sold(sold_id)
        before = sold.is_paid
        sold.is_paid = is_paid
        sold.updated_at = utcnow()

        record_system_log(
            self.session,
            action=action,
            log_type=log_type,
            user_id=actor_id,
            target_table='sold',
            target_id=sold.id,
            description=f"Payment status changed to {'paid' if is_paid else 'unpaid'}",
            before_data={'is_paid': before},
            after_data={'is_paid': is_paid},
            ip_address=ip_address,
        )
        self.session.commit()
        return sold

    def cancel(self, sold_id, actor_id=None, ip_address=None):
        """Delete a purchase and put its idea back on the market as published."""
        sold = self._get_sold(sold_id)
        idea = sold.idea
        idea_id = sold.idea_id

        self.session.delete(sold)
        if idea is not None:
            if not idea.is_exclusive and idea.purchase_count:
                idea.purchase_count -= 1
            idea.status = IdeaStatus.PUBLISHED
            idea.updated_at = utcnow()

        record_system_log(
            self.session,
            action='CANCEL_PURCHASE',
            user_id=actor_id,
            target_table='sold',
            target_id=str(sold_id),
            description=f"Purchase cancelled (idea {idea_id})",
            before_data={'sold_id': str(sold_id), 'idea_id': idea_id},
            ip_address=ip_address,
        )
        self.session.commit()
        logger.info("Purchase %s cancelled, idea %s republished", sold_id, idea_id)

    def search(self, q=None, limit=50, offset=0):
        """Purchases newest first, optionally filtered by contact fields.

        Returns a ``(records, total)`` tuple where ``total`` ignores paging.
        """
        stmt = select(Sold)
        if q:
            pattern = contains_pattern(q)
            stmt = stmt.where(or_(
                Sold.phone_number.ilike(pattern, escape="\\"),
                Sold.company.ilike(pattern, escape="\\"),
                Sold.manager.ilike(pattern, escape="\\"),
            ))

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        records = self.session.scalars(
            stmt.order_by(Sold.created_at.desc()).limit(limit).offset(offset)
        ).all()
        return records, total
