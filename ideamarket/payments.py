# ideamarket/payments.py

import logging

import stripe
from flask import Blueprint, current_app, jsonify, request, url_for

from . import db
from .auth import load_user, login_required
from .engine.purchases import PurchaseWorkflow
from .errors import Conflict, NotFound, PaymentError
from .models import Sold
from .schemas import CheckoutRequest
from .utils import json_body

payments = Blueprint('payments', __name__)
logger = logging.getLogger(__name__)


@payments.route('/create-checkout-session', methods=['POST'])
@login_required
def create_checkout_session():
    stripe.api_key = current_app.config['STRIPE_SECRET_KEY']
    payload = CheckoutRequest.model_validate(json_body())

    sold = db.session.get(Sold, str(payload.sold_id))
    if sold is None or sold.user_id != load_user().id:
        raise NotFound("Purchase not found")
    if sold.is_paid:
        raise Conflict("This purchase is already paid")

    success_url = current_app.config.get('CHECKOUT_SUCCESS_URL') or \
        url_for('main.checkout_result', outcome='success', _external=True)
    cancel_url = current_app.config.get('CHECKOUT_CANCEL_URL') or \
        url_for('main.checkout_result', outcome='cancel', _external=True)
    try:
        checkout_session = stripe.checkout.Session.create(
            mode='payment',
            payment_method_types=['card'],
            line_items=[{
                'price_data': {
                    'currency': current_app.config['CURRENCY'],
                    'unit_amount': sold.amount,
                    'product_data': {'name': f"Idea {sold.idea.mmb_no}: {sold.idea.title}"},
                },
                'quantity': 1,
            }],
            client_reference_id=sold.user_id,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={'sold_id': sold.id},
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout failed for purchase %s: %s", sold.id, e)
        raise PaymentError(details=str(e))

    sold.stripe_session_id = checkout_session.id
    db.session.commit()
    return jsonify({'url': checkout_session.url})


@payments.route('/webhook', methods=['POST'])
def stripe_webhook():
    payload = request.get_data(as_text=True)
    sig_header = request.headers.get('Stripe-Signature')
    webhook_secret = current_app.config['STRIPE_WEBHOOK_SECRET']
    try:
        event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
    except ValueError: return 'Invalid payload', 400
    except stripe.SignatureVerificationError: return 'Invalid signature', 400

    if event['type'] == 'checkout.session.completed':
        session = event['data']['object']
        sold_id = (session.get('metadata') or {}).get('sold_id')
        if not sold_id:
            logger.warning("Checkout session %s has no sold_id metadata", session.get('id'))
            return 'Success', 200

        workflow = PurchaseWorkflow.for_request()
        try:
            workflow.set_payment_status(
                sold_id, True,
                action='STRIPE_PAYMENT_CONFIRMED', log_type='other',
            )
        except NotFound:
            logger.warning("Stripe confirmed payment for unknown purchase %s", sold_id)
            return 'Unknown purchase', 404
        logger.info("Purchase %s marked paid by Stripe", sold_id)

    return 'Success', 200
