from flask import Blueprint, jsonify, request
from sqlalchemy import or_
from ..extensions import db
from ..models import Order
from ..constants import ORDER_STATUS_LABELS, OrderStatus
from ..errors import ValidationFailed
from ..intake import create_order as create_order_record, get_or_404, parse_date, update_order_details
from ..rates import current_rates
from ..workflow import (
    TRANSITIONS, parse_cancellation, parse_guarantee_event,
    resolve_contract, return_during_guarantee, transition_order,
)

orders_bp = Blueprint('orders', __name__)

DATE_CHANGES = ('travel_date', 'arrival_date', 'contract_date')


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


def _section(data, name):
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationFailed(f'{name} must be an object')
    return value


def _order_view(order):
    status = OrderStatus(order.order_status)
    contract = resolve_contract(order.contract_number)
    data = order.to_dict()
    data['status_label'] = ORDER_STATUS_LABELS[status]
    data['is_active'] = order.is_active
    data['next_statuses'] = sorted(s.value for s in TRANSITIONS[status] if s is not status)
    data['contract'] = contract.to_dict() if contract else None
    return data

@orders_bp.get('/')
def list_orders():
    query = Order.query
    if request.args.get('status'):
        query = query.filter(Order.order_status == request.args['status'])
    q = request.args.get('q')
    if q:
        query = query.filter(or_(
            Order.client_name.ilike(f"%{q}%"),
            Order.contract_number.ilike(f"%{q}%"),
            Order.passport_number.ilike(f"%{q}%"),
        ))
    rows = query.order_by(Order.id.desc()).all()
    return jsonify([_order_view(o) for o in rows])

@orders_bp.post('/new')
def create_order():
    order = create_order_record(_payload())
    db.session.commit()
    return jsonify(_order_view(order)), 201

@orders_bp.get('/<int:order_id>')
def show_order(order_id):
    return jsonify(_order_view(get_or_404(Order, order_id)))

@orders_bp.post('/<int:order_id>')
def update_order(order_id):
    order = get_or_404(Order, order_id)
    update_order_details(order, _payload())
    db.session.commit()
    return jsonify(_order_view(order))

@orders_bp.post('/<int:order_id>/status')
def change_status(order_id):
    order = get_or_404(Order, order_id)
    data = _payload()
    changes = dict(_section(data, 'changes') or {})
    for name in DATE_CHANGES:
        if name in changes:
            changes[name] = parse_date(changes[name], name)
    result = transition_order(
        order, data.get('status'), current_rates(),
        changes=changes,
        cancellation=parse_cancellation(_section(data, 'cancellation')),
        guarantee_event=parse_guarantee_event(_section(data, 'guarantee_event')),
    )
    db.session.commit()
    return jsonify(result.to_dict())

@orders_bp.post('/<int:order_id>/return')
def return_worker(order_id):
    order = get_or_404(Order, order_id)
    data = _payload()
    result = return_during_guarantee(order, current_rates(), parse_guarantee_event(data))
    db.session.commit()
    return jsonify(result.to_dict())
