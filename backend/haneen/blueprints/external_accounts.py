from flask import Blueprint, jsonify, request
from ..extensions import db
from ..models import ExternalOffice
from ..intake import create_external_office, get_or_404, record_external_payment
from ..offices import all_office_balances, balances_summary, office_balance, office_statement
from ..rates import current_rates

external_accounts_bp = Blueprint('external_accounts', __name__)


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()

@external_accounts_bp.get('/')
def list_balances():
    balances = all_office_balances(current_rates())
    return jsonify({
        'offices': [b.to_dict() for b in balances],
        'summary': balances_summary(balances),
    })

@external_accounts_bp.get('/offices')
def list_offices():
    rows = ExternalOffice.query.order_by(ExternalOffice.office_name).all()
    return jsonify([o.to_dict() for o in rows])

@external_accounts_bp.post('/offices/new')
def create_office():
    office = create_external_office(_payload())
    db.session.commit()
    return jsonify(office.to_dict()), 201

@external_accounts_bp.get('/offices/<int:office_id>/statement')
def show_statement(office_id):
    office = get_or_404(ExternalOffice, office_id)
    rates = current_rates()
    return jsonify({
        'balance': office_balance(office, rates).to_dict(),
        'lines': [line.to_dict() for line in office_statement(office, rates)],
    })

@external_accounts_bp.post('/payments/new')
def create_payment():
    payment = record_external_payment(_payload(), current_rates())
    db.session.commit()
    return jsonify(payment.to_dict()), 201
