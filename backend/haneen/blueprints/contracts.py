from flask import Blueprint, jsonify, request
from ..extensions import db
from ..models import Contract
from ..constants import Currency
from ..intake import get_or_404, save_contract
from ..ledger import entries_for_contract, record_manual_entry, running_balance, summarize
from ..rates import current_rates

contracts_bp = Blueprint('contracts', __name__)


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()

@contracts_bp.get('/')
def list_contracts():
    query = Contract.query
    if request.args.get('financial_status'):
        query = query.filter(Contract.financial_status == request.args['financial_status'])
    q = request.args.get('q')
    if q:
        query = query.filter(Contract.contract_number.ilike(f"%{q}%"))
    rows = query.order_by(Contract.id.desc()).all()
    return jsonify([c.to_dict() for c in rows])

@contracts_bp.get('/<int:contract_id>')
def show_contract(contract_id):
    contract = get_or_404(Contract, contract_id)
    return jsonify(contract.to_dict())

@contracts_bp.post('/<int:contract_id>')
def update_contract(contract_id):
    contract = get_or_404(Contract, contract_id)
    save_contract(contract, _payload(), current_rates())
    db.session.commit()
    return jsonify(contract.to_dict())

@contracts_bp.get('/<int:contract_id>/transactions')
def contract_ledger(contract_id):
    contract = get_or_404(Contract, contract_id)
    rates = current_rates()
    entries = entries_for_contract(contract.id)
    lines = [
        {**line.entry.to_dict(), 'amount_sar': str(line.amount_sar), 'balance': str(line.balance)}
        for line in running_balance(entries, rates)
    ]
    balance = summarize(entries, rates, contract.approx_profit)
    return jsonify({
        'contract': contract.to_dict(),
        'transactions': lines,
        'balance': balance.to_dict(),
    })

@contracts_bp.post('/<int:contract_id>/transactions')
def add_transaction(contract_id):
    contract = get_or_404(Contract, contract_id)
    data = _payload()
    entry = record_manual_entry(
        contract.id,
        data.get('transaction_type'),
        data.get('direction'),
        data.get('amount'),
        data.get('currency') or Currency.SAR.value,
        notes=data.get('notes'),
    )
    db.session.commit()
    return jsonify(entry.to_dict()), 201
