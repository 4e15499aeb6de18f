from flask import Blueprint, jsonify, request
from ..intake import parse_date
from ..rates import current_rates
from ..reports import delayed_contracts, delayed_summary, financial_summary

reports_bp = Blueprint('reports', __name__)

@reports_bp.get('/delayed')
def delayed():
    rows = delayed_contracts(nationality=request.args.get('nationality'))
    return jsonify({'rows': rows, 'summary': delayed_summary(rows)})

@reports_bp.get('/financial')
def financial():
    report = financial_summary(
        current_rates(),
        date_from=parse_date(request.args.get('from'), 'from'),
        date_to=parse_date(request.args.get('to'), 'to'),
        financial_status=request.args.get('financial_status'),
    )
    return jsonify(report)
