from datetime import date
from flask import Blueprint, jsonify, request
from sqlalchemy import or_
from ..extensions import db
from ..models import CV
from ..availability import (
    active_order_for, availability_checks, available_workers, medical_days_left,
    medical_expiry, worker_availability,
)
from ..intake import create_cv as create_cv_record, get_or_404, update_cv as update_cv_record

cvs_bp = Blueprint('cvs', __name__)


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


def _cv_view(cv, today):
    active = active_order_for(cv.passport_number)
    expiry = medical_expiry(cv)
    data = cv.to_dict()
    data['office_name'] = cv.external_office.office_name if cv.external_office else None
    data['availability'] = worker_availability(cv, active is not None, today)
    data['checks'] = availability_checks(cv, active is not None, today)
    data['medical_expiry'] = expiry.isoformat() if expiry else None
    data['medical_days_left'] = medical_days_left(cv, today)
    data['active_order_id'] = active.id if active else None
    return data

@cvs_bp.get('/')
def list_cvs():
    q = request.args.get('q')
    query = CV.query
    if q:
        query = query.filter(or_(CV.worker_name.ilike(f"%{q}%"), CV.passport_number.ilike(f"%{q}%")))
    if request.args.get('nationality'):
        query = query.filter(CV.nationality == request.args['nationality'])
    if request.args.get('profession'):
        query = query.filter(CV.profession == request.args['profession'])
    today = date.today()
    rows = [_cv_view(cv, today) for cv in query.order_by(CV.id.desc()).all()]
    return jsonify(rows)

@cvs_bp.get('/available')
def list_available():
    rows = available_workers(
        nationality=request.args.get('nationality'),
        profession=request.args.get('profession'),
    )
    return jsonify([cv.to_dict() for cv in rows])

@cvs_bp.post('/new')
def create_cv():
    cv = create_cv_record(_payload())
    db.session.commit()
    return jsonify(_cv_view(cv, date.today())), 201

@cvs_bp.get('/<int:cv_id>')
def show_cv(cv_id):
    cv = get_or_404(CV, cv_id)
    return jsonify(_cv_view(cv, date.today()))

@cvs_bp.post('/<int:cv_id>')
def update_cv(cv_id):
    cv = get_or_404(CV, cv_id)
    update_cv_record(cv, _payload())
    db.session.commit()
    return jsonify(_cv_view(cv, date.today()))
