from flask import Blueprint, jsonify
from ..tracking import tracking_for_token

tracking_bp = Blueprint('tracking', __name__)

@tracking_bp.get('/<token>')
def track(token):
    return jsonify(tracking_for_token(token).to_dict())
