from flask import Blueprint, current_app, jsonify
from ..reports import dashboard_counts

main_bp = Blueprint('main', __name__)

@main_bp.get('/')
def dashboard():
    stats = dashboard_counts()
    return jsonify({'app_name': current_app.config.get('APP_NAME'), 'stats': stats})
