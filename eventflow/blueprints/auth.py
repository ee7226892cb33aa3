from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, current_user, login_required
from eventflow.models import User

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or request.form
    email_in = (data.get('email') or '').strip().lower()
    user = User.query.filter_by(email=email_in).first()
    if user and user.check_password(data.get('password') or ''):
        login_user(user)
        return jsonify({'success': True, 'user': user.to_dict()})
    return jsonify({'success': False, 'error': 'Invalid credentials.'}), 401


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'success': True, 'user': current_user.to_dict()})
