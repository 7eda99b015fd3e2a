from flask import Blueprint, current_app, jsonify, request
from royale import bcrypt

main = Blueprint('main', __name__)


def check_host_password(password) -> bool:
    if not isinstance(password, str) or not password:
        return False
    return bcrypt.check_password_hash(current_app.config['HOST_PASSWORD_HASH'], password)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Reflex Royale game server!'})


@main.route('/verify-host-password', methods=['POST'])
def verify_host_password():
    data = request.get_json(silent=True) or {}
    return jsonify({'success': check_host_password(data.get('password'))})
