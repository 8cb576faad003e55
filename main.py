import logging
import math
from functools import wraps
from numbers import Number

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager, create_access_token, get_jwt, get_jwt_identity, jwt_required
from werkzeug.exceptions import HTTPException

from authorization import get_policy
from blockchain import BlockchainConfig, MockBlockchainService, generate_drug_id, is_text
from config import Config
from constants import DEFAULT_LOCATION, DEFAULT_TEMPERATURE, ROLE_ADDRESSES, UserRole
from datetime_utils import format_timestamp
from ledger_types import ErrorCode, User
from models import db
from seed_data import reset_system, seed_demo_data
from storage import LedgerStore, StorageAdapter
from verification import calculate_trust_score, temperature_excursions, transaction_stats

bp = Blueprint("ledger", __name__)

ERROR_STATUS = {
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ALREADY_EXISTS: 409,
    ErrorCode.CONFLICT: 409,
    ErrorCode.PERSISTENCE_FAILURE: 503,
}


def get_service() -> MockBlockchainService:
    return current_app.extensions["pharmachain"]


def role_required(allowed_roles):
    def decorator(func):
        @wraps(func)
        @jwt_required()
        async def wrapper(*args, **kwargs):
            role = get_jwt().get("role")
            if role not in allowed_roles:
                return jsonify({"error": "Access denied for your role"}), 403
            return await func(*args, **kwargs)
        return wrapper
    return decorator


def result_response(result):
    if result.success:
        return jsonify(result.to_dict())
    return jsonify(result.to_dict()), ERROR_STATUS.get(result.error_code, 400)


def is_number(value):
    if not isinstance(value, Number) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError, OverflowError):
        return False


# Routes
@bp.route('/')
def home():
    return "Welcome to the PharmaChain Ledger API!"


@bp.route('/roles', methods=['GET'])
def roles():
    return jsonify({role.value: address for role, address in ROLE_ADDRESSES.items()})


@bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    role_name = str(data.get("role", "")).upper()
    try:
        role = UserRole(role_name)
    except ValueError:
        return jsonify({"error": "Invalid role. Must be manufacturer, distributor, pharmacy, or patient"}), 400

    address = data.get("address", ROLE_ADDRESSES[role])
    if not is_text(address):
        return jsonify({"error": "address must be a non-empty string"}), 400

    user = User.for_role(role, address)
    get_service().store.set_current_user(user)

    token = create_access_token(identity=user.address, additional_claims={"role": role.value, "name": user.name})
    current_app.logger.info("Logged in %s as %s", user.address, role.value)
    return jsonify({"access_token": token, "user": user.to_dict()})


@bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    get_service().store.clear_current_user()
    return jsonify({"message": "Logged out"})


@bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    claims = get_jwt()
    stored = get_service().store.get_current_user()
    return jsonify({
        "address": get_jwt_identity(),
        "role": claims.get("role"),
        "name": claims.get("name"),
        "current_user": stored.to_dict() if stored else None,
    })


@bp.route('/drugs', methods=['POST'])
@role_required([UserRole.MANUFACTURER.value])
async def register_drug():
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "No JSON data provided"}), 400

    for field in ("name", "batchNumber"):
        if not is_text(data.get(field)):
            return jsonify({"error": f"Missing field: {field}"}), 400

    temperature = data.get("initialTemperature", DEFAULT_TEMPERATURE)
    if not is_number(temperature):
        return jsonify({"error": "initialTemperature must be a finite number"}), 400

    drug_id = data.get("id", generate_drug_id())
    if not is_text(drug_id):
        return jsonify({"error": "id must be a non-empty string"}), 400
    location = data.get("initialLocation", DEFAULT_LOCATION)
    if not is_text(location):
        return jsonify({"error": "initialLocation must be a non-empty string"}), 400

    result = await get_service().register_drug(
        drug_id,
        data["name"],
        data["batchNumber"],
        get_jwt_identity(),
        temperature,
        location,
    )
    if not result.success:
        return result_response(result)
    return jsonify({**result.to_dict(), "drugId": drug_id}), 201


@bp.route('/drugs/<drug_id>', methods=['GET'])
async def get_drug(drug_id):
    drug = await get_service().get_drug_by_id(drug_id)
    if drug is None:
        return jsonify({"error": "Drug not found"}), 404
    return jsonify(drug.to_dict())


@bp.route('/drugs/<drug_id>/history', methods=['GET'])
async def drug_history(drug_id):
    history = await get_service().get_drug_history(drug_id)
    return jsonify({"drugId": drug_id, "history": [event.to_dict() for event in history]})


@bp.route('/drugs/<drug_id>/verify', methods=['GET'])
async def verify_drug(drug_id):
    """Patient-facing check: product record, full history and cold chain trust score"""
    service = get_service()
    drug = await service.get_drug_by_id(drug_id)
    if drug is None:
        return jsonify({"error": "Drug not found"}), 404

    history = await service.get_drug_history(drug_id)
    return jsonify({
        "drug": drug.to_dict(),
        "history": [event.to_dict() for event in history],
        "trustScore": calculate_trust_score(history),
        "excursions": [event.to_dict() for event in temperature_excursions(history)],
    })


@bp.route('/drugs/<drug_id>/transfer', methods=['POST'])
@jwt_required()
async def transfer_drug(drug_id):
    data = request.get_json(silent=True) or {}
    to_address = data.get("toAddress")
    if not is_text(to_address):
        return jsonify({"error": "toAddress must be a non-empty string"}), 400

    result = await get_service().transfer_drug(drug_id, get_jwt_identity(), to_address)
    return result_response(result)


@bp.route('/drugs/<drug_id>/temperature', methods=['POST'])
@jwt_required()
async def update_temperature(drug_id):
    data = request.get_json(silent=True) or {}
    temperature = data.get("temperature")
    if not is_number(temperature):
        return jsonify({"error": "temperature must be a finite number"}), 400

    result = await get_service().update_temperature(drug_id, temperature, get_jwt_identity())
    return result_response(result)


@bp.route('/drugs/<drug_id>/location', methods=['POST'])
@jwt_required()
async def update_location(drug_id):
    data = request.get_json(silent=True) or {}
    location = data.get("location")
    if not is_text(location):
        return jsonify({"error": "Missing field: location"}), 400

    result = await get_service().update_location(drug_id, location, get_jwt_identity())
    return result_response(result)


@bp.route('/drugs/<drug_id>/simulate_iot', methods=['POST'])
@jwt_required()
async def simulate_iot(drug_id):
    result = await get_service().simulate_iot_update(drug_id, get_jwt_identity())
    return result_response(result)


@bp.route('/my_drugs', methods=['GET'])
@jwt_required()
async def my_drugs():
    """Get all drugs owned by the current user"""
    drugs = await get_service().get_all_drugs_by_owner(get_jwt_identity())
    return jsonify({"drugs": [drug.to_dict() for drug in drugs]})


@bp.route('/owners/<address>/drugs', methods=['GET'])
async def drugs_by_owner(address):
    drugs = await get_service().get_all_drugs_by_owner(address)
    return jsonify({"owner": address, "drugs": [drug.to_dict() for drug in drugs]})


@bp.route('/transactions', methods=['GET'])
async def transactions():
    """Block explorer view: full transaction log, newest first, with counts"""
    txs = await get_service().get_all_transactions()
    data = []
    for tx in reversed(txs):
        entry = tx.to_dict()
        entry["formattedTimestamp"] = format_timestamp(tx.timestamp)
        data.append(entry)
    return jsonify({"stats": transaction_stats(txs), "transactions": data})


@bp.route('/demo/seed', methods=['POST'])
def demo_seed():
    result = seed_demo_data(get_service().store)
    if not result.ok:
        return jsonify({"error": "Seeding failed"}), 503
    return jsonify({"message": "Demo data has been successfully loaded"})


@bp.route('/demo/reset', methods=['POST'])
def demo_reset():
    reset_system(get_service().store)
    return jsonify({"message": "All data has been cleared"})


def handle_exception(e):
    if isinstance(e, HTTPException):
        return jsonify({"error": e.description}), e.code
    current_app.logger.exception("Unhandled error")
    return jsonify({"error": f"Internal server error: {str(e)}"}), 500


def create_app(config=None):
    app = Flask(__name__)

    # Configs
    app.config.from_object(Config)
    app.config.from_prefixed_env("PHARMACHAIN")
    if config:
        app.config.update(config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    CORS(app, supports_credentials=True, resources={r"/*": {"origins": app.config["CORS_ORIGINS"]}})

    # Init DB & JWT
    db.init_app(app)
    JWTManager(app)

    with app.app_context():
        db.create_all()

    store = LedgerStore(StorageAdapter(app))
    app.extensions["pharmachain"] = MockBlockchainService(
        store,
        policy=get_policy(app.config["LEDGER_POLICY"]),
        config=BlockchainConfig(
            min_delay=app.config["LEDGER_MIN_DELAY_MS"],
            max_delay=app.config["LEDGER_MAX_DELAY_MS"],
            read_min_delay=app.config["LEDGER_READ_MIN_DELAY_MS"],
            read_max_delay=app.config["LEDGER_READ_MAX_DELAY_MS"],
        ),
    )

    app.register_blueprint(bp)
    app.register_error_handler(Exception, handle_exception)
    return app


# Main Entry
if __name__ == "__main__":
    create_app().run(debug=True)
