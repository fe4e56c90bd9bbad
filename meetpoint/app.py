from flask import Flask, request, jsonify, g
from flask_cors import CORS
from dotenv import load_dotenv
import os
import logging
import json
from time import perf_counter

from .maps_service import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_SEARCH_RADIUS_M,
    DEFAULT_TIMEOUT_S,
    GoogleMapsService,
)
from .meeting_point import (
    DEFAULT_SEARCH_KEYWORD,
    EpicenterUnavailable,
    MeetingPointError,
    MeetingPointFinder,
)
from .models import Participant, TransportMode

# Load environment variables
load_dotenv()

# Configure logging
_handlers = [logging.StreamHandler()]
_log_file = os.getenv('LOG_FILE', 'app.log')
if _log_file:
    _handlers.append(logging.FileHandler(_log_file))
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=_handlers
)
logger = logging.getLogger(__name__)

MIN_LOCATIONS = 2


def _env_number(name, default, cast=float):
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        value = cast(raw)
    except ValueError:
        value = None
    # Timeouts, pool sizes and radii must all be positive
    if value is None or value <= 0:
        logger.warning(f"Invalid value for {name}: {raw!r}; using default {default}")
        return default
    return value


app = Flask(__name__)
CORS(app)  # Enable CORS for all routes

# Per-request timing: record start time and log duration on completion
@app.before_request
def _start_timer():
    g._start_time = perf_counter()


@app.after_request
def _log_request_duration(response):
    start = getattr(g, '_start_time', None)
    if start is not None:
        duration_ms = (perf_counter() - start) * 1000.0
        # Include response time header for easy debugging/measurement
        response.headers['X-Process-Time-ms'] = f"{duration_ms:.1f}"
        logger.info(
            "request completed: method=%s path=%s status=%s duration_ms=%.1f remote_addr=%s",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            request.remote_addr,
        )
    return response


@app.teardown_request
def _teardown_request_log(error=None):
    # If an unhandled exception occurred, ensure we still log duration
    if error is not None:
        start = getattr(g, '_start_time', None)
        duration_ms = (perf_counter() - start) * 1000.0 if start is not None else None
        logger.error(
            "request error: method=%s path=%s duration_ms=%s error=%s",
            request.method,
            request.path,
            f"{duration_ms:.1f}" if duration_ms is not None else 'unknown',
            repr(error),
        )


# Initialize services
api_key = os.getenv('GOOGLE_MAPS_API_KEY')
logger.info(f"API Key found: {'Yes' if api_key and api_key != 'your_api_key_here' else 'No'}")

if not api_key or api_key == "your_api_key_here":
    logger.warning("GOOGLE_MAPS_API_KEY not found or not configured in environment variables")
    maps_service = None
    meeting_point_finder = None
else:
    try:
        logger.info("Initializing Google Maps service...")
        maps_service = GoogleMapsService(
            api_key,
            timeout=_env_number('PROVIDER_TIMEOUT_SECONDS', DEFAULT_TIMEOUT_S),
            max_workers=_env_number('PROVIDER_MAX_WORKERS', DEFAULT_MAX_WORKERS, int),
        )
        meeting_point_finder = MeetingPointFinder(
            maps_service,
            keyword=os.getenv('VENUE_SEARCH_KEYWORD') or DEFAULT_SEARCH_KEYWORD,
            radius=_env_number('VENUE_SEARCH_RADIUS_M', DEFAULT_SEARCH_RADIUS_M, int),
        )
        logger.info("Google Maps service initialized successfully")
    except ValueError as e:
        logger.error(f"Error initializing Google Maps service: {e}")
        maps_service = None
        meeting_point_finder = None


def parse_locations(data):
    """
    Turn the request body into participants.
    Returns (participants, None) or (None, error message).
    """
    if not isinstance(data, dict):
        return None, 'JSON data is required'
    locations = data.get('locations')
    if not isinstance(locations, list):
        return None, 'locations must be a list'
    if len(locations) < MIN_LOCATIONS:
        return None, 'At least two locations are required.'

    participants = []
    for index, loc in enumerate(locations):
        if not isinstance(loc, dict):
            return None, f'locations[{index}] must be an object'
        address = loc.get('address')
        if not isinstance(address, str) or not address.strip():
            return None, f'locations[{index}].address is required'
        try:
            mode = TransportMode.parse(loc.get('transport') or TransportMode.DRIVING)
        except ValueError as e:
            return None, f'locations[{index}]: {e}'
        participants.append(Participant(address.strip(), mode))
    return participants, None


@app.route('/', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'message': 'Meetpoint API is running!',
        'endpoints': {
            'compute_location': '/compute-location',
            'geocode': '/api/geocode',
            'health': '/'
        },
        'status': 'healthy'
    })


@app.route('/api/geocode', methods=['POST'])
def geocode_address():
    """
    Geocode a single address
    Expected JSON: {"address": "123 Main St, City, State"}
    """
    if not maps_service:
        logger.error("Google Maps API key not configured - cannot geocode")
        return jsonify({'error': 'Google Maps API key not configured'}), 500

    try:
        data = request.get_json(silent=True)
        if not data or not data.get('address'):
            logger.error("Address not provided in request")
            return jsonify({'error': 'Address is required'}), 400

        address = data['address']
        result = maps_service.geocode(address)

        if result:
            logger.info(f"Geocoding successful - lat: {result.lat}, lng: {result.lng}")
            return jsonify({
                'success': True,
                'data': result.to_dict()
            })
        else:
            logger.warning(f"Failed to geocode address: '{address}'")
            return jsonify({
                'success': False,
                'error': 'Could not geocode the provided address'
            }), 404

    except Exception as e:
        logger.error(f"Exception in geocode_address: {str(e)}", exc_info=True)
        return jsonify({'error': f'Server error: {str(e)}'}), 500


@app.route('/compute-location', methods=['POST'])
@app.route('/api/compute-location', methods=['POST'])
def compute_location():
    """
    Find a fair meeting venue for a group
    Expected JSON: {
        "locations": [
            {"address": "123 Main St, City", "transport": "driving"},
            {"address": "456 Oak Ave, City", "transport": "transit"}
        ]
    }
    """
    logger.info("=== COMPUTE LOCATION REQUEST ===")

    if not meeting_point_finder:
        logger.error("Google Maps API key not configured - cannot process request")
        return jsonify({'error': 'Google Maps API key not configured'}), 500

    try:
        data = request.get_json(silent=True)
        logger.info(f"Request data received: {json.dumps(data) if data else 'None'}")

        participants, error = parse_locations(data)
        if error:
            logger.error(f"Rejected request: {error}")
            return jsonify({'error': error}), 400

        _algo_start = perf_counter()
        try:
            result = meeting_point_finder.find_meeting_point(participants)
        except EpicenterUnavailable as e:
            logger.error(f"Epicenter failed for addresses {e.addresses}")
            return jsonify({'error': str(e)}), 500
        except MeetingPointError as e:
            logger.error(f"Algorithm failed: {e}")
            return jsonify({'error': str(e)}), 500
        _compute_ms = (perf_counter() - _algo_start) * 1000.0
        logger.info("Time to find meeting point = %.1f ms (participants=%d)", _compute_ms, len(participants))

        response = jsonify({'bestLocation': result.to_dict()})
        response.headers['X-Compute-Time-ms'] = f"{_compute_ms:.1f}"
        return response

    except Exception as e:
        logger.error(f"Exception in compute_location: {str(e)}", exc_info=True)
        return jsonify({'error': f'Server error: {str(e)}'}), 500


@app.errorhandler(404)
def not_found(error):
    return jsonify({'error': 'Endpoint not found'}), 404


@app.errorhandler(500)
def internal_error(error):
    return jsonify({'error': 'Internal server error'}), 500
