from flask import Flask, request, jsonify, session
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import logging
import os
import time
from datetime import datetime
import secrets

from listings_api import get_listings_source
from location_resolver import location_resolver
from property_filters import SearchFilters
from recent_locations import JsonFileStorage, RecentLocationsStore, RECENT_LOCATIONS_KEY
from search_orchestrator import (
    SearchOrchestrator, INVALID, NOT_FOUND, RATE_LIMITED, SESSION_LIMIT, ERROR
)
from suggestions import LocationSuggestion, fetch_suggestions

MAX_INPUT_LENGTH = 200

# HTTP status for each non-ok search outcome
OUTCOME_STATUS_CODES = {
    INVALID: 400,
    NOT_FOUND: 404,
    RATE_LIMITED: 429,
    SESSION_LIMIT: 429,
    ERROR: 502,
}


def clean_text(value, max_length=MAX_INPUT_LENGTH):
    """Trim free-text input; reject anything that isn't a short string"""
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValueError('Expected a text value')
    value = value.strip()
    if len(value) > max_length:
        raise ValueError(f'Input must be at most {max_length} characters')
    return value


app = Flask(__name__)

# Security: Generate secret key from environment or random
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY') or secrets.token_hex(32)

# Security: Configure CORS properly (restrict in production)
_allowed_origins = ["http://localhost:5173", "http://localhost:8080"]
# Allow additional origins via env var (comma-separated)
_extra_origins = os.environ.get('CORS_ALLOWED_ORIGINS', '')
if _extra_origins:
    _allowed_origins.extend([o.strip() for o in _extra_origins.split(',') if o.strip()])
CORS(app, resources={r"/api/*": {"origins": _allowed_origins}}, supports_credentials=True)

# Security: Rate limiting per client IP, on top of the per-session search guards
limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    default_limits=["500 per day", "100 per hour"]
)

recent_storage = JsonFileStorage()
search_orchestrator = SearchOrchestrator(get_listings_source())


def _session_id():
    """Random id for this browser session, kept in the signed session cookie"""
    session_id = session.get('sid')
    if not session_id:
        session_id = session['sid'] = secrets.token_hex(16)
    return session_id


def _rate_state():
    return search_orchestrator.session_state(_session_id())


def _recent_locations():
    return RecentLocationsStore(recent_storage, key=f"{RECENT_LOCATIONS_KEY}:{_session_id()}")


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError('Request body must be a JSON object')
    return data


def _search_callbacks(term):
    """Log how long the provider call took"""
    started = {}

    def on_start():
        started['at'] = time.monotonic()
        app.logger.info(f"[search] Calling listings provider for {term!r}")

    def on_complete():
        elapsed = time.monotonic() - started.get('at', time.monotonic())
        app.logger.info(f"[search] Provider call for {term!r} finished in {elapsed:.2f}s")

    return {'on_start': on_start, 'on_complete': on_complete}


def _outcome_response(outcome, state, **extra):
    body = outcome.to_dict()
    body.update(extra)
    body['success'] = outcome.ok
    body['searches_remaining'] = max(0, search_orchestrator.max_searches - state.search_count)
    if outcome.ok:
        return jsonify(body)
    response = jsonify(body)
    response.status_code = OUTCOME_STATUS_CODES.get(outcome.status, 500)
    if outcome.retry_after:
        response.headers['Retry-After'] = str(outcome.retry_after)
    return response


@app.route('/api/health')
def health_check():
    """Health check endpoint"""
    return jsonify({'status': 'healthy', 'timestamp': datetime.now().isoformat()})


@app.route('/api/locations/suggest')
@limiter.limit("60 per minute")
def suggest_locations():
    """Type-ahead place suggestions (empty for fewer than 2 characters)"""
    try:
        query = clean_text(request.args.get('q', ''))
    except ValueError as e:
        return jsonify({'success': False, 'message': str(e)}), 400

    suggestions = fetch_suggestions(query)
    return jsonify({
        'success': True,
        'suggestions': [s.to_dict() for s in suggestions],
        'visible': bool(suggestions)
    })


@app.route('/api/locations/resolve', methods=['POST'])
@limiter.limit("20 per minute")
def resolve_location():
    """Resolve a typed location, or a picked suggestion, to coordinates and a canonical label"""
    try:
        if not request.is_json:
            return jsonify({'success': False, 'message': 'Content-Type must be application/json'}), 400

        data = _json_body()

        if isinstance(data.get('suggestion'), dict):
            raw = data['suggestion']
            try:
                suggestion = LocationSuggestion(
                    name=clean_text(raw.get('name')),
                    display_name=clean_text(raw.get('display_name') or raw.get('name'), max_length=500),
                    latitude=float(raw['latitude']),
                    longitude=float(raw['longitude']),
                )
            except (KeyError, TypeError, ValueError):
                return jsonify({'success': False, 'message': 'Invalid suggestion'}), 400
            if not suggestion.name:
                return jsonify({'success': False, 'message': 'Invalid suggestion'}), 400
            result = location_resolver.resolve_suggestion(suggestion)
            term = suggestion.name
        else:
            term = clean_text(data.get('location'))
            result = location_resolver.resolve(term)

        if not result.resolved:
            status_code = OUTCOME_STATUS_CODES.get(result.status, 502)
            return jsonify({'success': False, 'message': result.message, 'location': result.to_dict()}), status_code

        recent = _recent_locations().record(term)
        return jsonify({
            'success': True,
            'location': result.to_dict(),
            'message': f"Found location: {result.label}",
            'recent_locations': recent
        })

    except ValueError as e:
        return jsonify({'success': False, 'message': f'Validation error: {str(e)}'}), 400

    except Exception as e:
        app.logger.error(f'Location resolve error: {str(e)}')
        return jsonify({
            'success': False,
            'message': 'Error finding location. Please try again.'
        }), 500


@app.route('/api/locations/recent', methods=['GET'])
def get_recent_locations():
    return jsonify({'success': True, 'recent_locations': _recent_locations().items})


@app.route('/api/locations/recent', methods=['DELETE'])
def clear_recent_locations():
    _recent_locations().clear()
    return jsonify({'success': True, 'recent_locations': []})


@app.route('/api/search', methods=['POST'])
@limiter.limit("30 per minute")
def search():
    """Throttled listings search with in-memory filtering"""
    try:
        if not request.is_json:
            return jsonify({'success': False, 'message': 'Content-Type must be application/json'}), 400

        data = _json_body()
        term = clean_text(data.get('searchTerm') or data.get('location'))
        filters = SearchFilters.from_dict(data.get('filters'))

        state = _rate_state()
        outcome = search_orchestrator.search(term, filters, state, **_search_callbacks(term))
        return _outcome_response(outcome, state)

    except ValueError as e:
        return jsonify({'success': False, 'message': f'Validation error: {str(e)}'}), 400

    except Exception as e:
        # Log error but don't expose details to client
        app.logger.error(f'Search error: {str(e)}')
        return jsonify({
            'success': False,
            'message': 'An error occurred during search. Please try again.'
        }), 500


@app.route('/api/search/location', methods=['POST'])
@limiter.limit("20 per minute")
def search_by_location():
    """Resolve a location and search listings for its canonical label"""
    try:
        if not request.is_json:
            return jsonify({'success': False, 'message': 'Content-Type must be application/json'}), 400

        data = _json_body()
        text = clean_text(data.get('location'))
        filters = SearchFilters.from_dict(data.get('filters'))

        state = _rate_state()
        outcome = search_orchestrator.search_location(
            text, filters, state,
            recent=_recent_locations(),
            **_search_callbacks(text)
        )
        return _outcome_response(outcome, state, filters=filters.to_dict())

    except ValueError as e:
        return jsonify({'success': False, 'message': f'Validation error: {str(e)}'}), 400

    except Exception as e:
        app.logger.error(f'Location search error: {str(e)}')
        return jsonify({
            'success': False,
            'message': 'An error occurred during search. Please try again.'
        }), 500


@app.route('/api/session', methods=['GET'])
def get_session_state():
    state = _rate_state()
    return jsonify({
        'success': True,
        'search_count': state.search_count,
        'searches_remaining': max(0, search_orchestrator.max_searches - state.search_count),
        'rate_limit_ms': search_orchestrator.rate_limit_ms
    })


@app.route('/api/session/reset', methods=['POST'])
def reset_session():
    """Start a fresh session, as reloading the page would"""
    search_orchestrator.reset_session(_session_id())
    return jsonify({'success': True, 'searches_remaining': search_orchestrator.max_searches})


# Security: Error handlers
@app.errorhandler(429)
def ratelimit_handler(e):
    """Handle rate limit exceeded"""
    return jsonify({
        'success': False,
        'message': 'Rate limit exceeded. Please slow down.'
    }), 429


@app.errorhandler(404)
def not_found_handler(e):
    """Handle 404 errors"""
    return jsonify({
        'success': False,
        'message': 'Endpoint not found'
    }), 404


@app.errorhandler(500)
def server_error_handler(e):
    """Handle 500 errors"""
    app.logger.error(f'Server error: {str(e)}')
    return jsonify({
        'success': False,
        'message': 'Internal server error. Please try again later.'
    }), 500


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    # Security: Don't run with debug in production
    debug_mode = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'
    port = int(os.environ.get('PORT', os.environ.get('FLASK_PORT', 5002)))
    app.run(debug=debug_mode, host='0.0.0.0', port=port)
