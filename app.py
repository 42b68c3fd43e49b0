"""
BotVault Waitlist - Flask Application
Marketing landing page with the email waitlist form, a visitor beacon, health and metrics
"""

import os
from datetime import datetime, timedelta, timezone
from time import perf_counter
import logging
from logging.handlers import RotatingFileHandler

from flask import (
    Flask,
    render_template,
    request,
    redirect,
    url_for,
    session,
    jsonify,
)
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from config import Config
from services.form_state import Notification, NotificationSlot, SubmitCooldown
from services.visitor_tracker import track_visit
from services.waitlist_service import SignupError, UnexpectedSignupError, register_signup
from services.waitlist_store import build_store

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(Config)
app.config.setdefault('SESSION_COOKIE_HTTPONLY', True)
app.config.setdefault('SESSION_COOKIE_SAMESITE', 'Lax')
app.config.setdefault('SESSION_COOKIE_SECURE', not app.config.get('DEBUG', False))


@app.context_processor
def inject_current_year():
    return {"current_year": datetime.now(timezone.utc).year}

# Initialize CSRF protection
csrf = CSRFProtect(app)

# Initialize basic rate limiting
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=app.config.get('RATELIMIT_STORAGE_URI', 'memory://'),
    strategy='fixed-window',
    default_limits=["200 per day", "50 per hour"],
)
limiter.init_app(app)

@limiter.request_filter
def _rate_limit_exempt_for_tests():
    return app.config.get('TESTING', False)

os.makedirs(app.config.get('LOG_DIR', 'logs'), exist_ok=True)
_file_handler = RotatingFileHandler(
    os.path.join(app.config.get('LOG_DIR', 'logs'), 'app.log'),
    maxBytes=5 * 1024 * 1024,
    backupCount=5,
)
_file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
if not any(isinstance(h, RotatingFileHandler) for h in app.logger.handlers):
    app.logger.addHandler(_file_handler)

if app.config.get('SENTRY_DSN'):
    sentry_sdk.init(
        dsn=app.config.get('SENTRY_DSN'),
        integrations=[FlaskIntegration()],
        traces_sample_rate=app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.1),
    )

SUCCESS_MESSAGE = 'Successfully registered!'
COOLDOWN_MESSAGE = 'Please wait a moment before submitting again.'
SIGNUP_ERROR_STATUS = {
    'invalid-input': 400,
    'duplicate-email': 409,
    'persistence-unavailable': 503,
    'unexpected': 500,
}

REQUEST_METRICS = {
    'requests_total': 0,
    'errors_total': 0,
    'latency_ms_total': 0.0,
    'signups_total': 0,
}


@app.before_request
def _metrics_before_request():
    request._start_ts = perf_counter()


@app.after_request
def _metrics_after_request(response):
    started = getattr(request, '_start_ts', None)
    if started is not None:
        REQUEST_METRICS['requests_total'] += 1
        elapsed = (perf_counter() - started) * 1000.0
        REQUEST_METRICS['latency_ms_total'] += elapsed
        if response.status_code >= 400:
            REQUEST_METRICS['errors_total'] += 1
    return response


# ===== PERSISTENCE =====

def get_store():
    """Return the configured signup store (the Supabase client is built once per process)."""
    if app.config.get('DATABASE_BACKEND') == 'supabase':
        store = app.extensions.get('waitlist_store')
        if store is None:
            store = build_store(app.config)
            app.extensions['waitlist_store'] = store
        return store
    return build_store(app.config)


def init_db():
    """Create the signups and visitors tables when using the SQLite backend."""
    get_store().init_schema()


# ===== FORM STATE HELPERS =====

def notification_slot():
    return NotificationSlot(session, app.config['TOAST_TIMEOUT_SECONDS'])


def submit_cooldown():
    return SubmitCooldown(session, app.config['SUBMIT_COOLDOWN_SECONDS'])


def _track_page_view(page_url):
    try:
        store = get_store()
    except Exception:  # noqa: BLE001
        app.logger.exception('Visitor tracking skipped: store unavailable')
        return
    track_visit(
        store,
        page_url,
        request.headers.get('User-Agent', ''),
        app.config['PROJECT_NAME'],
    )


def _submit_waitlist_email(raw_email):
    """Run one waitlist submission and return (status_code, message, kind)."""
    cooldown = submit_cooldown()
    if cooldown.active():
        return 429, COOLDOWN_MESSAGE, 'error'

    try:
        register_signup(get_store(), raw_email, app.config['PROJECT_NAME'])
    except SignupError as exc:
        return SIGNUP_ERROR_STATUS.get(exc.kind, 500), exc.message, 'error'
    except Exception:  # noqa: BLE001
        app.logger.exception('Unexpected error during waitlist signup')
        return 500, UnexpectedSignupError().message, 'error'

    REQUEST_METRICS['signups_total'] += 1
    cooldown.start()
    return 201, SUCCESS_MESSAGE, 'success'


def _render_landing(status=200, toast=None):
    slot = notification_slot()
    if toast is None:
        toast = slot.current()
    now = slot.clock()
    cooldown_remaining = submit_cooldown().remaining()
    return render_template(
        'landing.html',
        toast=toast,
        toast_timeout_ms=int(toast.remaining(now) * 1000) if toast else 0,
        email_value=session.pop('waitlist_email', ''),
        cooldown_active=cooldown_remaining > 0,
        cooldown_ms=int(cooldown_remaining * 1000),
        toast_default_ms=int(app.config['TOAST_TIMEOUT_SECONDS'] * 1000),
        visitor_tracking_enabled=app.config.get('VISITOR_TRACKING_ENABLED', False),
    ), status


# ===== PUBLIC / MARKETING ROUTES =====

@app.route("/")
def landing():
    """Marketing landing page with the waitlist form"""
    return _render_landing()


@app.route('/api/visit', methods=['POST'])
@csrf.exempt
@limiter.limit('30 per minute')
def api_track_visit():
    """Page-view beacon sent by the landing page script after load."""
    if app.config.get('VISITOR_TRACKING_ENABLED'):
        data = request.get_json(silent=True)
        page_url = data.get('page_url') if isinstance(data, dict) else None
        if not isinstance(page_url, str) or not page_url:
            page_url = request.referrer or url_for('landing', _external=True)
        _track_page_view(page_url)
    return '', 204


# ===== WAITLIST ROUTES =====

@app.route('/waitlist', methods=['POST'])
@limiter.limit('10 per minute')
def waitlist_submit():
    """Form submission; the outcome is shown as a toast on the landing page."""
    raw_email = request.form.get('email', '')
    status, message, kind = _submit_waitlist_email(raw_email)

    if kind == 'success':
        session.pop('waitlist_email', None)
    else:
        session['waitlist_email'] = raw_email[:254]
    notification_slot().show(message, kind)
    app.logger.info('Waitlist form submission finished with status=%s', status)
    return redirect(url_for('landing'))


@app.route('/api/waitlist', methods=['POST'])
@limiter.limit('10 per minute')
def api_waitlist_submit():
    data = request.get_json(silent=True) or {}
    raw_email = data.get('email') if isinstance(data, dict) else None
    if not isinstance(raw_email, str):
        raw_email = ''

    status, message, kind = _submit_waitlist_email(raw_email)
    cooldown_seconds = app.config['SUBMIT_COOLDOWN_SECONDS'] if kind == 'success' else 0
    return jsonify({
        'ok': kind == 'success',
        'message': message,
        'kind': kind,
        'cooldown_seconds': cooldown_seconds,
    }), status


@app.route('/health')
def health():
    return jsonify({'status': 'ok', 'service': 'botvault-waitlist'}), 200


@app.route('/metrics')
def metrics():
    total = REQUEST_METRICS['requests_total']
    avg_latency = (REQUEST_METRICS['latency_ms_total'] / total) if total else 0.0
    return jsonify({
        'requests_total': total,
        'errors_total': REQUEST_METRICS['errors_total'],
        'avg_latency_ms': round(avg_latency, 2),
        'signups_total': REQUEST_METRICS['signups_total'],
    }), 200


# ===== ERROR HANDLERS =====


@app.errorhandler(429)
def rate_limited(error):
    reset_ts = int((datetime.now(timezone.utc) + timedelta(minutes=1)).timestamp())
    if request.path.startswith('/api/'):
        resp = jsonify({'ok': False, 'message': 'Too many requests. Please try again shortly.', 'kind': 'error'})
        resp.status_code = 429
    else:
        response = render_template('errors/rate_limit.html', reset_timestamp=reset_ts, wait_minutes=1)
        resp = app.make_response((response, 429))
    resp.headers['X-RateLimit-Reset'] = str(reset_ts)
    return resp


@app.errorhandler(404)
def not_found(error):
    return _render_landing(status=404)

@app.errorhandler(500)
def internal_error(error):
    toast = Notification(
        message='An unexpected server error occurred. Please retry in a moment.',
        kind='error',
        expires_at=notification_slot().clock() + app.config['TOAST_TIMEOUT_SECONDS'],
    )
    return _render_landing(status=500, toast=toast)

# ===== APPLICATION ENTRY POINT =====

if __name__ == '__main__':
    init_db()
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=app.config['DEBUG'])
