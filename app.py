"""
The Vault Backend
Dating and social app API: profiles, swipe discovery, likes and matches, follows,
direct messages, notifications and admin console
Single-file architecture; pure helpers live in sibling modules
"""

# ============================================================================
# IMPORTS AND CONFIGURATION
# ============================================================================
import os
import logging
import random
import secrets
import time as time_module
from datetime import datetime
from functools import wraps
from flask import Flask, request, jsonify, make_response, g
from flask_sqlalchemy import SQLAlchemy
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_cors import CORS
from sqlalchemy import text, event, or_
from sqlalchemy.engine import Engine
from werkzeug.exceptions import HTTPException
from werkzeug.security import check_password_hash
from werkzeug.middleware.proxy_fix import ProxyFix
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError
from pydantic import ValidationError

from rate_limit import login_rate_limiter
from storage_fallback import resolve_database_uri
from discovery_feed import build_feed
from geocoding import fill_coordinates
from bot_seeder import generate_bots, is_bot_email, BOT_EMAIL_DOMAIN, BOT_PASSWORD
from backend.settings_report import settings_report
from api.normalize import (
    normalize_profile_request, normalize_details, default_details, default_location
)
from request_schemas import (
    parse_request, first_error_message,
    RegisterRequest, LoginRequest, ProfileUpdateRequest,
    PhotoUploadRequest, PhotoDeleteRequest, SendMessageRequest, ReportRequest,
    ApplicationRequest, SubscribeRequest, MarkReadRequest,
    AdminCreateUserRequest, AdminUpdateUserRequest, BulkActionRequest, BroadcastRequest
)

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)

# ============================================================================
# APPLICATION SETUP
# ============================================================================
app = Flask(__name__)

# Configure ProxyFix for proper HTTPS and client IP detection behind a proxy
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)


class Config:
    """Environment-driven configuration"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'vault-dev-secret-key-change-in-production'

    # Database configuration with hosted URL handling
    DATABASE_URL = os.environ.get('DATABASE_URL')
    if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = DATABASE_URL or 'sqlite:///vault_dev.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQL_DEBUG = os.environ.get('SQL_DEBUG', '0') == '1'

    # Base64 photo uploads arrive inline in JSON bodies
    MAX_CONTENT_LENGTH = 100 * 1024 * 1024

    # Accounts
    ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME', 'admin')
    DEFAULT_AVATAR = 'https://cdn.pixabay.com/photo/2015/10/05/22/37/blank-profile-picture-973460_1280.png'

    # Rate limiting (Flask-Limiter reads the RATELIMIT_* keys)
    REDIS_URL = os.environ.get('REDIS_URL')
    RATELIMIT_STORAGE_URI = REDIS_URL or 'memory://'
    RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', '1') == '1'
    DEFAULT_RATE_LIMIT = os.environ.get('DEFAULT_RATE_LIMIT', '1000 per hour')
    AUTH_RATE_LIMIT_PER_IP = os.environ.get('AUTH_RATE_LIMIT_PER_IP', '10 per minute')

    # External services
    GEO_API_KEY = os.environ.get('GEO_API_KEY')

    # Frontend integration - environment-aware CORS
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:5173')

    DEVELOPMENT_ORIGINS = [
        'http://localhost:3000',
        'http://localhost:5173',
        'http://127.0.0.1:5173',
    ]

    # Hosted deployments always provide DATABASE_URL
    if os.environ.get('DATABASE_URL'):
        CORS_ORIGINS = [FRONTEND_URL]
    else:
        CORS_ORIGINS = DEVELOPMENT_ORIGINS + [FRONTEND_URL]


app.config.from_object(Config)

# Fall back to in-memory storage when the configured database is unreachable
database_uri, storage_mode = resolve_database_uri(app.config['SQLALCHEMY_DATABASE_URI'])
app.config['SQLALCHEMY_DATABASE_URI'] = database_uri
app.config['STORAGE_MODE'] = storage_mode

# Initialize extensions
db = SQLAlchemy()
db.init_app(app)

limiter = Limiter(
    key_func=get_remote_address,
    app=app,
    default_limits=[app.config['DEFAULT_RATE_LIMIT']]
)

# Argon2 password hasher
ph = PasswordHasher()

CORS(
    app,
    resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}},
    allow_headers=["Content-Type", "Authorization"],
    methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    expose_headers=["Content-Length", "Retry-After"],
)

app.logger.info(f"Storage mode: {storage_mode}")


if app.config['SQL_DEBUG']:
    @event.listens_for(Engine, "before_cursor_execute")
    def _before_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time_module.time())
        app.logger.info("SQL_START: %s ; params=%s", statement, parameters)

    @event.listens_for(Engine, "after_cursor_execute")
    def _after_execute(conn, cursor, statement, parameters, context, executemany):
        total = time_module.time() - conn.info["query_start_time"].pop(-1)
        app.logger.info("SQL_END: %.3f s", total)


@app.before_request
def log_request():
    app.logger.info(f"[REQUEST] {request.method} {request.path}")
    ensure_database()


@app.after_request
def add_security_headers(resp):
    """Add standard security headers to all API responses"""
    if request.path.startswith('/api/'):
        resp.headers['X-Content-Type-Options'] = 'nosniff'
        resp.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        resp.headers['X-Frame-Options'] = 'DENY'
        # Prevent caching of personal API responses
        resp.headers['Cache-Control'] = 'no-store'
    return resp


# ============================================================================
# DATABASE MODELS
# ============================================================================

def new_object_id():
    """24 hex characters, the same shape as a document store ObjectId"""
    return secrets.token_hex(12)


def iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    """Profile document; relationships are denormalized username/id arrays"""
    __tablename__ = 'users'

    id = db.Column(db.String(24), primary_key=True, default=new_object_id)
    username = db.Column(db.String(80), nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120), default='')
    bio = db.Column(db.Text, default='')
    avatar = db.Column(db.Text, default='')
    last_username_change = db.Column(db.DateTime)
    is_member = db.Column(db.Boolean, default=False, nullable=False, index=True)  # VIP
    is_verified = db.Column(db.Boolean, default=False, nullable=False, index=True)
    is_anonymous = db.Column(db.Boolean, default=False, nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    notifications = db.Column(db.Boolean, default=True, nullable=False)
    photos = db.Column(db.JSON, default=list)
    liked_users = db.Column(db.JSON, default=list)    # usernames
    seen_users = db.Column(db.JSON, default=list)     # usernames
    blocked_users = db.Column(db.JSON, default=list)  # usernames
    followers = db.Column(db.JSON, default=list)      # user ids
    following = db.Column(db.JSON, default=list)      # user ids
    details = db.Column(db.JSON, default=default_details)
    interested_in = db.Column(db.JSON, default=list)
    location = db.Column(db.JSON, default=default_location)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def stats(self):
        return {
            'posts': len(self.photos or []),
            'followers': len(self.followers or []),
            'following': len(self.following or []),
        }

    def to_dict(self, include_private=False):
        data = {
            '_id': self.id,
            'username': self.username,
            'fullName': self.full_name or '',
            'bio': self.bio or '',
            'avatar': self.avatar or '',
            'isMember': bool(self.is_member),
            'isVerified': bool(self.is_verified),
            'isAnonymous': bool(self.is_anonymous),
            'photos': list(self.photos or []),
            'details': self.details or default_details(),
            'interestedIn': list(self.interested_in or []),
            'location': self.location or default_location(),
            'stats': self.stats(),
            'createdAt': iso(self.created_at),
        }
        if include_private:
            data.update({
                'email': self.email,
                'notifications': self.notifications is not False,
                'isAdmin': is_admin_user(self),
                'lastUsernameChange': iso(self.last_username_change),
                'likedUsers': list(self.liked_users or []),
                'seenUsers': list(self.seen_users or []),
                'blockedUsers': list(self.blocked_users or []),
                'followers': list(self.followers or []),
                'following': list(self.following or []),
            })
        return data

    def card(self, *fields):
        """Subset of the public document for list views"""
        data = self.to_dict(include_private=True)
        return {field: data.get(field) for field in fields}


class Message(db.Model):
    __tablename__ = 'messages'
    __table_args__ = (
        db.Index('ix_messages_sender_receiver', 'sender', 'receiver'),
    )

    id = db.Column(db.String(24), primary_key=True, default=new_object_id)
    sender = db.Column(db.String(80), nullable=False)    # username
    receiver = db.Column(db.String(80), nullable=False)  # username
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            '_id': self.id,
            'sender': self.sender,
            'receiver': self.receiver,
            'text': self.text,
            'createdAt': iso(self.created_at),
        }


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.String(24), primary_key=True, default=new_object_id)
    recipient = db.Column(db.String(80), nullable=False, index=True)  # username
    type = db.Column(db.String(32), nullable=False)  # message, admin_broadcast, like, match, system
    title = db.Column(db.String(255), nullable=False)
    body = db.Column(db.Text, default='')
    sender = db.Column(db.String(80), default='')
    data = db.Column(db.JSON, default=dict)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            '_id': self.id,
            'recipient': self.recipient,
            'type': self.type,
            'title': self.title,
            'body': self.body or '',
            'sender': self.sender or '',
            'data': self.data or {},
            'isRead': bool(self.is_read),
            'createdAt': iso(self.created_at),
        }


class Application(db.Model):
    """Aesthetic verification application"""
    __tablename__ = 'applications'

    id = db.Column(db.String(24), primary_key=True, default=new_object_id)
    username = db.Column(db.String(80), nullable=False)
    dob = db.Column(db.String(32))
    liveness_image = db.Column(db.Text)
    status = db.Column(db.String(32), default='PENDING_REVIEW')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Member(db.Model):
    """Vault subscription record"""
    __tablename__ = 'members'

    id = db.Column(db.String(24), primary_key=True, default=new_object_id)
    member_id = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(120))
    payment_token = db.Column(db.String(255))
    tier = db.Column(db.String(32), default='VAULT_PREMIUM')
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)


class Report(db.Model):
    __tablename__ = 'reports'

    id = db.Column(db.String(24), primary_key=True, default=new_object_id)
    reporter = db.Column(db.String(80), nullable=False)
    reported = db.Column(db.String(80), nullable=False)
    reason = db.Column(db.String(255))
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            '_id': self.id,
            'reporter': self.reporter,
            'reported': self.reported,
            'reason': self.reason,
            'description': self.description,
            'createdAt': iso(self.created_at),
        }


class AdminActionLog(db.Model):
    """Admin action audit log"""
    __tablename__ = 'admin_actions'

    id = db.Column(db.Integer, primary_key=True)
    admin_username = db.Column(db.String(80), nullable=False)
    action = db.Column(db.String(50), nullable=False)
    target = db.Column(db.String(255))
    details = db.Column(db.Text)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'adminUsername': self.admin_username,
            'action': self.action,
            'target': self.target,
            'details': self.details,
            'timestamp': iso(self.timestamp),
        }


# ============================================================================
# DOCUMENT HELPERS
# ============================================================================

ADMIN_SENDER = 'The Vault Admin'
ADMIN_AVATAR = 'https://cdn-icons-png.flaticon.com/512/1246/1246326.png'
SYSTEM_SENDER = 'System'
MATCH_GREETING = "It's a Match! 🥂"

HIDDEN_NAME = 'Gizli Üye'
HIDDEN_BIO = 'Bu kullanıcı gizliliğe önem veriyor.'

PROFILE_CARD_FIELDS = ('username', 'fullName', 'avatar', 'isMember', 'isVerified')
LIKE_CARD_FIELDS = ('username', 'avatar', 'photos', 'details', 'location')


def add_to_set(user, attr, value):
    """Append to a JSON list column without duplicates; reassigns so the change is tracked"""
    current = list(getattr(user, attr) or [])
    if value in current:
        return False
    current.append(value)
    setattr(user, attr, current)
    return True


def remove_from_set(user, attr, value):
    current = list(getattr(user, attr) or [])
    if value not in current:
        return False
    setattr(user, attr, [item for item in current if item != value])
    return True


def truncate(text_value, limit):
    if len(text_value) > limit:
        return text_value[:limit] + '...'
    return text_value


def find_user_by_username(username):
    return User.query.filter_by(username=username).first()


def find_user_by_ident(ident):
    """Admin routes accept either the document id or the username"""
    return db.session.get(User, ident) or find_user_by_username(ident)


def create_notification(recipient, type, title, body='', sender='', data=None):
    notification = Notification(
        recipient=recipient,
        type=type,
        title=title,
        body=body,
        sender=sender,
        data=data or {},
        is_read=False
    )
    db.session.add(notification)
    return notification


def conversation_exists(user_a, user_b):
    return Message.query.filter(or_(
        (Message.sender == user_a) & (Message.receiver == user_b),
        (Message.sender == user_b) & (Message.receiver == user_a),
    )).first() is not None


def paginate_query(query):
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 50, type=int)
    result = query.paginate(page=page, per_page=per_page, error_out=False)
    return result, page, per_page


# ============================================================================
# AUTHENTICATION SYSTEM
# ============================================================================

TOKEN_PREFIX = 'mock-jwt-'


def hash_password(password):
    """Argon2 password hashing"""
    return ph.hash(password)


def verify_password(user, password):
    """Verify a password, upgrading legacy Werkzeug hashes to Argon2"""
    if user.password_hash.startswith('$argon2'):
        try:
            return ph.verify(user.password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    if check_password_hash(user.password_hash, password):
        user.password_hash = hash_password(password)
        db.session.commit()
        app.logger.info(f"Password upgraded to Argon2 for user {user.id}")
        return True
    return False


def issue_token(user):
    return f"{TOKEN_PREFIX}{user.id}"


def extract_user_id(authorization):
    """Pull the user id out of 'Bearer mock-jwt-<id>' (the Bearer prefix is optional)"""
    token = authorization
    if token.startswith('Bearer '):
        token = token[7:]
    return token.replace(TOKEN_PREFIX, '', 1)


def load_token_user(authorization):
    if not authorization:
        return None
    return db.session.get(User, extract_user_id(authorization))


def is_admin_user(user):
    return bool(user) and (bool(user.is_admin) or user.username == app.config['ADMIN_USERNAME'])


def require_auth(f):
    """Decorator to require a token that resolves to a user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        authorization = request.headers.get('Authorization')
        if not authorization:
            return jsonify({'error': 'Unauthorized'}), 401

        user = load_token_user(authorization)
        if not user:
            return jsonify({'error': 'User not found'}), 404

        g.user = user
        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """Decorator that resolves the caller when a token is present"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.user = load_token_user(request.headers.get('Authorization'))
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Decorator to require admin privileges"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        authorization = request.headers.get('Authorization')
        if not authorization:
            return jsonify({'error': 'Unauthorized'}), 401

        user = load_token_user(authorization)
        if not is_admin_user(user):
            return jsonify({'error': 'Admin access only'}), 403

        g.user = user
        return f(*args, **kwargs)

    return decorated_function


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def ensure_database():
    """Create tables on first use"""
    if not hasattr(ensure_database, 'initialized'):
        try:
            db.create_all()
            ensure_database.initialized = True
            app.logger.info("Database initialized successfully - all tables created")
        except Exception as e:
            app.logger.error(f"Database initialization error: {e}")


def log_admin_action(action, target=None, details=None):
    """Append to the admin audit trail; committed with the caller's transaction"""
    entry = AdminActionLog(
        admin_username=g.user.username,
        action=action,
        target=target,
        details=details
    )
    db.session.add(entry)
    return entry


# ============================================================================
# API ROUTES - HEALTH CHECK
# ============================================================================

@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint for deployment monitoring"""
    try:
        db.session.execute(text('SELECT 1'))

        return jsonify({
            'status': 'healthy',
            'database': 'connected',
            'storage_mode': app.config['STORAGE_MODE'],
            'deployment': settings_report(app.config['STORAGE_MODE']),
            'timestamp': datetime.utcnow().isoformat(),
            'features': {
                'geocoding': bool(app.config['GEO_API_KEY']),
                'shared_rate_limits': bool(app.config['REDIS_URL']),
                'admin_console': True
            }
        })
    except Exception as e:
        app.logger.error(f"Health check failed: {e}")
        return jsonify({
            'status': 'unhealthy',
            'error': str(e),
            'timestamp': datetime.utcnow().isoformat()
        }), 500


# ============================================================================
# API ROUTES - AUTHENTICATION
# ============================================================================

@app.route('/api/auth/register', methods=['POST'])
def register():
    """User registration endpoint"""
    try:
        payload = parse_request(RegisterRequest, request.get_json(silent=True))
    except ValidationError:
        return jsonify({'error': 'Please provide all required fields'}), 400

    # The configured admin name grants admin access, so it is never self-registered
    if payload.username.lower() == app.config['ADMIN_USERNAME'].lower():
        return jsonify({'error': 'Username not available'}), 400

    try:
        existing_user = User.query.filter(
            or_(User.email == payload.email, User.username == payload.username)
        ).first()
        if existing_user:
            return jsonify({'error': 'User already exists'}), 400

        user = User(
            username=payload.username,
            email=payload.email,
            password_hash=hash_password(payload.password),
            full_name=(payload.full_name or '').strip()
        )
        db.session.add(user)
        db.session.commit()

        app.logger.info(f"User registered: {user.username}")
        return jsonify({
            'success': True,
            'token': issue_token(user),
            'user': user.to_dict(include_private=True)
        })

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Registration error: {e}")
        return jsonify({'success': False, 'error': 'Registration failed'}), 500


@app.route('/api/auth/login', methods=['POST'])
@limiter.limit(lambda: app.config['AUTH_RATE_LIMIT_PER_IP'])
def login():
    """Login with email or username"""
    payload = parse_request(LoginRequest, request.get_json(silent=True))
    handle = payload.handle
    if not handle or not payload.password:
        return jsonify({'error': 'Please provide credentials'}), 400

    retry_after = login_rate_limiter.check_rate_limit(request, handle)
    if retry_after is not None:
        response = make_response(jsonify({
            'success': False,
            'error': 'Too many failed attempts, try again later',
            'code': 'RATE_LIMIT_LOGIN',
            'retry_after': retry_after
        }), 429)
        response.headers['Retry-After'] = str(retry_after)
        return response

    try:
        user = User.query.filter(or_(User.email == handle, User.username == handle)).first()

        if not user or not verify_password(user, payload.password):
            app.logger.info("Login failed: invalid credentials")
            login_rate_limiter.record_failed_attempt(request, handle)
            return jsonify({'error': 'Invalid credentials'}), 400

        login_rate_limiter.clear_user_bucket(request, handle)
        return jsonify({
            'success': True,
            'token': issue_token(user),
            'user': user.to_dict(include_private=True)
        })

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Login error: {e}")
        return jsonify({'success': False, 'error': 'Login failed'}), 500


@app.route('/api/auth/me', methods=['GET'])
def auth_me():
    """Current user profile from the bearer token"""
    authorization = request.headers.get('Authorization')
    if not authorization:
        return jsonify({'error': 'No token provided'}), 401

    token = authorization.replace('Bearer ', '', 1)
    if not token.startswith(TOKEN_PREFIX):
        return jsonify({'error': 'Invalid token format'}), 401

    try:
        user = db.session.get(User, token[len(TOKEN_PREFIX):])
        if not user:
            return jsonify({'success': False, 'error': 'User not found'}), 404

        return jsonify({'success': True, 'user': user.to_dict(include_private=True)})

    except Exception as e:
        app.logger.error(f"Auth me error: {e}")
        return jsonify({'success': False, 'error': 'Server Error'}), 500


# ============================================================================
# API ROUTES - USERS AND PROFILE
# ============================================================================

@app.route('/api/users/profile', methods=['PUT'])
@require_auth
def update_profile():
    """Partial profile update for the caller"""
    payload = parse_request(ProfileUpdateRequest, request.get_json(silent=True))

    try:
        user = g.user
        updates = normalize_profile_request(payload.model_dump(exclude_unset=True), route='users/profile')

        new_username = updates.pop('username', None)
        if new_username and new_username != user.username:
            if new_username.lower() == app.config['ADMIN_USERNAME'].lower() and not is_admin_user(user):
                return jsonify({'error': 'Username not available'}), 400
            duplicate = User.query.filter(User.username == new_username, User.id != user.id).first()
            if duplicate:
                return jsonify({'error': 'Username taken'}), 400
            user.username = new_username
            user.last_username_change = datetime.utcnow()

        if 'location' in updates:
            updates['location'] = fill_coordinates(updates['location'], api_key=app.config['GEO_API_KEY'])

        for field, value in updates.items():
            setattr(user, field, value)

        db.session.commit()
        return jsonify({'success': True, 'user': user.to_dict(include_private=True)})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Update profile error: {e}")
        return jsonify({'success': False, 'error': 'Failed to update profile'}), 500


@app.route('/api/users/search', methods=['GET'])
def search_users():
    """Search verified, non-anonymous users by username or full name"""
    query = request.args.get('q', '').strip()
    if not query:
        return jsonify({'success': True, 'users': []})

    try:
        users = User.query.filter(
            or_(
                User.username.icontains(query, autoescape=True),
                User.full_name.icontains(query, autoescape=True)
            ),
            User.is_verified.is_(True),
            User.is_anonymous.is_(False)
        ).limit(20).all()

        return jsonify({
            'success': True,
            'users': [u.card('_id', 'username', 'fullName', 'avatar', 'bio', 'isMember', 'isVerified') for u in users]
        })

    except Exception as e:
        app.logger.error(f"Search users error: {e}")
        return jsonify({'success': False, 'error': 'Search failed'}), 500


@app.route('/api/users/vip', methods=['GET'])
def get_vip_users():
    """Newest VIP members for the discover page"""
    try:
        vip_users = User.query.filter_by(is_member=True).order_by(User.created_at.desc()).limit(20).all()
        return jsonify({
            'success': True,
            'users': [u.card('username', 'fullName', 'avatar', 'photos', 'location', 'details') for u in vip_users]
        })

    except Exception as e:
        app.logger.error(f"VIP users error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get VIP members'}), 500


def hidden_profile(user):
    """Masked card shown to anyone an anonymous user has not followed"""
    code = user.id[-6:].upper() if user.id else 'UNK000'
    return {
        'username': f"Member_{code}",
        'fullName': HIDDEN_NAME,
        'bio': HIDDEN_BIO,
        'avatar': app.config['DEFAULT_AVATAR'],
        'isMember': bool(user.is_member),
        'isVerified': bool(user.is_verified),
        'photos': [],
        'isAnonymous': True,
        'stats': {'posts': 0, 'followers': 0, 'following': 0}
    }


@app.route('/api/users/<username>', methods=['GET'])
@optional_auth
def get_user_profile(username):
    """Public profile; anonymous users are only fully visible to people they follow"""
    try:
        me = g.user
        user = find_user_by_username(username)
        if not user:
            return jsonify({'success': False, 'error': 'User not found'}), 404

        if user.is_anonymous:
            can_view = me is not None and me.id in (user.following or [])
            if not can_view:
                return jsonify({'success': True, 'user': hidden_profile(user)})

        profile = user.card('_id', 'username', 'fullName', 'bio', 'avatar', 'isMember',
                            'isVerified', 'photos', 'details', 'stats')
        if user.is_anonymous:
            profile['isAnonymous'] = True
        profile['isFollowing'] = me is not None and me.id in (user.followers or [])

        return jsonify({'success': True, 'user': profile})

    except Exception as e:
        app.logger.error(f"Get profile error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get profile'}), 500


def _follow_list(username, attr):
    user = find_user_by_username(username)
    if not user:
        return jsonify({'success': False, 'error': 'User not found'}), 404

    ids = list(getattr(user, attr) or [])
    users = User.query.filter(User.id.in_(ids)).all() if ids else []
    return jsonify({'success': True, 'users': [u.card(*PROFILE_CARD_FIELDS) for u in users]})


@app.route('/api/users/<username>/followers', methods=['GET'])
def get_followers(username):
    try:
        return _follow_list(username, 'followers')
    except Exception as e:
        app.logger.error(f"Get followers error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get followers'}), 500


@app.route('/api/users/<username>/following', methods=['GET'])
def get_following(username):
    try:
        return _follow_list(username, 'following')
    except Exception as e:
        app.logger.error(f"Get following error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get following'}), 500


@app.route('/api/users/photos', methods=['POST'])
@require_auth
def upload_photo():
    """Append a photo (base64 data URL or remote URL)"""
    try:
        payload = parse_request(PhotoUploadRequest, request.get_json(silent=True))
    except ValidationError:
        return jsonify({'error': 'Photo required'}), 400

    try:
        me = g.user
        me.photos = list(me.photos or []) + [payload.photo_url]
        db.session.commit()
        return jsonify({'success': True, 'photos': me.photos})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Upload photo error: {e}")
        return jsonify({'success': False, 'error': 'Failed to upload photo'}), 500


@app.route('/api/users/photos', methods=['DELETE'])
@require_auth
def delete_photo():
    """Remove a photo by its index"""
    payload = parse_request(PhotoDeleteRequest, request.get_json(silent=True))
    if payload.photo_index is None:
        return jsonify({'error': 'Photo index required'}), 400

    if isinstance(payload.photo_index, bool):
        return jsonify({'error': 'Invalid index'}), 400
    try:
        idx = int(payload.photo_index)
    except (TypeError, ValueError):
        return jsonify({'error': 'Invalid index'}), 400

    try:
        me = g.user
        photos = list(me.photos or [])
        if not 0 <= idx < len(photos):
            return jsonify({'error': 'Invalid photo index range'}), 400

        photos.pop(idx)
        me.photos = photos
        db.session.commit()
        return jsonify({'success': True, 'photos': me.photos})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Delete photo error: {e}")
        return jsonify({'success': False, 'error': 'Failed to delete photo'}), 500


# ============================================================================
# API ROUTES - DISCOVERY, LIKES AND MATCHES
# ============================================================================

@app.route('/api/users/photos/random', methods=['GET'])
@optional_auth
def discover_feed():
    """Swipe feed: VIPs first, then nearest, one random photo per user"""
    try:
        me = g.user
        viewer = me.to_dict(include_private=True) if me else None

        candidates = [u.to_dict() for u in User.query.filter(User.is_anonymous.is_(False)).all()]
        photos = build_feed(candidates, viewer)

        excluded = len(viewer['seenUsers']) + len(viewer['blockedUsers']) + 1 if viewer else 0
        app.logger.info(f"[RANDOM] Request from {me.username if me else 'anon'}. Excluding {excluded} users.")

        return jsonify({'success': True, 'photos': photos})

    except Exception as e:
        app.logger.error(f"Discover feed error: {e}")
        return jsonify({'success': False, 'error': 'Failed to build feed'}), 500


def record_match(me, target):
    """Create the match messages and notifications once per pair"""
    greeting_sent = Message.query.filter(
        Message.text == MATCH_GREETING,
        or_(
            (Message.sender == me.username) & (Message.receiver == target.username),
            (Message.sender == target.username) & (Message.receiver == me.username),
        )
    ).first()
    if greeting_sent:
        return False

    db.session.add(Message(sender=SYSTEM_SENDER, receiver=me.username, text=f"You matched with @{target.username}!"))
    db.session.add(Message(sender=SYSTEM_SENDER, receiver=target.username, text=f"You matched with @{me.username}!"))
    db.session.add(Message(sender=me.username, receiver=target.username, text=MATCH_GREETING))

    for recipient, other in ((me, target), (target, me)):
        create_notification(
            recipient=recipient.username,
            type='match',
            title="It's a Match!",
            body=f"You matched with @{other.username}!",
            sender=other.username,
            data={'chatUser': other.username}
        )
    return True


@app.route('/api/users/like/<username>', methods=['POST'])
@require_auth
def like_user(username):
    """Like a user; a mutual like is a match"""
    try:
        me = g.user
        if me.username == username:
            return jsonify({'error': 'Cannot like self'}), 400

        target = find_user_by_username(username)
        if not target:
            return jsonify({'error': 'Target user not found'}), 404

        add_to_set(me, 'liked_users', username)
        add_to_set(me, 'seen_users', username)

        # Bots like back instantly
        if is_bot_email(target.email) and add_to_set(target, 'liked_users', me.username):
            app.logger.info(f"[BOT-MATCH] Bot {target.username} auto-liked {me.username}")

        is_match = me.username in (target.liked_users or [])
        if is_match:
            record_match(me, target)
        else:
            create_notification(
                recipient=target.username,
                type='like',
                title='New like',
                body=f"@{me.username} liked your profile.",
                sender=me.username,
                data={'username': me.username}
            )

        db.session.commit()
        return jsonify({'success': True, 'match': is_match})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Like error: {e}")
        return jsonify({'success': False, 'error': 'Failed to like user'}), 500


@app.route('/api/users/pass/<username>', methods=['POST'])
@require_auth
def pass_user(username):
    """Mark a user as seen without liking"""
    try:
        add_to_set(g.user, 'seen_users', username)
        db.session.commit()
        return jsonify({'success': True})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Pass error: {e}")
        return jsonify({'success': False, 'error': 'Failed to pass user'}), 500


@app.route('/api/users/unlike/<username>', methods=['POST'])
@require_auth
def unlike_user(username):
    try:
        remove_from_set(g.user, 'liked_users', username)
        db.session.commit()
        return jsonify({'success': True})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Unlike error: {e}")
        return jsonify({'success': False, 'error': 'Failed to unlike user'}), 500


@app.route('/api/users/discover/reset', methods=['POST'])
@require_auth
def reset_discovery():
    """Forget passed users; liked and blocked users stay hidden"""
    try:
        me = g.user
        keep = set(me.liked_users or []) | set(me.blocked_users or [])
        before = len(me.seen_users or [])
        me.seen_users = [u for u in (me.seen_users or []) if u in keep]
        db.session.commit()

        app.logger.info(f"[RESET] {me.username}: {before} -> {len(me.seen_users)} seen users")
        return jsonify({'success': True, 'message': 'Discovery history reset.'})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Discover reset error: {e}")
        return jsonify({'success': False, 'error': 'Failed to reset discovery'}), 500


@app.route('/api/users/my-likes', methods=['GET'])
@require_auth
def get_my_likes():
    try:
        liked = list(g.user.liked_users or [])
        users = User.query.filter(User.username.in_(liked)).all() if liked else []
        return jsonify({'success': True, 'users': [u.card(*LIKE_CARD_FIELDS) for u in users]})

    except Exception as e:
        app.logger.error(f"My likes error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get likes'}), 500


@app.route('/api/users/liked-me', methods=['GET'])
@require_auth
def get_liked_me():
    try:
        my_username = g.user.username
        # JSON arrays are not portably queryable, filter in Python
        users = [u for u in User.query.all() if my_username in (u.liked_users or [])]
        return jsonify({'success': True, 'users': [u.card(*LIKE_CARD_FIELDS) for u in users]})

    except Exception as e:
        app.logger.error(f"Liked me error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get likes'}), 500


# ============================================================================
# API ROUTES - FOLLOW, BLOCK AND REPORT
# ============================================================================

@app.route('/api/users/follow/<username>', methods=['POST'])
@require_auth
def follow_user(username):
    try:
        me = g.user
        if me.username == username:
            return jsonify({'error': 'Cannot follow self'}), 400

        target = find_user_by_username(username)
        if not target:
            return jsonify({'error': 'Target user not found'}), 404

        add_to_set(me, 'following', target.id)
        add_to_set(target, 'followers', me.id)
        db.session.commit()

        return jsonify({'success': True, 'isFollowing': True})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Follow error: {e}")
        return jsonify({'success': False, 'error': 'Failed to follow user'}), 500


@app.route('/api/users/unfollow/<username>', methods=['POST'])
@require_auth
def unfollow_user(username):
    try:
        me = g.user
        target = find_user_by_username(username)
        if not target:
            return jsonify({'error': 'Target user not found'}), 404

        remove_from_set(me, 'following', target.id)
        remove_from_set(target, 'followers', me.id)
        db.session.commit()

        return jsonify({'success': True, 'isFollowing': False})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Unfollow error: {e}")
        return jsonify({'success': False, 'error': 'Failed to unfollow user'}), 500


@app.route('/api/users/block/<username>', methods=['POST'])
@require_auth
def block_user(username):
    try:
        me = g.user
        if me.username == username:
            return jsonify({'error': 'Cannot block self'}), 400

        add_to_set(me, 'blocked_users', username)
        db.session.commit()
        return jsonify({'success': True, 'message': f"User @{username} blocked."})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Block error: {e}")
        return jsonify({'success': False, 'error': 'Failed to block user'}), 500


@app.route('/api/users/unblock/<username>', methods=['POST'])
@require_auth
def unblock_user(username):
    try:
        remove_from_set(g.user, 'blocked_users', username)
        db.session.commit()
        return jsonify({'success': True, 'message': f"User @{username} unblocked."})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Unblock error: {e}")
        return jsonify({'success': False, 'error': 'Failed to unblock user'}), 500


@app.route('/api/users/report/<username>', methods=['POST'])
@require_auth
def report_user(username):
    payload = parse_request(ReportRequest, request.get_json(silent=True))

    try:
        me = g.user
        report = Report(
            reporter=me.username,
            reported=username,
            reason=payload.reason,
            description=payload.description
        )
        db.session.add(report)
        db.session.commit()

        app.logger.warning(
            f"User report: reporter={me.username} reported={username} reason={payload.reason!r}"
        )
        return jsonify({'success': True, 'message': 'Report submitted successfully.'})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Report error: {e}")
        return jsonify({'success': False, 'error': 'Failed to submit report'}), 500


# ============================================================================
# API ROUTES - VERIFICATION AND MEMBERSHIP
# ============================================================================

@app.route('/api/aesthetic/apply', methods=['POST'])
def aesthetic_apply():
    """Verification application; liveness is treated as passed and the user is verified"""
    payload = parse_request(ApplicationRequest, request.get_json(silent=True))
    if not payload.username or not payload.liveness_image:
        return jsonify({'error': 'Missing required fields'}), 400

    try:
        application = Application(
            username=payload.username,
            dob=payload.dob,
            liveness_image=payload.liveness_image
        )
        db.session.add(application)

        user = find_user_by_username(payload.username)
        if user:
            user.is_verified = True

        db.session.commit()
        return jsonify({
            'success': True,
            'message': 'Application successful. Account Verified.',
            'applicationId': application.id
        })

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Aesthetic apply error: {e}")
        return jsonify({'success': False, 'error': 'Server Error'}), 500


@app.route('/api/vault/subscribe', methods=['POST'])
def vault_subscribe():
    """Record a subscription and upgrade the user; no payment is processed"""
    payload = parse_request(SubscribeRequest, request.get_json(silent=True))
    if not payload.payment_token:
        return jsonify({'success': False, 'error': 'Invalid Payment Token'}), 400

    try:
        authorization = request.headers.get('Authorization')
        app.logger.info(f"Subscribe request: has_token={bool(authorization)} email_in_body={bool(payload.email)}")

        user = None
        if authorization and authorization.replace('Bearer ', '', 1).startswith(TOKEN_PREFIX):
            user = load_token_user(authorization)
        if not user and payload.email:
            user = User.query.filter_by(email=payload.email).first()

        member_id = f"VAULT-{random.randrange(10000)}"
        member = Member(
            member_id=member_id,
            email=payload.email or (user.email if user else 'anonymous@vault.com'),
            payment_token=payload.payment_token
        )
        db.session.add(member)

        if user:
            user.is_member = True
            user.is_verified = True

        db.session.commit()
        return jsonify({
            'success': True,
            'message': 'Subscription Active. Welcome to The Vault.',
            'transactionId': f"TXN-{int(time_module.time() * 1000)}",
            'memberId': member_id
        })

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Subscription error: {e}")
        return jsonify({'success': False, 'error': 'Database Subscription Error'}), 500


# ============================================================================
# API ROUTES - MESSAGES
# ============================================================================

@app.route('/api/messages/conversations', methods=['GET'])
@require_auth
def get_conversations():
    """One entry per partner with the latest message, newest first"""
    try:
        my_username = g.user.username
        messages = Message.query.filter(
            or_(Message.sender == my_username, Message.receiver == my_username)
        ).order_by(Message.created_at.desc()).all()

        last_messages = {}
        for msg in messages:
            partner = msg.receiver if msg.sender == my_username else msg.sender
            if partner not in last_messages:
                last_messages[partner] = msg

        conversations = []
        for partner, msg in last_messages.items():
            if partner == ADMIN_SENDER:
                conversations.append({
                    'username': ADMIN_SENDER,
                    'avatar': ADMIN_AVATAR,
                    'lastMessage': msg.text,
                    'isAdmin': True
                })
                continue

            user = find_user_by_username(partner)
            if user:
                conversations.append({
                    'username': user.username,
                    'avatar': user.avatar,
                    'lastMessage': msg.text
                })

        return jsonify({'success': True, 'conversations': conversations})

    except Exception as e:
        app.logger.error(f"Conversations error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get conversations'}), 500


@app.route('/api/messages/<other_user>', methods=['GET'])
@require_auth
def get_message_history(other_user):
    try:
        other_user = other_user.strip()
        my_username = g.user.username
        messages = Message.query.filter(or_(
            (Message.sender == my_username) & (Message.receiver == other_user),
            (Message.sender == other_user) & (Message.receiver == my_username),
        )).order_by(Message.created_at.asc()).all()

        return jsonify({'success': True, 'messages': [m.to_dict() for m in messages]})

    except Exception as e:
        app.logger.error(f"Message history error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get messages'}), 500


@app.route('/api/messages', methods=['POST'])
@require_auth
def send_message():
    """Send a direct message; only VIPs may open a new conversation"""
    payload = parse_request(SendMessageRequest, request.get_json(silent=True))

    try:
        me = g.user
        receiver = payload.receiver
        receiver_user = find_user_by_username(receiver)
        if not receiver_user:
            return jsonify({'error': 'Receiver not found'}), 404

        if receiver in (me.blocked_users or []):
            return jsonify({'error': 'You have blocked this user. Unblock to send message.'}), 403
        if me.username in (receiver_user.blocked_users or []):
            return jsonify({'error': 'You are blocked by this user.'}), 403

        if not me.is_member and not conversation_exists(me.username, receiver):
            return jsonify({'success': False, 'error': 'Only VIP members can start new conversations.'}), 403

        if not payload.text.strip():
            return jsonify({'error': 'Message text required'}), 400

        message = Message(sender=me.username, receiver=receiver, text=payload.text)
        db.session.add(message)
        create_notification(
            recipient=receiver,
            type='message',
            title=me.full_name or me.username,
            body=truncate(payload.text, 50),
            sender=me.username,
            data={'chatUser': me.username}
        )
        db.session.commit()

        return jsonify({'success': True, 'message': message.to_dict()})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Send message error: {e}")
        return jsonify({'success': False, 'error': 'Failed to send message'}), 500


@app.route('/api/messages/<message_id>', methods=['DELETE'])
@require_auth
def delete_message(message_id):
    try:
        message = db.session.get(Message, message_id)
        if not message:
            return jsonify({'error': 'Message not found'}), 404
        if message.sender != g.user.username:
            return jsonify({'error': 'You can only delete your own messages'}), 403

        db.session.delete(message)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Message deleted'})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Delete message error: {e}")
        return jsonify({'success': False, 'error': 'Failed to delete message'}), 500


# ============================================================================
# API ROUTES - NOTIFICATIONS
# ============================================================================

@app.route('/api/notifications', methods=['GET'])
@require_auth
def get_notifications():
    try:
        notifications = Notification.query.filter_by(recipient=g.user.username).order_by(
            Notification.created_at.desc()
        ).limit(50).all()

        unread_count = sum(1 for n in notifications if not n.is_read)
        return jsonify({
            'success': True,
            'notifications': [n.to_dict() for n in notifications],
            'unreadCount': unread_count
        })

    except Exception as e:
        app.logger.error(f"Get notifications error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get notifications'}), 500


@app.route('/api/notifications/read', methods=['PUT'])
@require_auth
def mark_notifications_read():
    payload = parse_request(MarkReadRequest, request.get_json(silent=True))

    try:
        my_username = g.user.username
        if payload.mark_all:
            Notification.query.filter_by(recipient=my_username, is_read=False).update({'is_read': True})
        elif payload.notification_id:
            notification = db.session.get(Notification, payload.notification_id)
            if notification and notification.recipient == my_username:
                notification.is_read = True

        db.session.commit()
        return jsonify({'success': True})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Mark notifications read error: {e}")
        return jsonify({'success': False, 'error': 'Failed to update notifications'}), 500


@app.route('/api/notifications/<notification_id>', methods=['DELETE'])
@require_auth
def delete_notification(notification_id):
    try:
        notification = db.session.get(Notification, notification_id)
        if notification and notification.recipient == g.user.username:
            db.session.delete(notification)
            db.session.commit()
        return jsonify({'success': True})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Delete notification error: {e}")
        return jsonify({'success': False, 'error': 'Failed to delete notification'}), 500


@app.route('/api/notifications', methods=['DELETE'])
@require_auth
def delete_all_notifications():
    try:
        Notification.query.filter_by(recipient=g.user.username).delete()
        db.session.commit()
        return jsonify({'success': True})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Delete notifications error: {e}")
        return jsonify({'success': False, 'error': 'Failed to delete notifications'}), 500


# ============================================================================
# API ROUTES - ADMIN CONSOLE
# ============================================================================

ADMIN_LIST_FIELDS = ('_id', 'username', 'email', 'fullName', 'avatar', 'isMember',
                     'isVerified', 'isAnonymous', 'createdAt')


@app.route('/api/admin/users', methods=['GET'])
@require_admin
def admin_get_users():
    """All users for the admin console, newest first"""
    try:
        users = User.query.order_by(User.created_at.desc()).all()
        return jsonify({'success': True, 'users': [u.card(*ADMIN_LIST_FIELDS) for u in users]})

    except Exception as e:
        app.logger.error(f"Admin get users error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get users'}), 500


@app.route('/api/admin/users', methods=['POST'])
@app.route('/api/admin/create-user', methods=['POST'])
@require_admin
def admin_create_user():
    try:
        payload = parse_request(AdminCreateUserRequest, request.get_json(silent=True))
    except ValidationError:
        return jsonify({'success': False, 'error': 'Username and Password required'}), 400

    try:
        email = payload.email or f"{''.join(payload.username.lower().split())}@thevault.local"

        if find_user_by_username(payload.username):
            return jsonify({'success': False, 'error': 'Username already exists'}), 400
        if User.query.filter_by(email=email).first():
            return jsonify({'success': False, 'error': 'Email already exists'}), 400

        user = User(
            username=payload.username,
            email=email,
            password_hash=hash_password(payload.password),
            full_name=(payload.full_name or '').strip(),
            avatar=app.config['DEFAULT_AVATAR'],
            is_member=payload.is_member,
            is_verified=payload.is_verified
        )
        db.session.add(user)
        log_admin_action('user_creation', target=payload.username)
        db.session.commit()

        return jsonify({'success': True, 'user': user.to_dict(include_private=True)})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Admin create user error: {e}")
        return jsonify({'success': False, 'error': 'Failed to create user'}), 500


@app.route('/api/admin/users/<ident>', methods=['PUT'])
@require_admin
def admin_update_user(ident):
    payload = parse_request(AdminUpdateUserRequest, request.get_json(silent=True))

    try:
        user = find_user_by_ident(ident)
        if not user:
            return jsonify({'success': False, 'error': 'User not found'}), 404

        new_username = None
        if payload.username is not None:
            new_username = payload.username.strip()
            if not new_username:
                return jsonify({'success': False, 'error': 'Username cannot be blank'}), 400

        if new_username and new_username != user.username:
            if find_user_by_username(new_username):
                return jsonify({'success': False, 'error': 'Username taken'}), 400
        if payload.email and payload.email != user.email:
            if User.query.filter_by(email=payload.email).first():
                return jsonify({'success': False, 'error': 'Email taken'}), 400

        changed = []
        if new_username and new_username != user.username:
            user.username = new_username
            user.last_username_change = datetime.utcnow()
            changed.append('username')
        if payload.email:
            user.email = payload.email
            changed.append('email')
        for field in ('full_name', 'is_member', 'is_verified'):
            value = getattr(payload, field)
            if value is not None:
                setattr(user, field, value)
                changed.append(field)
        if payload.details is not None:
            user.details = normalize_details(payload.details)
            changed.append('details')

        log_admin_action('user_update', target=user.username, details=f"Changed {', '.join(changed) or 'nothing'}")
        db.session.commit()

        return jsonify({'success': True, 'user': user.to_dict(include_private=True)})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Admin update user error: {e}")
        return jsonify({'success': False, 'error': 'Failed to update user'}), 500


@app.route('/api/admin/users/<ident>', methods=['DELETE'])
@require_admin
def admin_delete_user(ident):
    try:
        user = find_user_by_ident(ident)
        if not user:
            return jsonify({'success': False, 'error': 'User not found'}), 404
        if user.id == g.user.id:
            return jsonify({'success': False, 'error': 'Cannot delete self'}), 400

        log_admin_action('user_deletion', target=user.username, details=f"Deleted user {user.email}")
        db.session.delete(user)
        db.session.commit()

        return jsonify({'success': True, 'message': 'User deleted'})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Admin delete user error: {e}")
        return jsonify({'success': False, 'error': 'Failed to delete user'}), 500


@app.route('/api/admin/upgrade/<username>', methods=['POST'])
@require_admin
def admin_upgrade_user(username):
    """Make a user a verified VIP member"""
    try:
        user = find_user_by_username(username)
        if not user:
            return jsonify({'success': False, 'error': 'User not found'}), 404

        user.is_member = True
        user.is_verified = True
        log_admin_action('upgrade', target=username)
        db.session.commit()

        return jsonify({'success': True, 'message': f"User {username} is now a VIP Member & Verified."})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Admin upgrade error: {e}")
        return jsonify({'success': False, 'error': 'Failed to upgrade user'}), 500


@app.route('/api/admin/dashboard-stats', methods=['GET'])
@require_admin
def admin_dashboard_stats():
    try:
        recent = User.query.order_by(User.created_at.desc()).limit(20).all()
        stats = {
            'totalUsers': User.query.count(),
            'vipUsers': User.query.filter_by(is_member=True).count(),
            'verifiedUsers': User.query.filter_by(is_verified=True).count(),
            'anonymousUsers': User.query.filter_by(is_anonymous=True).count(),
            'recentUsers': [u.card('username', 'fullName', 'avatar', 'createdAt') for u in recent]
        }
        return jsonify({'success': True, 'stats': stats})

    except Exception as e:
        app.logger.error(f"Admin stats error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get statistics'}), 500


BULK_FLAG_UPDATES = {
    'makeVip': ('is_member', True),
    'removeVip': ('is_member', False),
    'verify': ('is_verified', True),
    'unverify': ('is_verified', False),
}


@app.route('/api/admin/bulk-action', methods=['POST'])
@require_admin
def admin_bulk_action():
    """Apply one action to many users; returns how many were changed"""
    try:
        payload = parse_request(BulkActionRequest, request.get_json(silent=True))
    except ValidationError as e:
        first = e.errors()[0]
        if first['loc'] == ('usernames',) and first['type'] in ('missing', 'too_short'):
            error = 'No users selected'
        elif first['loc'] == ('action',) and first['type'] in ('missing', 'literal_error'):
            error = 'Unknown action'
        else:
            error = first_error_message(e)
        return jsonify({'success': False, 'error': error}), 400

    usernames, action = payload.usernames, payload.action

    try:
        users = User.query.filter(User.username.in_(usernames)).all()
        affected = 0

        if action == 'delete':
            for user in users:
                if user.id == g.user.id:
                    continue
                db.session.delete(user)
                affected += 1
        else:
            field, value = BULK_FLAG_UPDATES[action]
            for user in users:
                if getattr(user, field) != value:
                    setattr(user, field, value)
                    affected += 1

        log_admin_action(f"bulk_{action}", details=f"{affected} of {len(usernames)} users affected")
        db.session.commit()

        return jsonify({'success': True, 'affected': affected})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Admin bulk action error: {e}")
        return jsonify({'success': False, 'error': 'Bulk action failed'}), 500


@app.route('/api/admin/send-message', methods=['POST'])
@require_admin
def admin_send_message():
    """Broadcast a message (and notification) to selected users or everyone"""
    try:
        payload = parse_request(BroadcastRequest, request.get_json(silent=True))
    except ValidationError as e:
        first = e.errors()[0]
        if first['loc'] == ('message',) and first['type'] in ('missing', 'string_too_short'):
            error = 'Message required'
        else:
            error = first_error_message(e)
        return jsonify({'success': False, 'error': error}), 400

    try:
        if payload.recipients == 'all':
            targets = [username for (username,) in db.session.query(User.username).all()]
        else:
            targets = list(payload.recipients)

        app.logger.info(f"[ADMIN] Sending message to {len(targets)} users")

        body = truncate(payload.message, 100)
        for username in targets:
            db.session.add(Message(sender=ADMIN_SENDER, receiver=username, text=payload.message))
            create_notification(
                recipient=username,
                type='admin_broadcast',
                title=ADMIN_SENDER,
                body=body,
                sender='Admin',
                data={'chatUser': ADMIN_SENDER}
            )

        log_admin_action('broadcast', details=f"{len(targets)} recipients")
        db.session.commit()

        return jsonify({'success': True, 'count': len(targets)})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Admin send message error: {e}")
        return jsonify({'success': False, 'error': 'Failed to send message'}), 500


def delete_bots():
    bots = User.query.filter(User.email.like(f"%{BOT_EMAIL_DOMAIN}")).all()
    for bot in bots:
        db.session.delete(bot)
    return len(bots)


@app.route('/api/admin/clear-bots', methods=['POST'])
@require_admin
def admin_clear_bots():
    try:
        removed = delete_bots()
        log_admin_action('clear_bots', details=f"{removed} bots removed")
        db.session.commit()
        return jsonify({'success': True, 'message': 'All bots removed.', 'removed': removed})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Admin clear bots error: {e}")
        return jsonify({'success': False, 'error': 'Failed to remove bots'}), 500


@app.route('/api/admin/seed', methods=['POST'])
@require_admin
def admin_seed_bots():
    """Replace all bots with a freshly generated set"""
    count = request.args.get('count', 100, type=int)

    try:
        delete_bots()
        db.session.flush()

        # One hash shared by every bot keeps seeding fast
        password_hash = hash_password(BOT_PASSWORD)
        bots = generate_bots(count)
        for bot in bots:
            db.session.add(User(password_hash=password_hash, **bot))

        log_admin_action('seed_bots', details=f"{len(bots)} bots seeded")
        db.session.commit()

        return jsonify({'success': True, 'message': f"{len(bots)} Female Bots seeded", 'count': len(bots)})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Admin seed error: {e}")
        return jsonify({'success': False, 'error': 'Failed to seed bots'}), 500


@app.route('/api/admin/reset-all-interactions', methods=['POST'])
@require_admin
def admin_reset_interactions():
    """Clear every user's seen and liked lists"""
    try:
        users = User.query.all()
        for user in users:
            user.seen_users = []
            user.liked_users = []

        log_admin_action('reset_interactions', details=f"{len(users)} users reset")
        db.session.commit()
        return jsonify({'success': True, 'message': 'All user interactions (seen/liked) reset.'})

    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Admin reset interactions error: {e}")
        return jsonify({'success': False, 'error': 'Failed to reset interactions'}), 500


@app.route('/api/admin/reports', methods=['GET'])
@require_admin
def admin_get_reports():
    try:
        reports, page, per_page = paginate_query(Report.query.order_by(Report.created_at.desc()))
        return jsonify({
            'success': True,
            'reports': [r.to_dict() for r in reports.items],
            'total': reports.total,
            'pages': reports.pages,
            'current_page': page,
            'per_page': per_page
        })

    except Exception as e:
        app.logger.error(f"Admin get reports error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get reports'}), 500


@app.route('/api/admin/logs', methods=['GET'])
@require_admin
def admin_get_logs():
    """Get admin action logs"""
    try:
        logs, page, per_page = paginate_query(
            AdminActionLog.query.order_by(AdminActionLog.timestamp.desc(), AdminActionLog.id.desc())
        )
        return jsonify({
            'success': True,
            'logs': [log.to_dict() for log in logs.items],
            'total': logs.total,
            'pages': logs.pages,
            'current_page': page,
            'per_page': per_page
        })

    except Exception as e:
        app.logger.error(f"Admin get logs error: {e}")
        return jsonify({'success': False, 'error': 'Failed to get logs'}), 500


# ============================================================================
# GLOBAL JSON ERROR HANDLERS
# ============================================================================

@app.errorhandler(ValidationError)
def validation_error(error):
    return jsonify({'success': False, 'error': first_error_message(error)}), 400


@app.errorhandler(404)
def not_found_error(error):
    return jsonify({'success': False, 'error': 'Endpoint not found'}), 404


@app.errorhandler(405)
def method_not_allowed_error(error):
    return jsonify({'success': False, 'error': 'Method not allowed'}), 405


@app.errorhandler(Exception)
def unhandled_error(error):
    """Last-resort handler so clients always get JSON"""
    if isinstance(error, HTTPException):
        return jsonify({'success': False, 'error': error.description}), error.code

    db.session.rollback()
    app.logger.exception(f"[GLOBAL ERROR] {error}")
    return jsonify({'success': False, 'error': 'Something broke!', 'details': str(error)}), 500


if __name__ == '__main__':
    # Only for local development testing
    port = int(os.environ.get('PORT', 5000))
    app.run(debug=True, host='0.0.0.0', port=port)
