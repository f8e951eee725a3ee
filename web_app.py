#!/usr/bin/env python3
"""
Flask web application for the ANRSI content backend.
Features: security headers, rate limiting, JWT authentication, role-guarded
content administration and the two JSON import endpoints.
"""

import logging
import os
import tempfile
from datetime import datetime, timedelta
from functools import wraps
from typing import Callable, Optional

from flask import Flask, g, jsonify, request, send_from_directory
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from anrsi import payloads
from anrsi.auth.passwords import hash_password
from anrsi.auth.service import AuthService, public_user
from anrsi.auth.tokens import TokenService
from anrsi.config import Settings
from anrsi.errors import AuthenticationError, DatabaseError, DuplicateIdentityError, SourceFileError, ValidationError
from anrsi.importing.announcements import AnnouncementImporter
from anrsi.importing.articles import ArticleImporter
from anrsi.importing.assets import AssetLocalizer
from anrsi.seed import ensure_default_state
from anrsi.storage.content_store import PAGE_TYPES, ContentStore
from cors_config import configure_cors

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DATASTORE_NOT_CONFIGURED = "Datastore not configured"


def open_store(settings: Settings) -> Optional[ContentStore]:
    """Open the content store, or return None when running without one."""
    if not settings.datastore_configured:
        logger.warning("DB_PATH is empty; running without a datastore")
        return None
    try:
        return ContentStore(settings.db_path)
    except DatabaseError as e:
        logger.error(f"Could not open datastore: {e}")
        return None


def add_security_headers(response):
    """Add security headers to every response"""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-XSS-Protection'] = '1; mode=block'
    response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    response.headers['Content-Security-Policy'] = "default-src 'self'; img-src 'self' data: https:"
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'
    return response


def _bearer_token() -> Optional[str]:
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[7:].strip() or None
    return None


def _int_arg(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ContentStore] = None,
    localizer_factory: Optional[Callable[[], AssetLocalizer]] = None,
) -> Flask:
    settings = settings or Settings.from_env()
    if store is None:
        store = open_store(settings)
    tokens = TokenService(settings.jwt_secret, settings.jwt_expires_seconds)
    auth = AuthService(store, tokens) if store is not None else None

    if localizer_factory is None:
        def localizer_factory():
            # One localizer per run keeps downloads deduplicated within that run only
            return AssetLocalizer(
                settings.upload_dir,
                context_path=settings.context_path,
                connect_timeout=settings.image_connect_timeout,
                read_timeout=settings.image_read_timeout,
            )

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = 20 * 1024 * 1024
    app.json.sort_keys = False
    app.json.ensure_ascii = False
    configure_cors(app, settings.cors_origins)
    app.after_request(add_security_headers)

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=["1000 per day", "200 per hour"],
        storage_uri="memory://",
    )
    limiter.init_app(app)

    app.extensions['anrsi'] = {'settings': settings, 'store': store, 'auth': auth}

    # ------------------------------------------------------------------
    # Decorators
    # ------------------------------------------------------------------

    def require_store(f):
        """Answer 503 when the app runs without a datastore"""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if store is None:
                return jsonify({'success': False, 'error': DATASTORE_NOT_CONFIGURED}), 503
            return f(*args, **kwargs)
        return decorated_function

    def require_auth(f):
        """Decorator to require a valid bearer token"""
        @wraps(f)
        @require_store
        def decorated_function(*args, **kwargs):
            try:
                g.current_user = auth.current_user(_bearer_token())
            except AuthenticationError as e:
                return jsonify({'success': False, 'error': str(e)}), 401
            return f(*args, **kwargs)
        return decorated_function

    def require_role(*roles):
        def decorator(f):
            @wraps(f)
            @require_auth
            def decorated_function(*args, **kwargs):
                if g.current_user.get('role') not in roles:
                    return jsonify({'success': False, 'error': 'Unauthorized access'}), 403
                return f(*args, **kwargs)
            return decorated_function
        return decorator

    def handle_database_error(f):
        """Decorator for handling database errors gracefully"""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except ValidationError as e:
                return jsonify({'success': False, 'error': str(e)}), 400
            except LookupError as e:
                return jsonify({'success': False, 'error': str(e)}), 404
            except DuplicateIdentityError as e:
                logger.warning(f"Duplicate identity in {f.__name__}: {e}")
                return jsonify({'success': False, 'error': str(e)}), 409
            except DatabaseError as e:
                logger.error(f"Database error in {f.__name__}: {e}")
                return jsonify({'success': False, 'error': 'Database temporarily unavailable', 'retry': True}), 503
        return decorated_function

    # ------------------------------------------------------------------
    # Health and authentication
    # ------------------------------------------------------------------

    @app.route('/api/health')
    @limiter.exempt
    def health_check():
        """API health check endpoint"""
        return jsonify({
            'status': 'healthy' if store is not None else 'degraded',
            'datastore': store is not None,
            'timestamp': datetime.now().isoformat(),
            'version': '1.0.0',
        })

    @app.route('/api/auth/login', methods=['POST'])
    @limiter.limit("10 per minute")
    @require_store
    @handle_database_error
    def login():
        """User login endpoint"""
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'success': False, 'error': 'No data provided'}), 400

        username = str(data.get('username') or '').strip()
        password = str(data.get('password') or '')
        if not username or not password:
            return jsonify({'success': False, 'error': 'Username and password required'}), 400

        try:
            result = auth.authenticate(username, password)
        except AuthenticationError:
            return jsonify({'success': False, 'error': 'Invalid credentials'}), 401
        return jsonify({'success': True, **result})

    @app.route('/api/auth/me')
    @require_auth
    def me():
        return jsonify({'success': True, 'user': public_user(g.current_user)})

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    @app.route('/api/articles')
    @limiter.limit("60 per minute")
    @require_store
    @handle_database_error
    def list_articles():
        articles = store.list_articles(published_only=True, limit=_int_arg('limit', 100))
        return jsonify({'success': True, 'articles': articles, 'count': len(articles)})

    @app.route('/api/articles/admin/all')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def list_all_articles():
        articles = store.list_articles(published_only=False, limit=_int_arg('limit', 500))
        return jsonify({'success': True, 'articles': articles, 'count': len(articles)})

    @app.route('/api/articles/featured')
    @require_store
    @handle_database_error
    def featured_articles():
        articles = store.list_articles(published_only=True, featured=True, limit=_int_arg('limit', 10))
        return jsonify({'success': True, 'articles': articles, 'count': len(articles)})

    @app.route('/api/articles/recent')
    @require_store
    @handle_database_error
    def recent_articles():
        articles = store.list_articles(published_only=True, limit=10)
        return jsonify({'success': True, 'articles': articles, 'count': len(articles)})

    @app.route('/api/articles/search')
    @limiter.limit("30 per minute")
    @require_store
    @handle_database_error
    def search_articles():
        term = (request.args.get('q') or '').strip()
        if not term:
            return jsonify({'success': False, 'error': 'Search query required'}), 400
        articles = store.search_articles(term, limit=_int_arg('limit', 50))
        return jsonify({'success': True, 'articles': articles, 'count': len(articles)})

    @app.route('/api/articles/<int:article_id>')
    @require_store
    @handle_database_error
    def get_article(article_id):
        article = store.get_article(article_id)
        if not article or not article['published']:
            return jsonify({'success': False, 'error': 'Article not found'}), 404
        return jsonify({'success': True, 'article': article})

    @app.route('/api/articles', methods=['POST'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def create_article():
        values = payloads.article_create(payloads.require_body(request.get_json(silent=True)))
        translations = values.pop('translations')
        article_id = store.create_article(translations, **values)
        logger.info(f"Article {article_id} created by {g.current_user['username']}")
        return jsonify({'success': True, 'article': store.get_article(article_id)}), 201

    @app.route('/api/articles/<int:article_id>', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def update_article(article_id):
        fields, translations = payloads.article_update(payloads.require_body(request.get_json(silent=True)))
        if not store.update_article(article_id, fields, translations):
            return jsonify({'success': False, 'error': 'Article not found'}), 404
        logger.info(f"Article {article_id} updated by {g.current_user['username']}")
        return jsonify({'success': True, 'article': store.get_article(article_id)})

    @app.route('/api/articles/<int:article_id>', methods=['DELETE'])
    @require_role('ADMIN')
    @handle_database_error
    def delete_article(article_id):
        if not store.delete_article(article_id):
            return jsonify({'success': False, 'error': 'Article not found'}), 404
        logger.info(f"Article {article_id} deleted by {g.current_user['username']}")
        return jsonify({'success': True, 'message': 'Article deleted'})

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    @app.route('/api/pages')
    @limiter.limit("60 per minute")
    @require_store
    @handle_database_error
    def list_pages():
        pages = store.list_pages(published_only=True)
        return jsonify({'success': True, 'pages': pages, 'count': len(pages)})

    def _visible_page(page):
        if not page or not page['isPublished'] or not page['isActive']:
            return jsonify({'success': False, 'error': 'Page not found'}), 404
        return jsonify({'success': True, 'page': page})

    def _page_or_404(page):
        if not page:
            return jsonify({'success': False, 'error': 'Page not found'}), 404
        return jsonify({'success': True, 'page': page})

    @app.route('/api/pages/<int:page_id>')
    @require_store
    @handle_database_error
    def get_page(page_id):
        return _visible_page(store.get_page(page_id))

    @app.route('/api/pages/slug/<slug>')
    @require_store
    @handle_database_error
    def get_page_by_slug(slug):
        return _visible_page(store.get_page_by_slug(slug))

    @app.route('/api/pages/admin/all')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def list_all_pages():
        pages = store.list_pages(published_only=False)
        return jsonify({'success': True, 'pages': pages, 'count': len(pages)})

    @app.route('/api/pages/admin/<int:page_id>')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def admin_get_page(page_id):
        return _page_or_404(store.get_page(page_id))

    @app.route('/api/pages/admin/slug/<slug>')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def admin_get_page_by_slug(slug):
        return _page_or_404(store.get_page_by_slug(slug))

    @app.route('/api/pages/admin/slugs')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def list_page_slugs():
        return jsonify({'success': True, 'slugs': store.list_page_slugs()})

    @app.route('/api/pages/admin/types')
    @require_role('ADMIN', 'EDITOR')
    def list_page_types():
        return jsonify({'success': True, 'types': list(PAGE_TYPES)})

    @app.route('/api/pages', methods=['POST'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def create_page():
        values = payloads.page_create(payloads.require_body(request.get_json(silent=True)))
        page_id = store.create_page(values['slug'], values['fields'], values['translations'])
        logger.info(f"Page {values['slug']} created by {g.current_user['username']}")
        return jsonify({'success': True, 'page': store.get_page(page_id)}), 201

    @app.route('/api/pages/<int:page_id>', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def update_page(page_id):
        values = payloads.page_update(payloads.require_body(request.get_json(silent=True)))
        if not store.update_page(page_id, values['fields'], values['translations']):
            return jsonify({'success': False, 'error': 'Page not found'}), 404
        return _page_or_404(store.get_page(page_id))

    @app.route('/api/pages/<int:page_id>', methods=['DELETE'])
    @require_role('ADMIN')
    @handle_database_error
    def delete_page(page_id):
        if not store.delete_page(page_id):
            return jsonify({'success': False, 'error': 'Page not found'}), 404
        logger.info(f"Page {page_id} deleted by {g.current_user['username']}")
        return jsonify({'success': True, 'message': 'Page deleted'})

    @app.route('/api/pages/<int:page_id>/publish', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def publish_page(page_id):
        if not store.set_page_published(page_id, True):
            return jsonify({'success': False, 'error': 'Page not found'}), 404
        return _page_or_404(store.get_page(page_id))

    @app.route('/api/pages/<int:page_id>/unpublish', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def unpublish_page(page_id):
        if not store.set_page_published(page_id, False):
            return jsonify({'success': False, 'error': 'Page not found'}), 404
        return _page_or_404(store.get_page(page_id))

    @app.route('/api/pages/<int:page_id>/toggle', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def toggle_page(page_id):
        if not store.toggle_page_active(page_id):
            return jsonify({'success': False, 'error': 'Page not found'}), 404
        return _page_or_404(store.get_page(page_id))

    # ------------------------------------------------------------------
    # Videos
    # ------------------------------------------------------------------

    @app.route('/api/videos')
    @require_store
    @handle_database_error
    def list_videos():
        videos = store.list_videos()
        return jsonify({'success': True, 'videos': videos, 'count': len(videos)})

    @app.route('/api/videos/<int:video_id>')
    @require_store
    @handle_database_error
    def get_video(video_id):
        video = store.get_video(video_id)
        if not video:
            return jsonify({'success': False, 'error': f'Video not found with id: {video_id}'}), 404
        return jsonify({'success': True, 'video': video})

    @app.route('/api/videos', methods=['POST'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def create_video():
        video_id = store.create_video(**payloads.video(payloads.require_body(request.get_json(silent=True))))
        return jsonify({'success': True, 'video': store.get_video(video_id)}), 201

    @app.route('/api/videos/<int:video_id>', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def update_video(video_id):
        if not store.update_video(video_id, **payloads.video(payloads.require_body(request.get_json(silent=True)))):
            return jsonify({'success': False, 'error': f'Video not found with id: {video_id}'}), 404
        return jsonify({'success': True, 'video': store.get_video(video_id)})

    @app.route('/api/videos/<int:video_id>', methods=['DELETE'])
    @require_role('ADMIN')
    @handle_database_error
    def delete_video(video_id):
        if not store.delete_video(video_id):
            return jsonify({'success': False, 'error': f'Video not found with id: {video_id}'}), 404
        return jsonify({'success': True, 'message': 'Video deleted'})

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @app.route('/api/statistics')
    @require_store
    @handle_database_error
    def get_statistics():
        return jsonify({'success': True, 'statistics': store.get_statistics()})

    @app.route('/api/statistics', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def update_statistics():
        values = payloads.statistics(payloads.require_body(request.get_json(silent=True)))
        return jsonify({'success': True, 'statistics': store.update_statistics(values)})

    # ------------------------------------------------------------------
    # Contact messages
    # ------------------------------------------------------------------

    @app.route('/api/contact', methods=['POST'])
    @limiter.limit("5 per minute")
    @require_store
    @handle_database_error
    def submit_contact_message():
        values = payloads.contact_message(payloads.require_body(request.get_json(silent=True)))
        message_id = store.create_contact_message(**values)
        logger.info(f"Contact message {message_id} received")
        return jsonify({'success': True, 'message': store.get_contact_message(message_id)}), 201

    @app.route('/api/contact')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def list_contact_messages():
        messages = store.list_contact_messages()
        return jsonify({'success': True, 'messages': messages, 'count': len(messages)})

    @app.route('/api/contact/unread')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def list_unread_contact_messages():
        messages = store.list_contact_messages(unread_only=True)
        return jsonify({'success': True, 'messages': messages, 'count': len(messages)})

    @app.route('/api/contact/unread/count')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def count_unread_contact_messages():
        return jsonify({'success': True, 'count': store.count_unread_contact_messages()})

    @app.route('/api/contact/<int:message_id>')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def get_contact_message(message_id):
        message = store.get_contact_message(message_id)
        if not message:
            return jsonify({'success': False, 'error': f'Contact message not found with id: {message_id}'}), 404
        return jsonify({'success': True, 'message': message})

    @app.route('/api/contact/<int:message_id>/read', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def mark_contact_message_read(message_id):
        if not store.mark_contact_message_read(message_id):
            return jsonify({'success': False, 'error': f'Contact message not found with id: {message_id}'}), 404
        return jsonify({'success': True, 'message': store.get_contact_message(message_id)})

    @app.route('/api/contact/<int:message_id>', methods=['DELETE'])
    @require_role('ADMIN')
    @handle_database_error
    def delete_contact_message(message_id):
        if not store.delete_contact_message(message_id):
            return jsonify({'success': False, 'error': f'Contact message not found with id: {message_id}'}), 404
        return jsonify({'success': True, 'message': 'Contact message deleted'})

    # ------------------------------------------------------------------
    # Useful websites
    # ------------------------------------------------------------------

    @app.route('/api/useful-websites')
    @require_store
    @handle_database_error
    def list_websites():
        websites = store.list_websites()
        return jsonify({'success': True, 'websites': websites, 'count': len(websites)})

    @app.route('/api/useful-websites/<int:website_id>')
    @require_store
    @handle_database_error
    def get_website(website_id):
        website = store.get_website(website_id)
        if not website:
            return jsonify({'success': False, 'error': f'Useful website not found with id: {website_id}'}), 404
        return jsonify({'success': True, 'website': website})

    @app.route('/api/useful-websites', methods=['POST'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def create_website():
        website_id = store.create_website(**payloads.website(payloads.require_body(request.get_json(silent=True))))
        return jsonify({'success': True, 'website': store.get_website(website_id)}), 201

    @app.route('/api/useful-websites/reorder', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def reorder_websites():
        store.reorder_websites(payloads.website_order(payloads.require_body(request.get_json(silent=True))))
        return jsonify({'success': True, 'websites': store.list_websites()})

    @app.route('/api/useful-websites/<int:website_id>', methods=['PUT'])
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def update_website(website_id):
        values = payloads.website(payloads.require_body(request.get_json(silent=True)))
        if not store.update_website(website_id, **values):
            return jsonify({'success': False, 'error': f'Useful website not found with id: {website_id}'}), 404
        return jsonify({'success': True, 'website': store.get_website(website_id)})

    @app.route('/api/useful-websites/<int:website_id>', methods=['DELETE'])
    @require_role('ADMIN')
    @handle_database_error
    def delete_website(website_id):
        if not store.delete_website(website_id):
            return jsonify({'success': False, 'error': f'Useful website not found with id: {website_id}'}), 404
        return jsonify({'success': True, 'message': 'Useful website deleted'})

    # ------------------------------------------------------------------
    # Users (admin only)
    # ------------------------------------------------------------------

    def _user_or_404(user_id):
        user = store.get_user(user_id)
        if not user:
            return jsonify({'success': False, 'error': f'User not found with id: {user_id}'}), 404
        return jsonify({'success': True, 'user': public_user(user)})

    @app.route('/api/users')
    @require_role('ADMIN')
    @handle_database_error
    def list_users():
        users = [public_user(u) for u in store.list_users()]
        return jsonify({'success': True, 'users': users, 'count': len(users)})

    @app.route('/api/users/<int:user_id>')
    @require_role('ADMIN')
    @handle_database_error
    def get_user(user_id):
        return _user_or_404(user_id)

    @app.route('/api/users', methods=['POST'])
    @require_role('ADMIN')
    @handle_database_error
    def create_user():
        values = payloads.user_create(payloads.require_body(request.get_json(silent=True)))
        password_hash, salt = hash_password(values.pop('password'))
        user_id = store.create_user(password_hash=password_hash, salt=salt, **values)
        logger.info(f"User {values['username']} created by {g.current_user['username']}")
        return jsonify({'success': True, 'user': public_user(store.get_user(user_id))}), 201

    @app.route('/api/users/<int:user_id>', methods=['PUT'])
    @require_role('ADMIN')
    @handle_database_error
    def update_user(user_id):
        values = payloads.user_update(payloads.require_body(request.get_json(silent=True)))
        password = values.pop('password')
        if password:
            values['password_hash'], values['salt'] = hash_password(password)
        if not store.update_user(user_id, values):
            return jsonify({'success': False, 'error': f'User not found with id: {user_id}'}), 404
        logger.info(f"User {user_id} updated by {g.current_user['username']}")
        return _user_or_404(user_id)

    @app.route('/api/users/<int:user_id>', methods=['DELETE'])
    @require_role('ADMIN')
    @handle_database_error
    def delete_user(user_id):
        if not store.delete_user(user_id):
            return jsonify({'success': False, 'error': f'User not found with id: {user_id}'}), 404
        logger.info(f"User {user_id} deleted by {g.current_user['username']}")
        return jsonify({'success': True, 'message': 'User deleted'})

    @app.route('/api/users/<int:user_id>/toggle', methods=['PUT'])
    @require_role('ADMIN')
    @handle_database_error
    def toggle_user(user_id):
        if not store.toggle_user_active(user_id):
            return jsonify({'success': False, 'error': f'User not found with id: {user_id}'}), 404
        return _user_or_404(user_id)

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    @app.route('/api/dashboard/stats')
    @require_role('ADMIN', 'EDITOR')
    @handle_database_error
    def dashboard_stats():
        week_ago = datetime.now() - timedelta(days=7)
        return jsonify({
            'success': True,
            'stats': {
                'totalArticles': store.count_articles(),
                'publishedArticles': store.count_articles(published=True),
                'draftArticles': store.count_articles(published=False),
                'recentArticles': store.count_articles(since=week_ago),
                'totalUsers': store.count_users(),
                'activeUsers': store.count_active_users(),
                'totalVideos': store.count_videos(),
            },
        })

    @app.route('/uploads/<path:filename>')
    def serve_upload(filename):
        upload_dir = settings.upload_dir
        if not os.path.isabs(upload_dir):
            upload_dir = os.path.join(os.getcwd(), upload_dir)
        return send_from_directory(upload_dir, filename)

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    @app.route('/api/articles/import', methods=['POST'])
    @limiter.limit("5 per minute")
    @require_role('ADMIN', 'EDITOR')
    def import_articles():
        """Import scraped article nodes from one or more JSON files"""
        data = request.get_json(silent=True) or {}
        paths = []
        if isinstance(data.get('filePaths'), list):
            paths = [str(p).strip() for p in data['filePaths'] if p is not None and str(p).strip()]
        elif data.get('filePath'):
            paths = [str(data['filePath']).strip()]
        if not paths:
            return jsonify({
                'success': False,
                'message': "File path(s) are required. Use 'filePath' (single) or 'filePaths' (array)",
            }), 400

        logger.info(f"Article import of {len(paths)} file(s) requested by {g.current_user['username']}")
        importer = ArticleImporter(store, localizer_factory(), base_dirs=settings.import_base_dirs)
        try:
            result = importer.import_files(paths)
        except Exception as e:
            logger.error(f"Article import failed: {e}", exc_info=True)
            return jsonify({'success': False, 'error': f'Import failed: {e}'}), 500
        return jsonify({'success': True, **result.to_dict()})

    @app.route('/api/admin/appels-candidatures/import', methods=['POST'])
    @limiter.limit("5 per minute")
    @require_role('ADMIN')
    def import_appels_candidatures():
        """Import the calls-for-applications page from a path or an uploaded file"""
        upload = request.files.get('file')
        data = request.get_json(silent=True) or {}
        file_path = (request.form.get('filePath') or data.get('filePath') or '').strip()

        temp_path = None
        if upload is not None and upload.filename:
            fd, temp_path = tempfile.mkstemp(prefix='import-', suffix='.json')
            os.close(fd)
            upload.save(temp_path)
            logger.info(f"Saved uploaded file to temporary location: {temp_path}")
            path_to_import = temp_path
        elif file_path:
            path_to_import = file_path
        else:
            return jsonify({'success': False, 'error': 'Either filePath or file must be provided'}), 400

        importer = AnnouncementImporter(store, localizer_factory(), base_dirs=settings.import_base_dirs)
        try:
            result = importer.import_file(path_to_import)
        except SourceFileError as e:
            logger.error(f"Error importing appels candidatures: {e}")
            return jsonify({'success': False, 'error': f'File not found or cannot be read: {e}'}), 400
        except Exception as e:
            logger.error(f"Error importing appels candidatures: {e}", exc_info=True)
            return jsonify({'success': False, 'error': f'Import failed: {e}'}), 500
        finally:
            if temp_path:
                try:
                    os.remove(temp_path)
                except OSError as e:
                    logger.warning(f"Failed to delete temporary file {temp_path}: {e}")

        return jsonify({'success': True, 'message': 'Import completed successfully', **result.to_dict()})

    # ------------------------------------------------------------------
    # Error handlers
    # ------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(error):
        """Custom 404 handler"""
        return jsonify({'success': False, 'error': 'Endpoint not found'}), 404

    @app.errorhandler(413)
    def too_large(error):
        return jsonify({'success': False, 'error': 'Uploaded file is too large'}), 413

    @app.errorhandler(429)
    def rate_limit_handler(error):
        """Custom rate limit handler"""
        return jsonify({
            'success': False,
            'error': 'Rate limit exceeded',
            'message': 'Too many requests, please slow down',
            'retry_after': 60,
        }), 429

    @app.errorhandler(500)
    def internal_error(error):
        """Custom 500 handler"""
        logger.error(f"Internal server error: {error}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    return app


def main():
    settings = Settings.from_env()
    store = open_store(settings)
    if store is not None:
        ensure_default_state(store, settings)
    app = create_app(settings, store=store)

    logger.info(f"Starting ANRSI content backend on port {settings.port}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Datastore: {'configured' if store is not None else 'not configured'}")

    app.run(host='0.0.0.0', port=settings.port, debug=settings.debug, threaded=True)


if __name__ == '__main__':
    main()
