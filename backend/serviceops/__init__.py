from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _error_payload(status: int, title: str, detail: str):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


def build_permission_resolver(app: Flask):
    from .services.permission_cache import PermissionCache
    from .services.permission_sources import LocalPermissionSource, RemotePermissionSource
    from .services.rbac_client import RbacClient
    from .config.settings import PERMISSION_SOURCES
    from .services.resolver import PermissionResolver

    source_name = app.config['PERMISSION_SOURCE']
    if source_name not in PERMISSION_SOURCES:
        raise ValueError(f'Unknown PERMISSION_SOURCE {source_name!r}; expected one of {PERMISSION_SOURCES}')
    if source_name == 'remote':
        source = RemotePermissionSource(RbacClient(
            app.config['RBAC_API_URL'],
            timeout=app.config['RBAC_API_TIMEOUT'],
            token=app.config.get('RBAC_API_TOKEN'),
        ))
    else:
        source = LocalPermissionSource()
    cache = PermissionCache(ttl=app.config['PERMISSION_CACHE_TTL'])
    app.extensions['permission_cache'] = cache
    app.extensions['permission_resolver'] = PermissionResolver(source, cache)
    return app.extensions['permission_resolver']


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    from .config.settings import load_settings

    app = Flask(__name__)
    app.config.update(load_settings())
    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.getLogger('serviceops').setLevel(app.config['LOG_LEVEL'])
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)
    build_permission_resolver(app)

    from .routes.auth import auth_bp
    from .routes.rbac import rbac_bp
    from .routes.targets import targets_bp
    from .routes.operations import ops_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(rbac_bp, url_prefix='/rbac')
    app.register_blueprint(targets_bp, url_prefix='/targets')
    app.register_blueprint(ops_bp, url_prefix='/operations')

    @app.teardown_appcontext
    def remove_session(exc):
        # a fresh session per request so role/assignment collections are never stale
        SessionLocal.remove()

    @app.route('/healthz')
    def health():
        return {'status': 'ok', 'permission_source': app.config['PERMISSION_SOURCE']}

    from .services.errors import ServiceOpsError

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        get_db().rollback()
        if isinstance(e, HTTPException):
            return _error_payload(e.code, e.name, e.description)
        if isinstance(e, ServiceOpsError):
            return _error_payload(e.status, e.title, e.detail)
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return _error_payload(500, 'Internal Server Error', 'Unexpected error')

    return app


def get_db():
    return SessionLocal()
