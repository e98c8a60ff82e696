"""Flask application factory for the AI email sender."""
import os
from collections import defaultdict, deque

from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from app.ai_client import CompletionClient
from app.email_service import SmtpTransport
from app.settings import load_ai_settings, load_smtp_settings


def create_app(config=None, *, completion_client=None, transport=None):
    app = Flask(__name__)

    app.config['RATE_LIMIT_PER_WINDOW'] = int(os.environ.get('RATE_LIMIT_PER_WINDOW', '20'))
    app.config['TRUST_PROXY_HOPS'] = int(os.environ.get('TRUST_PROXY_HOPS', '0'))
    app.config['CORS_ORIGINS'] = os.environ.get('CORS_ORIGINS', '*')
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')
    app.config['ENV_NAME'] = os.environ.get('APP_ENV', 'development')

    if config:
        app.config.update(config)

    app.logger.setLevel(str(app.config['LOG_LEVEL']).upper())

    trust_proxy_hops = int(app.config.get('TRUST_PROXY_HOPS', 0) or 0)
    if trust_proxy_hops > 0:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=trust_proxy_hops,
            x_proto=trust_proxy_hops,
            x_host=trust_proxy_hops,
        )

    origins = [
        origin.strip()
        for origin in str(app.config['CORS_ORIGINS']).split(',')
        if origin.strip()
    ] or '*'
    CORS(app, resources={r'/api/*': {'origins': origins}})

    if completion_client is None:
        completion_client = CompletionClient(load_ai_settings())
    if transport is None:
        transport = SmtpTransport(load_smtp_settings())
        issues = transport.settings.issues()
        if issues:
            app.logger.warning(
                'Email configuration issues: %s. Email sending will not work.',
                '; '.join(issues),
            )

    app.extensions['email_sender'] = {
        'completion_client': completion_client,
        'transport': transport,
        'rate_events': defaultdict(deque),
    }

    from app.routes import main_bp, email_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(email_bp, url_prefix='/api/email')

    return app

