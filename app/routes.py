"""Routes for the AI email sender."""
from datetime import datetime, timezone

from flask import (
    Blueprint,
    current_app,
    jsonify,
    request,
)

from app.errors import ServiceError, ValidationError
from app.event_log import log_event, preview
from app.models import GeneratedEmail
from app.services.drafting_service import EMAIL_TYPES, TONES, generate_email, improve_email
from app.services.email_delivery_service import send_email, validate_email_list

main_bp = Blueprint('main', __name__)
email_bp = Blueprint('email', __name__)

_RATE_WINDOW_SECONDS = 60


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _completion_client():
    return current_app.extensions['email_sender']['completion_client']


def _transport():
    return current_app.extensions['email_sender']['transport']


def _is_rate_limited(client_ip: str) -> bool:
    now = _utc_now().timestamp()
    events = current_app.extensions['email_sender']['rate_events'][client_ip]
    while events and now - events[0] > _RATE_WINDOW_SECONDS:
        events.popleft()

    events.append(now)
    return len(events) > current_app.config['RATE_LIMIT_PER_WINDOW']


def _get_client_ip() -> str:
    """Return client IP after optional trusted-proxy normalization."""
    return (request.remote_addr or 'unknown').strip()


def _read_json_object():
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return None


def _log_event(level: str, event: str, **fields):
    log_event(current_app.logger, level, event, **fields)


def _enforce_rate_limit(event_prefix: str):
    """Return a 429 response tuple when requests exceed limits."""
    client_ip = _get_client_ip()
    if not _is_rate_limited(client_ip):
        return None
    _log_event('warning', f'{event_prefix}.rate_limited', client_ip=client_ip)
    return jsonify({'success': False, 'message': 'Too many requests, please try again later.'}), 429


def _validation_response(details: list[str]):
    return jsonify({'success': False, 'message': 'Validation error', 'details': details}), 400


def _error_response(exc: ServiceError):
    payload = {'success': False, 'message': str(exc)}
    if isinstance(exc, ValidationError) and exc.details:
        payload['details'] = exc.details
    return jsonify(payload), exc.status_code


def _check_text(data: dict, field: str, *, min_len: int = 1, max_len: int | None = None,
                required: bool = True) -> str | None:
    """Return validation error text for a string field."""
    value = data.get(field)
    if value is None:
        return f'"{field}" is required' if required else None
    if not isinstance(value, str):
        return f'"{field}" must be a string'
    length = len(value.strip())
    if length < min_len:
        if min_len == 1:
            return f'"{field}" is not allowed to be empty'
        return f'"{field}" length must be at least {min_len} characters long'
    if max_len is not None and length > max_len:
        return f'"{field}" length must be less than or equal to {max_len} characters long'
    return None


def _check_choice(data: dict, field: str, choices: tuple[str, ...]) -> str | None:
    value = data.get(field)
    if value is None or value in choices:
        return None
    return f'"{field}" must be one of [{", ".join(choices)}]'


def _check_address_list(data: dict, field: str, *, required: bool) -> list[str]:
    value = data.get(field)
    if value is None:
        return [f'"{field}" is required'] if required else []
    if not isinstance(value, list):
        return [f'"{field}" must be an array']
    if required and not value:
        return [f'"{field}" must contain at least 1 items']
    if not all(isinstance(item, str) for item in value):
        return [f'"{field}" must contain only strings']
    return []


def _validate_generate_payload(data: dict) -> list[str]:
    issues = [
        _check_text(data, 'prompt', min_len=10, max_len=1000),
        _check_choice(data, 'tone', TONES),
        _check_choice(data, 'emailType', EMAIL_TYPES),
    ]
    issues = [issue for issue in issues if issue]
    issues.extend(_check_address_list(data, 'recipients', required=False))
    if not issues and data.get('recipients'):
        _, invalid = validate_email_list(data['recipients'])
        issues.extend(invalid)
    return issues


def _validate_send_payload(data: dict) -> list[str]:
    issues = _check_address_list(data, 'recipients', required=True)
    checks = (
        _check_text(data, 'subject', max_len=200),
        _check_text(data, 'body', min_len=10),
        _check_text(data, 'senderName', max_len=100, required=False),
    )
    issues.extend(issue for issue in checks if issue)
    return issues


def _validate_improve_payload(data: dict) -> list[str]:
    original = data.get('originalEmail')
    if not isinstance(original, dict):
        issues = ['"originalEmail" is required']
    else:
        issues = [
            issue for issue in (
                _check_text(original, 'subject'),
                _check_text(original, 'body'),
            ) if issue
        ]
        issues = [issue.replace('"', '"originalEmail.', 1) for issue in issues]
    request_issue = _check_text(data, 'improvementRequest', min_len=5, max_len=500)
    if request_issue:
        issues.append(request_issue)
    return issues


@main_bp.route('/health')
def health():
    return jsonify({'status': 'ok', 'timestamp': _utc_now().isoformat()})


@email_bp.route('/generate', methods=['POST'])
def generate():
    """Draft an email from a natural-language prompt."""
    limited = _enforce_rate_limit('email.generate')
    if limited:
        return limited

    data = _read_json_object() or {}
    issues = _validate_generate_payload(data)
    if issues:
        return _validation_response(issues)

    prompt = data['prompt'].strip()
    tone = data.get('tone') or 'professional'
    email_type = data.get('emailType') or 'general'

    try:
        email, context = generate_email(
            client=_completion_client(),
            prompt=prompt,
            tone=tone,
            email_type=email_type,
            recipients=data.get('recipients') or [],
        )
    except ServiceError as exc:
        _log_event('error', 'email.generate.failed', error=str(exc))
        return _error_response(exc)

    return jsonify(
        {
            'success': True,
            'message': 'Email generated successfully',
            'data': {
                'subject': email.subject,
                'body': email.body,
                'metadata': {
                    'prompt': prompt,
                    'tone': tone,
                    'emailType': email_type,
                    'generatedAt': _utc_now().isoformat(),
                    'normalization': context.summary(),
                },
            },
        }
    )


@email_bp.route('/improve', methods=['POST'])
def improve():
    """Revise an existing email according to an improvement request."""
    limited = _enforce_rate_limit('email.improve')
    if limited:
        return limited

    data = _read_json_object() or {}
    issues = _validate_improve_payload(data)
    if issues:
        return _validation_response(issues)

    original = GeneratedEmail(
        subject=data['originalEmail']['subject'].strip(),
        body=data['originalEmail']['body'],
    )
    improvement_request = data['improvementRequest'].strip()

    try:
        improved = improve_email(
            client=_completion_client(),
            original=original,
            improvement_request=improvement_request,
        )
    except ServiceError as exc:
        _log_event('error', 'email.improve.failed', error=str(exc))
        return _error_response(exc)

    return jsonify(
        {
            'success': True,
            'message': 'Email improved successfully',
            'data': {
                'subject': improved.subject,
                'body': improved.body,
                'metadata': {
                    'improvementRequest': improvement_request,
                    'improvedAt': _utc_now().isoformat(),
                },
            },
        }
    )


@email_bp.route('/send', methods=['POST'])
def send():
    """Send an email to every recipient and report per-recipient outcomes."""
    limited = _enforce_rate_limit('email.send')
    if limited:
        return limited

    data = _read_json_object() or {}
    issues = _validate_send_payload(data)
    if issues:
        return _validation_response(issues)

    _log_event(
        'info',
        'email.send.requested',
        recipients=len(data['recipients']),
        subject=preview(data['subject'], 50),
        body_has_envelope='"subject"' in data['body'],
    )

    try:
        report = send_email(
            transport=_transport(),
            recipients=data['recipients'],
            subject=data['subject'],
            body=data['body'],
            sender_name=data.get('senderName'),
        )
    except ServiceError as exc:
        _log_event('error', 'email.send.failed', error=str(exc))
        return _error_response(exc)

    return jsonify(
        {
            'success': True,
            'message': (
                f'Email sent successfully to {report.successful} '
                f'out of {report.total_recipients} recipients'
            ),
            'data': report.to_dict(),
        }
    )


@email_bp.route('/validate', methods=['POST'])
def validate():
    """Check a list of addresses without sending anything."""
    data = _read_json_object() or {}
    emails = data.get('emails')
    if not isinstance(emails, list):
        return jsonify({'success': False, 'message': 'Emails must be provided as an array'}), 400

    valid_emails, errors = validate_email_list(emails)
    return jsonify(
        {
            'success': True,
            'message': 'Email validation completed',
            'data': {
                'validEmails': valid_emails,
                'invalidEmails': errors,
                'totalValid': len(valid_emails),
                'totalInvalid': len(errors),
            },
        }
    )


@email_bp.route('/test-connection', methods=['GET'])
def test_connection():
    """Connectivity diagnostic for the SMTP transport."""
    try:
        result = _transport().test_connection()
    except ServiceError as exc:
        return _error_response(exc)
    return jsonify({'success': True, 'message': result['message']})


@email_bp.route('/status', methods=['GET'])
def status():
    """Return configuration status for the transport and the AI provider."""
    client = _completion_client()
    return jsonify(
        {
            'success': True,
            'data': {
                'emailService': _transport().summary(),
                'aiService': {
                    'configured': client.configured,
                    'provider': client.provider_name,
                },
                'server': {
                    'environment': current_app.config.get('ENV_NAME', 'development'),
                    'timestamp': _utc_now().isoformat(),
                },
            },
        }
    )
