"""
Flask Web Application for the Menu Chat Client

JSON interface over the session controller. Each created session plays the
role of one chat screen: it owns an independent controller and state.
"""

from flask import Flask, jsonify, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException
import logging
import os
import threading

from menuchat.config import ClientConfig, LOG_FORMAT, locale_file_path, log_level
from menuchat.core.response_normalizer import ResponseNormalizer
from menuchat.core.session_controller import SessionController
from menuchat.persistence import LocalePreferenceStore, SUPPORTED_LANGUAGES
from menuchat.results import IllegalCommand
from menuchat.utils.api_client import ChatAPIClient
from menuchat.utils.display_helpers import option_view, sort_menu_options, turn_view

load_dotenv()

# Configure logging
logging.basicConfig(level=log_level(), format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def _turn_payload(controller, result):
    """JSON body for a completed turn"""
    return {
        'success': result.ok,
        'session_id': controller.session_id,
        'user_turn': turn_view(result.user_turn),
        'bot_turn': turn_view(result.bot_turn),
        'failure_kind': result.reply.failure_kind.value if result.reply.failure_kind else None,
        'context': {
            'parent_menu_id': result.anchor_id,
            'previous_menu_items': len(result.last_menu_options),
            'greeting_reset': result.greeting_reset,
        },
    }


def create_app(transport=None, normalizer=None, locale_store=None, config=None):
    """
    Build the Flask application

    Args:
        transport: Transport shared by all sessions (ChatAPIClient by default)
        normalizer: ResponseNormalizer shared by all sessions
        locale_store: LocalePreferenceStore (file from MENUCHAT_LOCALE_FILE by default)
        config: ClientConfig (from environment by default)

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    app.config['SECRET_KEY'] = os.getenv("FLASK_SECRET_KEY", "menuchat-dev-secret")

    if transport is None:
        config = config or ClientConfig.from_env()
        transport = ChatAPIClient(config)
    if normalizer is None:
        normalizer = ResponseNormalizer(base_url=getattr(transport, 'base_url', ''))
    if locale_store is None:
        locale_store = LocalePreferenceStore(locale_file_path())

    # session_id -> SessionController
    sessions = {}
    sessions_lock = threading.Lock()

    def get_controller(session_id):
        with sessions_lock:
            return sessions.get(session_id)

    def session_not_found(session_id):
        return jsonify({
            'success': False,
            'error': f'Unknown session: {session_id}'
        }), 404

    def bad_request(error):
        return jsonify({'success': False, 'error': str(error)}), 400

    def json_object():
        """
        Request body as a dict (empty when no JSON was sent)

        Raises:
            ValueError: If the body is JSON but not an object
        """
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Request body must be a JSON object, got {type(data).__name__}")
        return data

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        # Routing errors (404, 405) keep their own status
        if isinstance(e, HTTPException):
            return e

        logger.error(f"Unhandled error on {request.method} {request.path}: {type(e).__name__} - {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500

    def run_turn(controller, submit):
        """Shared handling for message and option submissions"""
        try:
            result = submit()
        except (TypeError, ValueError) as e:
            return bad_request(e)

        if isinstance(result, IllegalCommand):
            return jsonify({
                'success': False,
                'error': result.reason,
                'command_type': result.command_type
            }), 409

        return jsonify(_turn_payload(controller, result))

    @app.route('/')
    def index():
        """Service info"""
        return jsonify({
            'service': 'menuchat',
            'backend': getattr(transport, 'base_url', None),
            'active_sessions': len(sessions),
        })

    @app.route('/api/sessions', methods=['POST'])
    def start_session():
        """Start a new chat session"""
        controller = SessionController(transport, normalizer)
        with sessions_lock:
            sessions[controller.session_id] = controller

        logger.info(f"New chat session created: {controller.session_id}")
        return jsonify({
            'success': True,
            'session_id': controller.session_id,
            'language': locale_store.load(),
        }), 201

    @app.route('/api/sessions/<session_id>', methods=['GET'])
    def get_session(session_id):
        """Transcript and navigation context, options sorted for display"""
        controller = get_controller(session_id)
        if controller is None:
            return session_not_found(session_id)

        return jsonify({
            'success': True,
            'session_id': session_id,
            'busy': controller.busy,
            'parent_menu_id': controller.anchor_id,
            'previous_menu_items': [
                option_view(option) for option in sort_menu_options(controller.last_menu_options)
            ],
            'messages': [turn_view(turn) for turn in controller.transcript],
        })

    @app.route('/api/sessions/<session_id>', methods=['DELETE'])
    def end_session(session_id):
        """Tear down a session; refused while a turn is in flight"""
        with sessions_lock:
            controller = sessions.get(session_id)
            if controller is None:
                return session_not_found(session_id)

            if controller.busy:
                return jsonify({
                    'success': False,
                    'error': "A message is still being processed; end the session after the reply"
                }), 409

            del sessions[session_id]

        logger.info(f"Chat session ended: {session_id} ({len(controller.transcript)} turns)")
        return jsonify({'success': True, 'session_id': session_id})

    @app.route('/api/sessions/<session_id>/messages', methods=['POST'])
    def submit_message(session_id):
        """Submit user text and return both turns"""
        controller = get_controller(session_id)
        if controller is None:
            return session_not_found(session_id)

        try:
            data = json_object()
        except ValueError as e:
            return bad_request(e)

        message = data.get('message', '')
        return run_turn(controller, lambda: controller.submit_user_text(message))

    @app.route('/api/sessions/<session_id>/select', methods=['POST'])
    def select_option(session_id):
        """Select a menu option by its option number"""
        controller = get_controller(session_id)
        if controller is None:
            return session_not_found(session_id)

        try:
            data = json_object()
        except ValueError as e:
            return bad_request(e)

        option_number = data.get('option_number')
        return run_turn(controller, lambda: controller.select_option(option_number))

    @app.route('/api/menu', methods=['GET'])
    def get_menu():
        """Top-level menu from the backend"""
        listing = normalizer.normalize_menu(transport.get_menu())
        if not listing.ok:
            return jsonify({
                'success': False,
                'error': listing.error_message,
                'failure_kind': listing.failure_kind.value
            }), 502

        return jsonify({
            'success': True,
            'menuItems': [option_view(option) for option in sort_menu_options(listing.options)],
            'timestamp': listing.timestamp,
        })

    @app.route('/api/health', methods=['GET'])
    def health():
        """Backend health as seen from this client"""
        status = normalizer.normalize_health(transport.health_check())
        if not status.ok:
            return jsonify({
                'success': False,
                'error': status.error_message,
                'failure_kind': status.failure_kind.value
            }), 502

        return jsonify({
            'success': True,
            'status': status.status,
            'service': status.service,
            'version': status.version,
            'timestamp': status.timestamp,
        })

    @app.route('/api/locale', methods=['GET'])
    def get_locale():
        return jsonify({
            'language': locale_store.load(),
            'supported': list(SUPPORTED_LANGUAGES),
        })

    @app.route('/api/locale', methods=['PUT'])
    def set_locale():
        try:
            language = locale_store.save(json_object().get('language'))
        except ValueError as e:
            return bad_request(e)
        except OSError as e:
            logger.error(f"Error saving language preference: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500

        return jsonify({'success': True, 'language': language})

    return app


if __name__ == '__main__':
    app = create_app()

    print("\n" + "=" * 60)
    print("MENU CHAT CLIENT - WEB INTERFACE")
    print("=" * 60)
    print("\nServer starting...")
    print("API available at: http://localhost:5000")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    app.run(debug=True, host='0.0.0.0', port=5000)
