import hmac

from flask import current_app, jsonify, request

from feedfy.context import get_feed, get_service_backend
from feedfy.reporting import log
from feedfy.services import hotmart


def register(app):
    @app.route('/api/realtime/webhook', methods=['POST'])
    def realtime_webhook():
        """Database change webhook -> change feed channels"""
        secret = current_app.config['REALTIME_WEBHOOK_SECRET']
        if not secret or not hmac.compare_digest(request.headers.get('X-Webhook-Secret', ''), secret):
            return jsonify({'error': 'Invalid webhook secret'}), 401
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict) or not payload.get('type') or not payload.get('table'):
            return jsonify({'error': 'Invalid change payload'}), 400
        hits = get_feed().dispatch(payload)
        return jsonify({'dispatched': hits})

    @app.route('/api/hotmart/webhook', methods=['POST'])
    def hotmart_webhook():
        if not hotmart.validate_hottok(request.headers.get('X-Hotmart-Hottok'),
                                       current_app.config['HOTMART_HOTTOK']):
            return jsonify({'error': 'Invalid signature'}), 401
        body, status = hotmart.process_webhook(get_service_backend(), request.get_json(silent=True) or {})
        log('info', 'hotmart', f"Webhook handled with {status}: {body.get('message') or body.get('error')}")
        return jsonify(body), status
