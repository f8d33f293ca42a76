from flask import current_app, jsonify, request

from feedfy.context import get_backend, get_cache, get_feed, cached, invalidate, require_user, json_body
from feedfy.errors import NotFound, FeedfyError
from feedfy.services import chat, notifications


def register(app):
    # ============================================
    # CHAT
    # ============================================

    @app.route('/api/chat/conversations')
    def list_conversations():
        user = require_user()
        chat.subscribe_unread_messages(get_feed(), get_cache(), user['id'])
        return jsonify(cached('conversations', fn=lambda: chat.get_conversations(get_backend())))

    @app.route('/api/chat/unread-count')
    def unread_messages():
        user = require_user()
        chat.subscribe_unread_messages(get_feed(), get_cache(), user['id'])
        conversations = cached('conversations', stale_time=current_app.config['UNREAD_POLL_SECONDS'],
                               fn=lambda: chat.get_conversations(get_backend()))
        return jsonify({'count': chat.unread_messages_total(conversations)})

    @app.route('/api/chat/conversations', methods=['POST'])
    def create_conversation():
        require_user()
        data = json_body()
        participant_ids = data.get('participant_ids') or []
        if not participant_ids:
            raise FeedfyError('At least one participant is required')
        conversation = chat.create_conversation(get_backend(), data.get('type', 'dm'), participant_ids,
                                                data.get('name'), data.get('community_id'), data.get('course_id'))
        invalidate(('conversations',))
        return jsonify(conversation), 201

    @app.route('/api/chat/conversations/<conversation_id>')
    def get_conversation(conversation_id):
        require_user()
        conversation = cached('conversation', conversation_id,
                              fn=lambda: chat.get_conversation(get_backend(), conversation_id))
        if not conversation:
            raise NotFound('Conversation not found')
        return jsonify(conversation)

    @app.route('/api/chat/conversations/<conversation_id>/messages')
    def list_messages(conversation_id):
        require_user()
        # the pushed-message buffer is shared by everyone in the conversation
        if not chat.is_participant(get_backend(), conversation_id):
            raise NotFound('Conversation not found')
        stream = chat.message_stream(get_feed(), conversation_id)
        queried = cached('messages', conversation_id, fn=lambda: chat.get_messages(get_backend(), conversation_id))
        return jsonify(chat.attach_senders(get_backend(), stream.merge(queried)))

    @app.route('/api/chat/conversations/<conversation_id>/messages', methods=['POST'])
    def send_message(conversation_id):
        message = chat.send_message(get_backend(), conversation_id, json_body().get('content', ''))
        invalidate(('messages', conversation_id), ('conversations',))
        return jsonify(message), 201

    @app.route('/api/chat/conversations/<conversation_id>/read', methods=['POST'])
    def mark_read(conversation_id):
        user = require_user()
        chat.mark_messages_as_read(get_backend(), conversation_id)
        invalidate(('conversations', user['id']))
        return jsonify({'status': 'ok'})

    # ============================================
    # NOTIFICATIONS
    # ============================================

    @app.route('/api/notifications')
    def list_notifications():
        user = require_user()
        notifications.subscribe_notifications(get_feed(), get_cache(), user['id'])
        limit = request.args.get('limit', type=int)
        rows = cached('notifications', fn=lambda: notifications.get_notifications(get_backend()))
        return jsonify(rows[:limit] if limit else rows)

    @app.route('/api/notifications/unread-count')
    def unread_notifications():
        user = require_user()
        notifications.subscribe_notifications(get_feed(), get_cache(), user['id'])
        count = cached('unread-notification-count', stale_time=current_app.config['UNREAD_POLL_SECONDS'],
                       fn=lambda: notifications.get_unread_count(get_backend()))
        return jsonify({'count': count})

    @app.route('/api/notifications/<notification_id>/read', methods=['POST'])
    def mark_notification_read(notification_id):
        user = require_user()
        notifications.mark_read(get_backend(), notification_id)
        invalidate(('notifications', user['id']), ('unread-notification-count', user['id']))
        return jsonify({'status': 'ok'})

    @app.route('/api/notifications/read-all', methods=['POST'])
    def mark_all_notifications_read():
        user = require_user()
        notifications.mark_all_read(get_backend())
        invalidate(('notifications', user['id']), ('unread-notification-count', user['id']))
        return jsonify({'status': 'ok'})
