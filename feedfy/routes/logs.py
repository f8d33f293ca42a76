from flask import jsonify, request

from feedfy.context import require_admin
from feedfy.model import LogEntry
from feedfy.reporting import log


def register(app):
    @app.route('/api/logs')
    def get_logs():
        """Newest first. ?level=error filters, ?limit= caps (default 200)."""
        require_admin()
        limit = request.args.get('limit', 200, type=int)
        level = request.args.get('level')
        if level:
            entries = LogEntry.get_list(f"SELECT * FROM {LogEntry.get_tablename()} WHERE level = ? "
                                        f"ORDER BY id DESC LIMIT ?", [level, limit])
        else:
            entries = LogEntry.get_list(f"SELECT * FROM {LogEntry.get_tablename()} ORDER BY id DESC LIMIT ?",
                                        [limit])
        return jsonify([e.to_dict() for e in entries])

    @app.route('/api/logs/clear', methods=['POST'])
    def clear_logs():
        require_admin()
        LogEntry.delete_all()
        log('info', 'logs', 'Logs cleared')
        return jsonify({'status': 'ok'})
