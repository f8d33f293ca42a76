from flask import jsonify

from feedfy.context import get_backend, cached, invalidate, require_user, require_admin, json_body
from feedfy.errors import FeedfyError
from feedfy.services import announcements, hotmart, reports


def register(app):
    # ============================================
    # REPORTS / MODERATION
    # ============================================

    @app.route('/api/posts/<post_id>/report', methods=['POST'])
    def report_post(post_id):
        user = require_user()
        data = json_body()
        row = reports.report_post(get_backend(), post_id, user['id'], data.get('reason', ''), data.get('description'))
        invalidate(('pending-reports',), ('pending-reports-count',))
        return jsonify(row), 201

    @app.route('/api/moderation/reports')
    def pending_reports():
        require_admin()
        return jsonify(cached('pending-reports', fn=lambda: reports.get_pending_reports(get_backend())))

    @app.route('/api/moderation/reports/count')
    def pending_reports_count():
        require_admin()
        return jsonify({'count': cached('pending-reports-count',
                                        fn=lambda: reports.get_pending_reports_count(get_backend()))})

    @app.route('/api/moderation/reports/<report_id>', methods=['PUT'])
    def update_report(report_id):
        user = require_admin()
        reports.update_report_status(get_backend(), report_id, json_body().get('status', ''), user['id'])
        invalidate(('pending-reports',), ('pending-reports-count',))
        return jsonify({'status': 'ok'})

    @app.route('/api/moderation/posts/<post_id>', methods=['DELETE'])
    def moderate_delete_post(post_id):
        require_admin()
        reports.delete_post_by_admin(get_backend(), post_id)
        invalidate(('pending-reports',), ('pending-reports-count',), ('all-posts',), ('posts',), ('post', post_id))
        return '', 204

    # ============================================
    # ANNOUNCEMENTS
    # ============================================

    @app.route('/api/announcements')
    def list_announcements():
        return jsonify(cached('announcements', fn=lambda: announcements.get_active_announcements(get_backend())))

    @app.route('/api/announcements', methods=['POST'])
    def create_announcement():
        require_admin()
        data = json_body()
        if not data.get('title') or not data.get('content'):
            raise FeedfyError('Title and content are required')
        row = announcements.create_announcement(get_backend(), data['title'], data['content'],
                                                data.get('image_url'), data.get('button_text'),
                                                data.get('button_url'))
        invalidate(('announcements',))
        return jsonify(row), 201

    @app.route('/api/announcements/<announcement_id>', methods=['PUT'])
    def update_announcement(announcement_id):
        require_admin()
        row = announcements.update_announcement(get_backend(), announcement_id, json_body())
        invalidate(('announcements',))
        return jsonify(row)

    @app.route('/api/announcements/<announcement_id>', methods=['DELETE'])
    def delete_announcement(announcement_id):
        require_admin()
        announcements.delete_announcement(get_backend(), announcement_id)
        invalidate(('announcements',))
        return '', 204

    # ============================================
    # HOTMART PRODUCTS
    # ============================================

    @app.route('/api/hotmart/products')
    def hotmart_products():
        require_admin()
        return jsonify(cached('hotmart-products', fn=lambda: hotmart.get_products(get_backend())))

    @app.route('/api/hotmart/purchases')
    def hotmart_purchases():
        require_admin()
        return jsonify(cached('hotmart-purchases', fn=lambda: hotmart.get_purchases(get_backend())))

    @app.route('/api/hotmart/products', methods=['POST'])
    def create_hotmart_product():
        require_admin()
        data = json_body()
        if not data.get('course_id') or not data.get('hotmart_product_id'):
            raise FeedfyError('Course and Hotmart product id are required')
        row = hotmart.create_product(get_backend(), data)
        invalidate(('hotmart-products',))
        return jsonify(row), 201

    @app.route('/api/hotmart/products/<product_id>', methods=['PUT'])
    def update_hotmart_product(product_id):
        require_admin()
        row = hotmart.update_product(get_backend(), product_id, json_body())
        invalidate(('hotmart-products',))
        return jsonify(row)

    @app.route('/api/hotmart/products/<product_id>', methods=['DELETE'])
    def delete_hotmart_product(product_id):
        require_admin()
        hotmart.delete_product(get_backend(), product_id)
        invalidate(('hotmart-products',))
        return '', 204
