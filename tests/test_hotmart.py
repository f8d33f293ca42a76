"""
Hotmart purchase webhook and the product/purchase admin endpoints.
"""
import pytest

from data_builder import HOTTOK, auth
from feedfy.model import LogEntry
from feedfy.services.hotmart import (PASSWORD_CHARSET, generate_temporary_password, normalize_payload,
                                     validate_hottok)


def purchase_event(event='PURCHASE_APPROVED', product_id='P1', email='buyer@example.com',
                   transaction='HP-1', name='Bia'):
    return {
        'event': event,
        'data': {
            'product': {'id': product_id},
            'buyer': {'email': email, 'name': name},
            'purchase': {'transaction': transaction},
        },
    }


@pytest.fixture
def product(builder):
    course = builder.with_course('Pro')
    return builder.insert('hotmart_products', {'course_id': course['id'], 'hotmart_product_id': 'P1',
                                               'hotmart_product_name': 'Pro Course'})


@pytest.fixture
def webhook(client):
    def send(payload, hottok=HOTTOK):
        return client.post('/api/hotmart/webhook', json=payload, headers={'X-Hotmart-Hottok': hottok})
    return send


class TestPayload:
    def test_v2_payload(self):
        purchase = normalize_payload(purchase_event())

        assert (purchase.event, purchase.product_id, purchase.buyer_email, purchase.buyer_name,
                purchase.transaction_id) == ('PURCHASE_APPROVED', 'P1', 'buyer@example.com', 'Bia', 'HP-1')
        assert purchase.is_complete()

    def test_legacy_payload(self):
        purchase = normalize_payload({'product_id': 'P9', 'email': 'old@example.com', 'transaction': 'T9',
                                      'purchase': {'status': 'approved'}})

        assert purchase.event == 'PURCHASE_APPROVED'
        assert (purchase.product_id, purchase.buyer_email, purchase.transaction_id) == \
            ('P9', 'old@example.com', 'T9')
        assert purchase.buyer_name == 'User'

    def test_incomplete(self):
        assert not normalize_payload({'event': 'PURCHASE_APPROVED'}).is_complete()
        assert not normalize_payload(None).is_complete()

    def test_hottok(self, app):
        assert validate_hottok('abc', 'abc')
        assert not validate_hottok('abd', 'abc')
        assert not validate_hottok(None, 'abc')
        assert not validate_hottok('abc', '')

    def test_temporary_password(self):
        password = generate_temporary_password()

        assert len(password) == 12
        assert set(password) <= set(PASSWORD_CHARSET)


class TestWebhook:
    def test_wrong_hottok(self, webhook, db):
        response = webhook(purchase_event(), hottok='nope')

        assert response.status_code == 401
        assert response.json == {'error': 'Invalid signature'}
        assert db.rows('hotmart_purchases') == []

    def test_hottok_not_configured(self, app, webhook):
        app.config['HOTMART_HOTTOK'] = ''

        assert webhook(purchase_event(), hottok='').status_code == 401
        assert LogEntry.count("message = 'HOTMART_HOTTOK is not configured'") == 1

    def test_incomplete_payload(self, webhook):
        response = webhook({'event': 'PURCHASE_APPROVED', 'data': {'buyer': {'email': 'a@example.com'}}})

        assert response.status_code == 400
        assert response.json == {'error': 'Incomplete webhook data'}

    def test_unknown_product_is_kept_for_review(self, webhook, db):
        response = webhook(purchase_event(product_id='UNKNOWN'))

        assert response.status_code == 200
        purchase, = db.rows('hotmart_purchases')
        assert purchase['status'] == 'pending'
        assert purchase['processed_at'] is None

    def test_approved_creates_user_and_enrolls(self, webhook, db, product):
        response = webhook(purchase_event())

        body = response.json
        assert body['message'] == 'Purchase processed'
        assert body['course_id'] == product['course_id']
        auth_user, = db.auth_users.values()
        assert auth_user['email'] == 'buyer@example.com'
        assert auth_user['email_confirmed'] is True
        assert auth_user['user_metadata'] == {'name': 'Bia', 'created_via': 'hotmart_webhook'}
        user, = db.rows('users')
        assert (user['id'], user['role']) == (body['user_id'], 'student')
        enrollment, = db.rows('enrollments')
        assert (enrollment['user_id'], enrollment['course_id']) == (body['user_id'], product['course_id'])
        purchase, = db.rows('hotmart_purchases')
        assert purchase['id'] == body['purchase_id']
        assert purchase['status'] == 'approved'
        assert purchase['processed_at']

    def test_welcome_email_is_logged(self, webhook, product):
        webhook(purchase_event())

        entry, = LogEntry.get_list("SELECT * FROM logs WHERE message LIKE 'Welcome e-mail%'")
        assert entry.source == 'hotmart'
        assert 'Pro Course' in entry.details

    def test_existing_user_is_reused(self, webhook, db, builder, product):
        user = builder.with_user(email='buyer@example.com')

        body = webhook(purchase_event()).json

        assert body['user_id'] == user['id']
        assert db.auth_users == {}

    def test_existing_enrollment_is_kept(self, webhook, db, builder, product):
        user = builder.with_user(email='buyer@example.com')
        builder.insert('enrollments', {'user_id': user['id'], 'course_id': product['course_id']})

        assert webhook(purchase_event()).status_code == 200
        assert len(db.rows('enrollments')) == 1

    def test_repeated_transaction(self, webhook, db, product):
        first = webhook(purchase_event()).json

        again = webhook(purchase_event()).json

        assert again == {'message': 'Transaction already processed', 'purchase_id': first['purchase_id']}
        assert len(db.rows('hotmart_purchases')) == 1

    @pytest.mark.parametrize('event, status', [('PURCHASE_REFUNDED', 'refunded'),
                                               ('PURCHASE_CANCELED', 'cancelled')])
    def test_refund_and_cancel(self, webhook, builder, db, product, event, status):
        builder.insert('hotmart_purchases', {'hotmart_transaction_id': 'HP-1', 'hotmart_product_id': 'P1',
                                             'status': 'pending'})

        response = webhook(purchase_event(event=event))

        assert response.json == {'message': 'Purchase status updated'}
        assert db.rows('hotmart_purchases')[0]['status'] == status

    def test_other_events_are_recorded(self, webhook, db, product):
        response = webhook(purchase_event(event='PURCHASE_DELAYED'))

        assert response.json == {'message': 'Event received and recorded'}
        assert db.rows('hotmart_purchases')[0]['status'] == 'pending'
        assert db.rows('enrollments') == []

    def test_each_call_is_logged(self, webhook, product):
        webhook(purchase_event())

        assert LogEntry.count("source = 'hotmart' AND message LIKE 'Webhook handled with 200%'") == 1


class TestAdmin:
    def test_products(self, client, builder, db):
        admin = builder.with_user(role='admin')
        course = builder.with_course('Pro')

        created = client.post('/api/hotmart/products', json={'course_id': course['id'], 'hotmart_product_id': 'X1'},
                              headers=auth(admin))
        assert created.status_code == 201
        assert created.json['courses'] == {'id': course['id'], 'title': 'Pro'}
        assert created.json['hotmart_product_name'] is None

        product_id = created.json['id']
        client.put(f'/api/hotmart/products/{product_id}', json={'hotmart_product_name': 'Pro', 'id': 9},
                   headers=auth(admin))
        products = client.get('/api/hotmart/products', headers=auth(admin)).json
        assert [(p['id'], p['hotmart_product_name']) for p in products] == [(product_id, 'Pro')]

        client.delete(f'/api/hotmart/products/{product_id}', headers=auth(admin))
        assert db.rows('hotmart_products') == []

    def test_product_requires_course_and_id(self, client, builder):
        admin = builder.with_user(role='admin')

        response = client.post('/api/hotmart/products', json={'hotmart_product_id': 'X1'}, headers=auth(admin))

        assert response.json == {'error': 'Course and Hotmart product id are required'}

    def test_purchases(self, client, builder, webhook, product):
        admin = builder.with_user(role='admin')
        webhook(purchase_event())

        purchase, = client.get('/api/hotmart/purchases', headers=auth(admin)).json

        assert purchase['users']['email'] == 'buyer@example.com'
        assert purchase['courses']['title'] == 'Pro'

    def test_admin_only(self, client, builder):
        student = builder.with_user()

        assert client.get('/api/hotmart/products', headers=auth(student)).status_code == 403
        assert client.get('/api/hotmart/purchases').status_code == 401
