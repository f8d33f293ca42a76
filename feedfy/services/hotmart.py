"""
Hotmart purchases: product -> course mapping and the purchase webhook.

The webhook runs with the service-role backend (no user token). Payloads
come in two shapes, the v2 one with everything under `data` and a flat
legacy one; normalize_payload() reads both.

    PURCHASE_APPROVED                      -> find/create user, enroll, purchase 'approved'
    PURCHASE_REFUNDED / PURCHASE_CANCELED  -> purchase 'refunded' / 'cancelled'
    anything else                          -> purchase recorded as 'pending'
"""

import hmac
import secrets
from dataclasses import dataclass, field

from feedfy.errors import BackendError, FeedfyError
from feedfy.reporting import log
from feedfy.services import require_user, now_iso, get_nested, first_of

PASSWORD_CHARSET = 'abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789!@#$%^&*'
PASSWORD_LENGTH = 12
PURCHASE_STATUSES = ('approved', 'refunded', 'cancelled', 'pending')
PRODUCT_FIELDS = ('course_id', 'hotmart_product_id', 'hotmart_product_name')
PRODUCT_SELECT = '*,courses!course_id(id,title)'
PURCHASE_SELECT = '*,courses!course_id(id,title),users!user_id(id,name,email)'


# ============================================
# WEBHOOK
# ============================================

@dataclass
class HotmartPurchase:
    event: str | None
    product_id: str | None
    buyer_email: str | None
    buyer_name: str
    transaction_id: str | None
    raw: dict = field(default_factory=dict)

    def is_complete(self) -> bool:
        return bool(self.product_id and self.buyer_email and self.transaction_id)

    def purchase_row(self, status: str) -> dict:
        return {
            'hotmart_transaction_id': self.transaction_id,
            'hotmart_product_id': self.product_id,
            'buyer_email': self.buyer_email,
            'buyer_name': self.buyer_name,
            'status': status,
            'raw_payload': self.raw,
        }


def validate_hottok(received: str | None, expected: str | None) -> bool:
    if not expected:
        log('error', 'hotmart', 'HOTMART_HOTTOK is not configured')
        return False
    return hmac.compare_digest(received or '', expected)


def normalize_payload(payload: dict) -> HotmartPurchase:
    payload = payload or {}
    event = payload.get('event') or ('PURCHASE_APPROVED' if get_nested(payload, 'purchase', 'status') else None)
    data = payload.get('data') or payload
    return HotmartPurchase(
        event=event,
        product_id=first_of(get_nested(data, 'product', 'id'), get_nested(payload, 'product', 'id'),
                            payload.get('product_id'), data.get('product_id')),
        buyer_email=first_of(get_nested(data, 'buyer', 'email'), get_nested(payload, 'buyer', 'email'),
                             payload.get('email'), data.get('email')),
        buyer_name=first_of(get_nested(data, 'buyer', 'name'), get_nested(payload, 'buyer', 'name')) or 'User',
        transaction_id=first_of(get_nested(data, 'purchase', 'transaction'),
                                get_nested(payload, 'purchase', 'transaction'),
                                payload.get('transaction'), data.get('transaction')),
        raw=payload,
    )


def generate_temporary_password(length: int = PASSWORD_LENGTH) -> str:
    return ''.join(secrets.choice(PASSWORD_CHARSET) for _ in range(length))


def send_welcome_email(email: str, name: str, password: str, course_name: str):
    # No mail transport yet; the credentials end up in the local log
    log('info', 'hotmart', f'Welcome e-mail for {email}', {
        'name': name, 'temporary_password': password, 'course': course_name,
    })


def create_user_with_password(backend, email: str, name: str, password: str) -> str:
    """Creates the auth user (e-mail confirmed) and its users row; returns the user id"""
    created = backend.auth.admin_create_user(email, password, {'name': name, 'created_via': 'hotmart_webhook'})
    user_id = (created or {}).get('id') or get_nested(created, 'user', 'id')
    if not user_id:
        raise FeedfyError('Error creating user', status=500)
    try:
        backend.table('users').insert({'id': user_id, 'email': email, 'name': name, 'role': 'student'}).execute()
    except BackendError as e:
        log('error', 'hotmart', f'Failed to create users row: {e.message}')
    return user_id


def _find_or_create_user(backend, purchase: HotmartPurchase, course_name: str) -> str:
    existing = backend.table('users').select('id').eq('email', purchase.buyer_email).maybe_single().execute().data
    if existing:
        return existing['id']
    password = generate_temporary_password()
    user_id = create_user_with_password(backend, purchase.buyer_email, purchase.buyer_name, password)
    send_welcome_email(purchase.buyer_email, purchase.buyer_name, password, course_name)
    return user_id


def _enroll(backend, user_id: str, course_id):
    existing = backend.table('enrollments').select('id').eq('user_id', user_id).eq('course_id', course_id) \
        .maybe_single().execute().data
    if existing:
        return
    try:
        backend.table('enrollments').insert({'user_id': user_id, 'course_id': course_id}).execute()
    except BackendError as e:
        log('error', 'hotmart', f'Failed to enroll {user_id} in course {course_id}: {e.message}')


def process_webhook(backend, payload: dict) -> tuple[dict, int]:
    """Handles one webhook call; returns (response body, status)"""
    purchase = normalize_payload(payload)
    if not purchase.is_complete():
        return {'error': 'Incomplete webhook data'}, 400

    existing = backend.table('hotmart_purchases').select('id,processed_at,user_id,course_id') \
        .eq('hotmart_transaction_id', purchase.transaction_id).maybe_single().execute().data
    if existing and existing.get('processed_at'):
        return {'message': 'Transaction already processed', 'purchase_id': existing['id']}, 200

    product = backend.table('hotmart_products').select('course_id,hotmart_product_name') \
        .eq('hotmart_product_id', purchase.product_id).maybe_single().execute().data
    if not product:
        backend.table('hotmart_purchases').insert(purchase.purchase_row('pending')).execute()
        return {'message': 'Product is not linked to a course. Purchase recorded for review.'}, 200

    course_id = product['course_id']
    course_name = product.get('hotmart_product_name') or 'Course'

    if purchase.event == 'PURCHASE_APPROVED':
        user_id = _find_or_create_user(backend, purchase, course_name)
        _enroll(backend, user_id, course_id)
        row = {**purchase.purchase_row('approved'), 'user_id': user_id, 'course_id': course_id,
               'processed_at': now_iso()}
        stored = None
        try:
            stored = backend.table('hotmart_purchases').upsert(row, on_conflict='hotmart_transaction_id') \
                .select().single().execute().data
        except BackendError as e:
            log('error', 'hotmart', f'Failed to record purchase: {e.message}')
        log('info', 'hotmart', f'Purchase {purchase.transaction_id} approved for {purchase.buyer_email}')
        return {
            'message': 'Purchase processed',
            'purchase_id': stored.get('id') if stored else None,
            'user_id': user_id,
            'course_id': course_id,
        }, 200

    if purchase.event in ('PURCHASE_REFUNDED', 'PURCHASE_CANCELED'):
        status = 'refunded' if purchase.event == 'PURCHASE_REFUNDED' else 'cancelled'
        backend.table('hotmart_purchases').update({'status': status, 'raw_payload': purchase.raw}) \
            .eq('hotmart_transaction_id', purchase.transaction_id).execute()
        return {'message': 'Purchase status updated'}, 200

    backend.table('hotmart_purchases').insert(purchase.purchase_row('pending')).execute()
    return {'message': 'Event received and recorded'}, 200


# ============================================
# ADMIN
# ============================================

def get_products(backend) -> list[dict]:
    return backend.table('hotmart_products').select(PRODUCT_SELECT) \
        .order('created_at', ascending=False).execute().data or []


def get_purchases(backend, limit: int = 100) -> list[dict]:
    return backend.table('hotmart_purchases').select(PURCHASE_SELECT) \
        .order('created_at', ascending=False).limit(limit).execute().data or []


def create_product(backend, data: dict) -> dict:
    require_user(backend)
    return backend.table('hotmart_products').insert({
        'course_id': data.get('course_id'),
        'hotmart_product_id': data.get('hotmart_product_id'),
        'hotmart_product_name': data.get('hotmart_product_name') or None,
    }).select(PRODUCT_SELECT).single().execute().data


def update_product(backend, product_id, data: dict) -> dict:
    require_user(backend)
    values = {k: v for k, v in data.items() if k in PRODUCT_FIELDS}
    return backend.table('hotmart_products').update(values).eq('id', product_id) \
        .select(PRODUCT_SELECT).single().execute().data


def delete_product(backend, product_id):
    require_user(backend)
    backend.table('hotmart_products').delete().eq('id', product_id).execute()
