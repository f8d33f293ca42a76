"""
Sales pages shown for locked courses.
"""

from feedfy.errors import BackendError, is_code
from feedfy.services import require_user

PAGE_FIELDS = ('course_id', 'title', 'description', 'hero_image_url', 'hero_image_data', 'hero_image_mime_type',
               'checkout_url', 'button_text', 'price_text', 'bonus_value', 'features', 'bonus',
               'additional_content', 'guarantee_text', 'payment_info', 'is_active')
PAGE_SELECT = '*,courses!course_id(id,title)'


def _pick(data: dict) -> dict:
    return {k: v for k, v in data.items() if k in PAGE_FIELDS}


def normalize_bonus(bonus) -> list[dict]:
    """Bonus items as {name, price}; legacy entries are plain strings"""
    items = []
    for item in bonus or []:
        if isinstance(item, str):
            items.append({'name': item, 'price': ''})
        elif isinstance(item, dict):
            items.append({'name': item.get('name', ''), 'price': item.get('price', '')})
    return items


def get_unlock_pages(backend) -> list[dict]:
    return backend.table('course_unlock_pages').select(PAGE_SELECT) \
        .order('created_at', ascending=False).execute().data or []


def get_unlock_page(backend, course_id) -> dict | None:
    """The active page of a course"""
    if not course_id:
        return None
    try:
        return backend.table('course_unlock_pages').select(PAGE_SELECT).eq('course_id', course_id) \
            .eq('is_active', True).single().execute().data
    except BackendError as e:
        if is_code(e, 'PGRST116'):
            return None
        raise


def create_unlock_page(backend, data: dict) -> dict:
    require_user(backend)
    fields = _pick(data)
    fields['features'] = fields.get('features') or []
    return backend.table('course_unlock_pages').insert(fields).select(PAGE_SELECT).single().execute().data


def update_unlock_page(backend, page_id, data: dict) -> dict:
    require_user(backend)
    return backend.table('course_unlock_pages').update(_pick(data)).eq('id', page_id) \
        .select(PAGE_SELECT).single().execute().data


def delete_unlock_page(backend, page_id):
    require_user(backend)
    backend.table('course_unlock_pages').delete().eq('id', page_id).execute()
