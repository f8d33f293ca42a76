"""
Course content: modules, lessons, ordering and lesson progress.

`order` is a plain integer column. New items go to the end (max + 1, or 0
for the first one); a reorder rewrites the whole list to 1..n in the order
given by the client.
"""

import math

from feedfy.errors import FeedfyError, BackendError
from feedfy.media import parse_video_url
from feedfy.services import require_user

MODULE_FIELDS = ('course_id', 'title', 'order', 'description')
LESSON_FIELDS = ('module_id', 'title', 'video_embed_url', 'description', 'duration', 'order', 'content')


def _pick(data: dict, fields) -> dict:
    return {k: v for k, v in data.items() if k in fields}


def _next_order(backend, table: str, column: str, parent_id) -> int:
    rows = backend.table(table).select('order').eq(column, parent_id) \
        .order('order', ascending=False).limit(1).execute().data or []
    return rows[0]['order'] + 1 if rows and rows[0].get('order') is not None else 0


def _reorder(backend, table: str, ids: list, label: str):
    errors = []
    for index, item_id in enumerate(ids):
        try:
            backend.table(table).update({'order': index + 1}).eq('id', item_id).execute()
        except BackendError as e:
            errors.append(e)
    if errors:
        raise FeedfyError(f'Error reordering {label}: {errors[0].message}')


# ============================================
# MODULES
# ============================================

def get_modules(backend, course_id) -> list[dict]:
    return backend.table('modules').select('*').eq('course_id', course_id) \
        .order('order', ascending=True).execute().data or []


def create_module(backend, data: dict) -> dict:
    fields = _pick(data, MODULE_FIELDS)
    if fields.get('order') is None:
        fields['order'] = _next_order(backend, 'modules', 'course_id', fields['course_id'])
    return backend.table('modules').insert(fields).select().single().execute().data


def update_module(backend, module_id, data: dict) -> dict:
    return backend.table('modules').update(_pick(data, MODULE_FIELDS)).eq('id', module_id) \
        .select().single().execute().data


def delete_module(backend, module_id):
    """Deletes the module and returns its course id (None if it did not exist)"""
    module = backend.table('modules').select('course_id').eq('id', module_id).maybe_single().execute().data
    backend.table('modules').delete().eq('id', module_id).execute()
    return module['course_id'] if module else None


def reorder_modules(backend, course_id, module_ids: list) -> dict:
    _reorder(backend, 'modules', module_ids, 'modules')
    return {'course_id': course_id, 'module_ids': module_ids}


# ============================================
# LESSONS
# ============================================

def get_lessons(backend, module_id) -> list[dict]:
    return backend.table('lessons').select('*').eq('module_id', module_id) \
        .order('order', ascending=True).execute().data or []


def lesson_with_video(lesson: dict) -> dict:
    video = parse_video_url(lesson.get('video_embed_url'))
    return {**lesson, 'video': video.to_dict() if video else None}


def create_lesson(backend, data: dict) -> dict:
    fields = _pick(data, LESSON_FIELDS)
    if fields.get('order') is None:
        fields['order'] = _next_order(backend, 'lessons', 'module_id', fields['module_id'])
    return backend.table('lessons').insert(fields).select().single().execute().data


def update_lesson(backend, lesson_id, data: dict) -> dict:
    return backend.table('lessons').update(_pick(data, LESSON_FIELDS)).eq('id', lesson_id) \
        .select().single().execute().data


def delete_lesson(backend, lesson_id):
    """Deletes the lesson and returns its module id (None if it did not exist)"""
    lesson = backend.table('lessons').select('module_id').eq('id', lesson_id).maybe_single().execute().data
    backend.table('lessons').delete().eq('id', lesson_id).execute()
    return lesson['module_id'] if lesson else None


def reorder_lessons(backend, module_id, lesson_ids: list) -> dict:
    _reorder(backend, 'lessons', lesson_ids, 'lessons')
    return {'module_id': module_id, 'lesson_ids': lesson_ids}


# ============================================
# PROGRESS
# ============================================

def course_lesson_ids(backend, course_id) -> list:
    modules = backend.table('modules').select('id').eq('course_id', course_id).execute().data or []
    if not modules:
        return []
    lessons = backend.table('lessons').select('id').in_('module_id', [m['id'] for m in modules]).execute().data or []
    return [l['id'] for l in lessons]


def get_lesson_progress(backend, course_id) -> list:
    """Ids of the completed lessons of a course"""
    user = backend.auth.get_user()
    if not user:
        return []
    lesson_ids = course_lesson_ids(backend, course_id)
    if not lesson_ids:
        return []
    rows = backend.table('lesson_progress').select('lesson_id').eq('user_id', user['id']) \
        .in_('lesson_id', lesson_ids).execute().data or []
    return [r['lesson_id'] for r in rows]


def mark_lesson_complete(backend, lesson_id):
    """Returns the course id of the lesson (for cache invalidation)"""
    user = require_user(backend)
    backend.table('lesson_progress').insert({'user_id': user['id'], 'lesson_id': lesson_id}).execute()
    lesson = backend.table('lessons').select('module_id,modules!module_id(course_id)') \
        .eq('id', lesson_id).maybe_single().execute().data
    if lesson and lesson.get('modules'):
        return lesson['modules']['course_id']
    return None


def get_course_progress(backend, course_id) -> dict:
    completed = len(get_lesson_progress(backend, course_id))
    total = len(course_lesson_ids(backend, course_id))
    progress = math.floor(completed / total * 100 + 0.5) if total > 0 else 0
    return {'progress': progress, 'completed': completed, 'total': total}
