"""
Courses and enrollments.
"""

from feedfy.errors import NotFound, PermissionDenied, is_code, BackendError
from feedfy.media import image_data_url
from feedfy.services import require_user, now_iso

DEFAULT_COURSE_TITLE = 'General'


def _ordered(query):
    return query.order('order', ascending=True, nulls_first=False).order('created_at', ascending=False)


def get_all_courses(backend) -> list[dict]:
    return _ordered(backend.table('courses').select('*')).execute().data or []


def get_courses_by_community(backend, community_id) -> list[dict]:
    links = backend.table('course_communities').select('course_id').eq('community_id', community_id).execute().data or []
    if not links:
        return []
    return _ordered(backend.table('courses').select('*').in_('id', [l['course_id'] for l in links])).execute().data or []


def get_course_by_id(backend, course_id) -> dict | None:
    try:
        return backend.table('courses').select('*').eq('id', course_id).single().execute().data
    except BackendError as e:
        if is_code(e, 'PGRST116'):
            return None
        raise


def get_enrolled_courses(backend) -> list:
    user = backend.auth.get_user()
    if not user:
        return []
    rows = backend.table('enrollments').select('course_id').eq('user_id', user['id']).execute().data or []
    return [r['course_id'] for r in rows]


def is_enrolled(backend, course_id) -> bool:
    return str(course_id) in {str(c) for c in get_enrolled_courses(backend)}


def enroll_in_course(backend, course_id):
    user = require_user(backend)
    course = get_course_by_id(backend, course_id)
    if not course:
        raise NotFound('Course not found')
    if course.get('is_locked'):
        raise PermissionDenied('This course is locked. A purchase or an invite is required to access it.')
    backend.table('enrollments').insert({'user_id': user['id'], 'course_id': course_id}).execute()


def get_or_create_default_course(backend, community_id):
    """First course of the community, or a new 'General' course (enrolled)"""
    user = require_user(backend)
    existing = backend.table('courses').select('id').eq('community_id', community_id).limit(1).execute().data or []
    if existing:
        return existing[0]['id']
    course = backend.table('courses').insert({
        'title': DEFAULT_COURSE_TITLE,
        'description': 'Default course for community posts',
        'community_id': community_id,
        'created_by': user['id'],
    }).select('id').single().execute().data
    enroll_in_course(backend, course['id'])
    return course['id']


def create_course(backend, data: dict) -> dict:
    fields = {k: v for k, v in data.items() if k not in ('id', 'created_at', 'updated_at')}
    return backend.table('courses').insert(fields).select().single().execute().data


def update_course(backend, course_id, updates: dict) -> dict:
    fields = {k: v for k, v in updates.items() if k not in ('id', 'created_at', 'updated_at')}
    return backend.table('courses').update({**fields, 'updated_at': now_iso()}).eq('id', course_id) \
        .select().single().execute().data


def delete_course(backend, course_id):
    backend.table('courses').delete().eq('id', course_id).execute()


def course_cover_url(course: dict | None) -> str | None:
    if not course:
        return None
    return image_data_url(course.get('cover_image_data'), course.get('cover_image_mime_type'),
                          course.get('cover_image_url'))
