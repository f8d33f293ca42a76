"""
Which communities a course is published in (course_communities).
"""


def get_course_communities(backend, course_id) -> list[dict]:
    rows = backend.table('course_communities') \
        .select('id,community_id,communities!community_id(id,name,slug,logo_url,logo_data,logo_mime_type)') \
        .eq('course_id', course_id).execute().data or []
    return [{'id': r['community_id'], **(r.get('communities') or {})} for r in rows]


def get_course_community_ids(backend, course_id) -> list:
    rows = backend.table('course_communities').select('community_id').eq('course_id', course_id).execute().data or []
    return [r['community_id'] for r in rows]


def set_course_communities(backend, course_id, community_ids: list) -> dict:
    """Adds the missing links and removes the extra ones"""
    current = get_course_community_ids(backend, course_id)
    to_add = [c for c in community_ids if c not in current]
    to_remove = [c for c in current if c not in community_ids]
    if to_remove:
        backend.table('course_communities').delete().eq('course_id', course_id) \
            .in_('community_id', to_remove).execute()
    if to_add:
        backend.table('course_communities').insert(
            [{'course_id': course_id, 'community_id': c} for c in to_add]).execute()
    return {'added': to_add, 'removed': to_remove}


def add_course_community(backend, course_id, community_id) -> dict:
    return backend.table('course_communities').insert({'course_id': course_id, 'community_id': community_id}) \
        .select().single().execute().data


def remove_course_community(backend, course_id, community_id):
    backend.table('course_communities').delete().eq('course_id', course_id) \
        .eq('community_id', community_id).execute()
