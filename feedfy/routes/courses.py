from flask import jsonify, request

from feedfy.context import get_backend, cached, invalidate, require_user, require_admin, json_body
from feedfy.errors import NotFound, FeedfyError
from feedfy.services import course_communities, course_content, course_invites, courses, unlock_pages

COURSE_KEYS = (('courses',), ('community-courses',), ('course',))


def _with_cover(course: dict) -> dict:
    return {**course, 'cover_url': courses.course_cover_url(course)}


def register(app):
    # ============================================
    # COURSES
    # ============================================

    @app.route('/api/courses')
    def list_courses():
        """?community_id=... restricts to the courses linked to that community"""
        backend = get_backend()
        community_id = request.args.get('community_id')
        if community_id:
            rows = cached('community-courses', community_id,
                          fn=lambda: courses.get_courses_by_community(backend, community_id))
        else:
            rows = cached('courses', fn=lambda: courses.get_all_courses(backend))
        return jsonify([_with_cover(c) for c in rows])

    @app.route('/api/courses/enrolled')
    def enrolled_courses():
        return jsonify(cached('enrolled-courses', fn=lambda: courses.get_enrolled_courses(get_backend())))

    @app.route('/api/courses/<course_id>')
    def get_course(course_id):
        course = cached('course', course_id, fn=lambda: courses.get_course_by_id(get_backend(), course_id))
        if not course:
            raise NotFound('Course not found')
        return jsonify(_with_cover(course))

    @app.route('/api/courses', methods=['POST'])
    def create_course():
        require_admin()
        course = courses.create_course(get_backend(), json_body())
        invalidate(*COURSE_KEYS)
        return jsonify(course), 201

    @app.route('/api/courses/<course_id>', methods=['PUT'])
    def update_course(course_id):
        require_admin()
        course = courses.update_course(get_backend(), course_id, json_body())
        invalidate(*COURSE_KEYS)
        return jsonify(course)

    @app.route('/api/courses/<course_id>', methods=['DELETE'])
    def delete_course(course_id):
        require_admin()
        courses.delete_course(get_backend(), course_id)
        invalidate(*COURSE_KEYS)
        return '', 204

    @app.route('/api/courses/<course_id>/enroll', methods=['POST'])
    def enroll(course_id):
        courses.enroll_in_course(get_backend(), course_id)
        invalidate(('enrolled-courses',), ('enrolled-course-ids',), ('all-posts',))
        return jsonify({'status': 'ok'})

    @app.route('/api/courses/<course_id>/enrolled')
    def is_enrolled(course_id):
        return jsonify({'enrolled': courses.is_enrolled(get_backend(), course_id)})

    @app.route('/api/courses/<course_id>/access')
    def course_access(course_id):
        return jsonify({'access': course_invites.has_course_access(get_backend(), course_id)})

    @app.route('/api/communities/<community_id>/default-course', methods=['POST'])
    def default_course(community_id):
        course_id = courses.get_or_create_default_course(get_backend(), community_id)
        invalidate(*COURSE_KEYS, ('enrolled-courses',), ('enrolled-course-ids',))
        return jsonify({'course_id': course_id})

    # ============================================
    # MODULES / LESSONS
    # ============================================

    @app.route('/api/courses/<course_id>/modules')
    def list_modules(course_id):
        return jsonify(cached('modules', course_id, fn=lambda: course_content.get_modules(get_backend(), course_id)))

    @app.route('/api/modules', methods=['POST'])
    def create_module():
        require_admin()
        module = course_content.create_module(get_backend(), json_body())
        invalidate(('admin-modules', module['course_id']), ('modules', module['course_id']))
        return jsonify(module), 201

    @app.route('/api/modules/<module_id>', methods=['PUT'])
    def update_module(module_id):
        require_admin()
        module = course_content.update_module(get_backend(), module_id, json_body())
        invalidate(('admin-modules', module['course_id']), ('modules', module['course_id']))
        return jsonify(module)

    @app.route('/api/modules/<module_id>', methods=['DELETE'])
    def delete_module(module_id):
        require_admin()
        course_id = course_content.delete_module(get_backend(), module_id)
        if course_id is not None:
            invalidate(('admin-modules', course_id), ('modules', course_id))
        return '', 204

    @app.route('/api/courses/<course_id>/modules/reorder', methods=['POST'])
    def reorder_modules(course_id):
        require_admin()
        result = course_content.reorder_modules(get_backend(), course_id, json_body().get('ids') or [])
        invalidate(('admin-modules', course_id), ('modules', course_id))
        return jsonify(result)

    @app.route('/api/modules/<module_id>/lessons')
    def list_lessons(module_id):
        rows = cached('lessons', module_id, fn=lambda: course_content.get_lessons(get_backend(), module_id))
        return jsonify([course_content.lesson_with_video(l) for l in rows])

    @app.route('/api/lessons', methods=['POST'])
    def create_lesson():
        require_admin()
        lesson = course_content.create_lesson(get_backend(), json_body())
        invalidate(('admin-lessons', lesson['module_id']), ('lessons', lesson['module_id']))
        return jsonify(lesson), 201

    @app.route('/api/lessons/<lesson_id>', methods=['PUT'])
    def update_lesson(lesson_id):
        require_admin()
        lesson = course_content.update_lesson(get_backend(), lesson_id, json_body())
        invalidate(('admin-lessons', lesson['module_id']), ('lessons', lesson['module_id']))
        return jsonify(lesson)

    @app.route('/api/lessons/<lesson_id>', methods=['DELETE'])
    def delete_lesson(lesson_id):
        require_admin()
        module_id = course_content.delete_lesson(get_backend(), lesson_id)
        if module_id is not None:
            invalidate(('admin-lessons', module_id), ('lessons', module_id))
        return '', 204

    @app.route('/api/modules/<module_id>/lessons/reorder', methods=['POST'])
    def reorder_lessons(module_id):
        require_admin()
        result = course_content.reorder_lessons(get_backend(), module_id, json_body().get('ids') or [])
        invalidate(('admin-lessons', module_id), ('lessons', module_id))
        return jsonify(result)

    # === Progress ===

    @app.route('/api/courses/<course_id>/progress')
    def course_progress(course_id):
        return jsonify(cached('course-progress', course_id,
                              fn=lambda: course_content.get_course_progress(get_backend(), course_id)))

    @app.route('/api/courses/<course_id>/lesson-progress')
    def lesson_progress(course_id):
        return jsonify(cached('lesson-progress', course_id,
                              fn=lambda: course_content.get_lesson_progress(get_backend(), course_id)))

    @app.route('/api/lessons/<lesson_id>/complete', methods=['POST'])
    def complete_lesson(lesson_id):
        course_id = course_content.mark_lesson_complete(get_backend(), lesson_id)
        if course_id is not None:
            invalidate(('lesson-progress', course_id), ('course-progress', course_id))
        return jsonify({'status': 'ok', 'course_id': course_id})

    # ============================================
    # COURSE INVITES
    # ============================================

    @app.route('/api/courses/<course_id>/invites')
    def list_course_invites(course_id):
        require_admin()
        return jsonify(course_invites.get_course_invites(get_backend(), course_id))

    @app.route('/api/courses/<course_id>/invites', methods=['POST'])
    def create_course_invite(course_id):
        require_admin()
        data = json_body()
        if not data.get('email'):
            raise FeedfyError('E-mail is required')
        invite = course_invites.create_course_invite(get_backend(), course_id, data['email'], data.get('expires_at'))
        invalidate(('course-invites', course_id))
        return jsonify(invite), 201

    @app.route('/api/course-invites/<invite_id>', methods=['DELETE'])
    def delete_course_invite(invite_id):
        require_admin()
        course_invites.delete_course_invite(get_backend(), invite_id)
        invalidate(('course-invites',))
        return '', 204

    @app.route('/api/course-invites/token/<token>')
    def course_invite_by_token(token):
        return jsonify(course_invites.get_invite_by_token(get_backend(), token))

    @app.route('/api/course-invites/token/<token>/accept', methods=['POST'])
    def accept_course_invite(token):
        require_user()
        course_id = course_invites.accept_course_invite(get_backend(), token)
        invalidate(('enrolled-courses',), ('enrolled-course-ids',), ('course-invites',), ('all-posts',))
        return jsonify({'course_id': course_id})

    # ============================================
    # COURSE <-> COMMUNITY LINKS
    # ============================================

    @app.route('/api/courses/<course_id>/communities')
    def list_course_communities(course_id):
        return jsonify(course_communities.get_course_communities(get_backend(), course_id))

    @app.route('/api/courses/<course_id>/communities', methods=['PUT'])
    def set_course_communities(course_id):
        require_admin()
        result = course_communities.set_course_communities(get_backend(), course_id,
                                                           json_body().get('community_ids') or [])
        invalidate(('course-communities', course_id), ('community-courses',))
        return jsonify(result)

    @app.route('/api/courses/<course_id>/communities/<community_id>', methods=['POST'])
    def add_course_community(course_id, community_id):
        require_admin()
        row = course_communities.add_course_community(get_backend(), course_id, community_id)
        invalidate(('course-communities', course_id), ('community-courses', community_id))
        return jsonify(row), 201

    @app.route('/api/courses/<course_id>/communities/<community_id>', methods=['DELETE'])
    def remove_course_community(course_id, community_id):
        require_admin()
        course_communities.remove_course_community(get_backend(), course_id, community_id)
        invalidate(('course-communities', course_id), ('community-courses', community_id))
        return '', 204

    # ============================================
    # UNLOCK PAGES
    # ============================================

    @app.route('/api/unlock-pages')
    def list_unlock_pages():
        require_admin()
        return jsonify(cached('unlock-pages', fn=lambda: unlock_pages.get_unlock_pages(get_backend())))

    @app.route('/api/courses/<course_id>/unlock-page')
    def course_unlock_page(course_id):
        page = cached('unlock-page', course_id, fn=lambda: unlock_pages.get_unlock_page(get_backend(), course_id))
        if page:
            page = {**page, 'bonus': unlock_pages.normalize_bonus(page.get('bonus'))}
        return jsonify(page)

    @app.route('/api/unlock-pages', methods=['POST'])
    def create_unlock_page():
        require_admin()
        page = unlock_pages.create_unlock_page(get_backend(), json_body())
        invalidate(('unlock-pages',), ('unlock-page', page['course_id']))
        return jsonify(page), 201

    @app.route('/api/unlock-pages/<page_id>', methods=['PUT'])
    def update_unlock_page(page_id):
        require_admin()
        page = unlock_pages.update_unlock_page(get_backend(), page_id, json_body())
        invalidate(('unlock-pages',), ('unlock-page', page['course_id']))
        return jsonify(page)

    @app.route('/api/unlock-pages/<page_id>', methods=['DELETE'])
    def delete_unlock_page(page_id):
        require_admin()
        unlock_pages.delete_unlock_page(get_backend(), page_id)
        invalidate(('unlock-pages',), ('unlock-page',))
        return '', 204
