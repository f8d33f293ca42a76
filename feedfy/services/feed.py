"""
"New posts" badge of the feed, driven by the posts change feed.
"""


class FeedWatcher:
    """Counts posts inserted into the watched courses until dismissed"""

    def __init__(self, course_ids: list = None):
        self.course_ids = {str(c) for c in course_ids or []}
        self.new_post_count = 0
        self.has_new_posts = False

    def watch(self, course_ids: list):
        self.course_ids = {str(c) for c in course_ids or []}

    def on_insert(self, payload: dict):
        post = payload.get('record') or {}
        if str(post.get('course_id')) in self.course_ids:
            self.new_post_count += 1
            self.has_new_posts = True

    def dismiss(self):
        self.new_post_count = 0
        self.has_new_posts = False

    def to_dict(self) -> dict:
        return {'has_new_posts': self.has_new_posts, 'new_post_count': self.new_post_count}


def feed_watcher(feed, user_id: str, course_ids: list) -> FeedWatcher | None:
    """The user's watcher on feed-realtime:<uid>; None (and unsubscribed) without courses"""
    name = f'feed-realtime:{user_id}'
    if not course_ids:
        feed.remove_channel(name)
        return None
    channel = feed.channel(name)
    if 'watcher' not in channel.state:
        watcher = FeedWatcher(course_ids)
        channel.state['watcher'] = watcher
        channel.on('INSERT', 'posts', watcher.on_insert).subscribe()
    watcher = channel.state['watcher']
    watcher.watch(course_ids)
    return watcher
