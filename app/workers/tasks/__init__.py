from app.workers.tasks.feed_broadcast import broadcast_feed_post

__all__ = [
    "broadcast_feed_post",
]
