"""
Dashboard Aggregator

Read-only analytics for the admin dashboard: month-over-month growth,
engagement rankings per category, author and post, and a merged feed of
recent activity. Engagement is comments * 2 + likes, where comments count
every comment of a post at any depth.

Any failing query fails the whole payload; partial dashboards are never
returned.
"""

import calendar
from datetime import datetime
from typing import Dict, List, Optional

import config
from database import COLL_COMMENTS, COLL_POSTS, COLL_USERS, ContentStore, utcnow
from exceptions import StoreError
from logger import get_logger

logger = get_logger(__name__)

# Posts with per-post comment and like counts
POST_COUNTS_STAGES = [
    {"$lookup": {"from": COLL_COMMENTS, "localField": "_id", "foreignField": "blog", "as": "thread"}},
    {"$project": {
        "title": 1,
        "category": 1,
        "status": 1,
        "author": 1,
        "created_at": 1,
        "comment_count": {"$size": "$thread"},
        "like_count": {"$size": {"$ifNull": ["$likes", []]}},
    }},
]

GROUP_ENGAGEMENT = {"$add": [{"$multiply": ["$total_comments", 2]}, "$total_likes"]}


def month_ago(now: datetime) -> datetime:
    """Midnight of the same day-of-month one calendar month before now, clamped to month length."""
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day, hour=0, minute=0, second=0, microsecond=0)


def percent_change(current: int, last: int) -> float:
    if last == 0:
        return 100.0 if current > 0 else 0.0
    return (current - last) / last * 100


def format_change(value: float) -> str:
    return f"{value:.1f}%"


class DashboardService:
    """Aggregations over the users, posts and comments collections."""

    def __init__(self, store: ContentStore):
        self.store = store

    def stats(self, now: Optional[datetime] = None) -> Dict:
        """The full dashboard payload. Raises StoreError if any part fails."""
        try:
            return {
                "success": True,
                "stats": self.growth(now),
                "blogs_by_category": self.category_engagement(),
                "top_authors": self.top_authors(),
                "recent_activity": self.recent_activity(),
                "popular_blogs": self.popular_posts(),
            }
        except StoreError as e:
            logger.error(f"Dashboard stats failed: {e.details or e.message}")
            raise StoreError("Failed to get dashboard statistics", details=e.details) from e

    def growth(self, now: Optional[datetime] = None) -> Dict:
        cutoff = month_ago(now or utcnow())
        stats = {}
        for key, collection in (("users", COLL_USERS), ("blogs", COLL_POSTS), ("comments", COLL_COMMENTS)):
            current = self.store.count(collection)
            last = self.store.count(collection, {"created_at": {"$lt": cutoff}})
            stats[key] = {
                "count": current,
                "change": format_change(percent_change(current, last)),
                "period": "from last month",
            }
        return stats

    def category_engagement(self) -> List[Dict]:
        pipeline = POST_COUNTS_STAGES + [
            {"$group": {
                "_id": "$category",
                "count": {"$sum": 1},
                "total_comments": {"$sum": "$comment_count"},
                "total_likes": {"$sum": "$like_count"},
            }},
            {"$project": {
                "_id": 0,
                "category": "$_id",
                "count": 1,
                "total_comments": 1,
                "total_likes": 1,
                "engagement": GROUP_ENGAGEMENT,
            }},
            {"$sort": {"engagement": -1, "category": 1}},
        ]
        return self.store.aggregate(COLL_POSTS, pipeline)

    def top_authors(self, limit: int = config.TOP_AUTHORS_LIMIT) -> List[Dict]:
        """Authors ranked by engagement; authors whose user record is gone are dropped."""
        pipeline = POST_COUNTS_STAGES + [
            {"$group": {
                "_id": "$author",
                "blog_count": {"$sum": 1},
                "total_comments": {"$sum": "$comment_count"},
                "total_likes": {"$sum": "$like_count"},
            }},
            {"$project": {
                "blog_count": 1,
                "total_comments": 1,
                "total_likes": 1,
                "engagement": GROUP_ENGAGEMENT,
            }},
            {"$sort": {"engagement": -1}},
        ]
        rows = self.store.aggregate(COLL_POSTS, pipeline)
        names = self.store.names_by_id(r["_id"] for r in rows)
        authors = []
        for row in rows:
            name = names.get(row["_id"])
            if not name:
                continue
            authors.append({
                "user_id": str(row["_id"]),
                "name": name,
                "blog_count": row["blog_count"],
                "total_comments": row["total_comments"],
                "total_likes": row["total_likes"],
                "engagement": row["engagement"],
            })
        return authors[:limit]

    def popular_posts(self, limit: int = config.POPULAR_POSTS_LIMIT) -> List[Dict]:
        pipeline = POST_COUNTS_STAGES + [
            {"$addFields": {
                "engagement": {"$add": [{"$multiply": ["$comment_count", 2]}, "$like_count"]},
            }},
            {"$sort": {"engagement": -1, "created_at": -1}},
            {"$limit": limit},
        ]
        rows = self.store.aggregate(COLL_POSTS, pipeline)
        names = self.store.names_by_id(r.get("author") for r in rows)
        return [{
            "_id": str(r["_id"]),
            "title": r.get("title"),
            "category": r.get("category"),
            "status": r.get("status"),
            "created_at": r.get("created_at"),
            "author_name": names.get(r.get("author")),
            "comment_count": r["comment_count"],
            "like_count": r["like_count"],
            "engagement": r["engagement"],
        } for r in rows]

    def _newest(self, per_kind: int):
        """The newest users, posts and comments, plus the author names and post titles they refer to."""
        newest = [("created_at", -1), ("_id", -1)]
        users = self.store.find_many(
            COLL_USERS, sort=newest, limit=per_kind,
            projection={"name": 1, "email": 1, "role": 1, "created_at": 1},
        )
        posts = self.store.find_many(
            COLL_POSTS, sort=newest, limit=per_kind,
            projection={"title": 1, "author": 1, "category": 1, "status": 1, "created_at": 1},
        )
        comments = self.store.find_many(
            COLL_COMMENTS, sort=newest, limit=per_kind,
            projection={"content": 1, "user": 1, "blog": 1, "created_at": 1},
        )

        names = self.store.names_by_id(
            [p.get("author") for p in posts] + [c.get("user") for c in comments]
        )
        post_ids = list({c["blog"] for c in comments if c.get("blog")})
        titles = {}
        if post_ids:
            titles = {
                p["_id"]: p.get("title")
                for p in self.store.find_many(COLL_POSTS, {"_id": {"$in": post_ids}}, projection={"title": 1})
            }
        return users, posts, comments, names, titles

    @staticmethod
    def _newest_first(activity: List[Dict], limit: int) -> List[Dict]:
        activity.sort(key=lambda item: item["timestamp"] or datetime.min, reverse=True)
        return activity[:limit]

    def recent_activity(self, per_kind: int = config.DASHBOARD_RECENT_PER_KIND,
                        limit: int = config.DASHBOARD_ACTIVITY_LIMIT) -> List[Dict]:
        """Newest users, posts and comments merged into one feed, newest first."""
        users, posts, comments, names, titles = self._newest(per_kind)

        activity = []
        for user in users:
            activity.append({
                "type": "user",
                "action": "registered",
                "message": f"{user.get('name')} joined the platform",
                "details": {"email": user.get("email"), "role": user.get("role")},
                "user": {"_id": str(user["_id"]), "name": user.get("name")},
                "timestamp": user.get("created_at"),
            })
        for post in posts:
            author = names.get(post.get("author")) or "Unknown"
            activity.append({
                "type": "blog",
                "action": "created",
                "message": f'{author} published "{post.get("title")}"',
                "details": {"category": post.get("category"), "status": post.get("status")},
                "blog": {"_id": str(post["_id"]), "title": post.get("title")},
                "timestamp": post.get("created_at"),
            })
        for comment in comments:
            author = names.get(comment.get("user")) or "Unknown"
            title = titles.get(comment.get("blog")) or "Unknown Blog"
            content = comment.get("content", "")
            preview = content[:config.COMMENT_PREVIEW_LENGTH]
            if len(content) > config.COMMENT_PREVIEW_LENGTH:
                preview += "..."
            activity.append({
                "type": "comment",
                "action": "commented",
                "message": f'{author} commented on "{title}"',
                "details": {"content": preview},
                "blog": {"_id": str(comment["blog"]) if comment.get("blog") else None, "title": title},
                "timestamp": comment.get("created_at"),
            })
        return self._newest_first(activity, limit)

    def activity_feed(self, per_kind: int = config.ACTIVITY_PER_KIND,
                      limit: int = config.ACTIVITY_LIMIT) -> List[Dict]:
        """
        The standalone activity feed.

        Shorter than the stats feed and worded as announcements. Posts whose
        author is gone and comments whose author or post is gone are left out.
        """
        try:
            users, posts, comments, names, titles = self._newest(per_kind)
        except StoreError as e:
            raise StoreError("Failed to fetch recent activity", details=e.details) from e

        activity = []
        for user in users:
            activity.append({
                "type": "user",
                "message": f"New user registered: {user.get('name')}",
                "timestamp": user.get("created_at"),
                "user": {"_id": str(user["_id"]), "name": user.get("name")},
            })
        for post in posts:
            author = names.get(post.get("author"))
            if not author:
                continue
            activity.append({
                "type": "blog",
                "message": f'New blog posted: "{post.get("title")}" by {author}',
                "timestamp": post.get("created_at"),
                "user": {"_id": str(post["author"]), "name": author},
                "blog": {"_id": str(post["_id"]), "title": post.get("title")},
            })
        for comment in comments:
            author = names.get(comment.get("user"))
            title = titles.get(comment.get("blog"))
            if not author or not title:
                continue
            activity.append({
                "type": "comment",
                "message": f'New comment on "{title}" by {author}',
                "timestamp": comment.get("created_at"),
                "user": {"_id": str(comment["user"]), "name": author},
                "blog": {"_id": str(comment["blog"]), "title": title},
            })
        return self._newest_first(activity, limit)
