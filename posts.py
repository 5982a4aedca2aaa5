"""
Post Lifecycle Manager

Create, read, update, delete and like-toggle for blog posts. Drafts are
only visible to their author and to admins. Deleting a post first removes
its comments; if that fails the post is left in place.
"""

import re
from typing import Dict, List, Optional

from bson import ObjectId

import config
from auth import Identity
from comments import CommentService
from database import COLL_POSTS, ContentStore, parse_object_id, serialize, utcnow
from exceptions import Forbidden, NotFound, ValidationError
from logger import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("title", "content", "category", "status", "image")


def slugify(text: str) -> str:
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"[\s-]+", "-", text)
    return text.strip("-")


def _check_category(category):
    if category not in config.CATEGORIES:
        raise ValidationError(f"Category must be one of: {', '.join(config.CATEGORIES)}")


def _check_status(status):
    if status not in config.POST_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(config.POST_STATUSES)}")


class PostService:
    """Blog post operations over the content store."""

    def __init__(self, store: ContentStore):
        self.store = store
        self.comments = CommentService(store)

    def _load(self, post_id) -> Dict:
        post = self.store.find_by_id(COLL_POSTS, post_id)
        if not post:
            raise NotFound("Blog not found")
        return post

    def _unique_slug(self, title: str, exclude_id: Optional[ObjectId] = None) -> str:
        base = slugify(title) or "post"
        candidate = base
        suffix = 2
        while True:
            query = {"slug": candidate}
            if exclude_id is not None:
                query["_id"] = {"$ne": exclude_id}
            if not self.store.find_one(COLL_POSTS, query, projection={"_id": 1}):
                return candidate
            candidate = f"{base}-{suffix}"
            suffix += 1

    def _present(self, post: Dict, names: Dict[ObjectId, str]) -> Dict:
        out = serialize(post)
        out["author"] = {"_id": str(post["author"]), "name": names.get(post["author"])}
        out["comments_count"] = len(post.get("comments", []))
        out["likes_count"] = len(post.get("likes", []))
        return out

    def _present_one(self, post: Dict) -> Dict:
        return self._present(post, self.store.names_by_id([post["author"]]))

    def create(self, author_id, title: str, content: str, category: str,
               image: Optional[str] = None) -> Dict:
        title = (title or "").strip()
        content = (content or "").strip()
        if not title or not content or not category:
            raise ValidationError("Title, content and category are required")
        _check_category(category)
        author = parse_object_id(author_id)
        if author is None:
            raise ValidationError("Invalid author id")

        doc = {
            "title": title,
            "content": content,
            "category": category,
            "slug": self._unique_slug(title),
            "image": image,
            "status": "draft",
            "author": author,
            "likes": [],
            "comments": [],
        }
        doc["_id"] = self.store.insert(COLL_POSTS, doc)
        logger.info(f"Post {doc['_id']} '{doc['slug']}' created by {author}")
        return self._present_one(self.store.find_by_id(COLL_POSTS, doc["_id"]))

    def list(self, category: Optional[str] = None, author_id: Optional[str] = None,
             include_unpublished: bool = False) -> List[Dict]:
        """Posts newest first; only published ones unless include_unpublished."""
        query = {}
        if not include_unpublished:
            query["status"] = "published"
        if category:
            query["category"] = category
        if author_id:
            author = parse_object_id(author_id)
            if author is None:
                return []
            query["author"] = author

        posts = self.store.find_many(COLL_POSTS, query, sort=[("created_at", -1), ("_id", -1)])
        names = self.store.names_by_id(p["author"] for p in posts)
        return [self._present(p, names) for p in posts]

    def get(self, key: str, viewer: Optional[Identity] = None) -> Dict:
        """Look a post up by slug, then by id, with its comment thread attached."""
        post = self.store.find_one(COLL_POSTS, {"slug": key})
        if not post:
            post = self.store.find_by_id(COLL_POSTS, key)
        if not post:
            raise NotFound("Blog not found")
        if post.get("status") != "published" and not self._can_see_draft(post, viewer):
            raise NotFound("Blog not found")

        out = self._present_one(post)
        out["comments"] = self.comments.thread(post)
        return out

    @staticmethod
    def _can_see_draft(post: Dict, viewer: Optional[Identity]) -> bool:
        if viewer is None:
            return False
        return viewer.is_admin or str(post["author"]) == viewer.identity_id

    def update(self, post_id, identity: Identity, patch: Dict) -> Dict:
        """
        Update a post.

        An admin sending only a status may change it on any post. Otherwise
        only the owning author may edit, and a new title regenerates the slug.
        """
        post = self._load(post_id)
        changes = {k: v for k, v in patch.items() if v is not None}
        is_owner = str(post["author"]) == identity.identity_id

        if identity.is_admin and not is_owner and set(changes) != {"status"}:
            logger.warning(f"Admin {identity.identity_id} may only change the status of post {post['_id']}")
            raise Forbidden("Access denied")
        if not identity.is_admin and not is_owner:
            logger.warning(f"User {identity.identity_id} denied update of post {post['_id']}")
            raise Forbidden("Access denied")

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        not_text = sorted(k for k, v in changes.items() if not isinstance(v, str))
        if not_text:
            raise ValidationError(f"Fields must be strings: {', '.join(not_text)}")
        if "status" in changes:
            _check_status(changes["status"])

        if identity.is_admin and set(changes) == {"status"}:
            self.store.update_one(
                COLL_POSTS, {"_id": post["_id"]},
                {"$set": {"status": changes["status"], "updated_at": utcnow()}},
            )
            logger.info(f"Admin {identity.identity_id} set post {post['_id']} status to {changes['status']}")
            return self._present_one(self._load(post["_id"]))

        if "title" in changes:
            changes["title"] = changes["title"].strip()
            if not changes["title"]:
                raise ValidationError("Title cannot be empty")
            changes["slug"] = self._unique_slug(changes["title"], exclude_id=post["_id"])
        if "content" in changes and not changes["content"].strip():
            raise ValidationError("Content cannot be empty")
        if "category" in changes:
            _check_category(changes["category"])

        if changes:
            changes["updated_at"] = utcnow()
            self.store.update_one(COLL_POSTS, {"_id": post["_id"]}, {"$set": changes})
        return self._present_one(self._load(post["_id"]))

    def delete(self, post_id, identity: Identity) -> None:
        post = self._load(post_id)
        if not identity.is_admin and str(post["author"]) != identity.identity_id:
            logger.warning(f"User {identity.identity_id} denied delete of post {post['_id']}")
            raise Forbidden("Access denied")

        # A StoreError here aborts before the post itself is touched.
        self.comments.delete_for_post(post["_id"])
        self.store.delete_one(COLL_POSTS, {"_id": post["_id"]})
        logger.info(f"Post {post['_id']} deleted by {identity.identity_id}")

    def toggle_like(self, post_id, caller_id) -> Dict:
        user = parse_object_id(caller_id)
        if user is None:
            raise ValidationError("Invalid user id")
        post = self._load(post_id)
        op = "$pull" if user in post.get("likes", []) else "$addToSet"
        updated = self.store.find_one_and_update(COLL_POSTS, {"_id": post["_id"]}, {op: {"likes": user}})
        if not updated:
            raise NotFound("Blog not found")
        return self._present_one(updated)
