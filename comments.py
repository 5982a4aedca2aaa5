"""
Comment Thread Engine

Comments form a reply forest per post, stored flat in the "comment"
collection. Each node keeps id references both ways:

- blog: the post the whole thread belongs to (same value at every depth)
- parent_comment / replies: the link to its parent and its ordered children
- depth: 0 for top-level comments, parent depth + 1 for replies

Deletes are cascades made of independent store calls (no transactions).
A comment is removed subtree first, then detached from its parent (or the
post), then deleted itself. Targets that are already gone count as done,
so repeating a failed delete is safe.
"""

from collections import deque
from typing import Dict, List, Optional

from bson import ObjectId

from database import COLL_COMMENTS, COLL_POSTS, ContentStore, parse_object_id, utcnow
from exceptions import Forbidden, NotFound, ValidationError
from logger import get_logger

logger = get_logger(__name__)


def _require_text(content: Optional[str]) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Comment content is required")
    return text


def _require_user_id(user_id) -> ObjectId:
    oid = parse_object_id(user_id)
    if oid is None:
        raise ValidationError("Invalid user id")
    return oid


class CommentService:
    """Adds, likes, deletes and assembles threaded comments."""

    def __init__(self, store: ContentStore):
        self.store = store

    def _load(self, comment_id) -> Dict:
        comment = self.store.find_by_id(COLL_COMMENTS, comment_id)
        if not comment:
            raise NotFound("Comment not found")
        return comment

    def _present(self, comment: Dict, name: Optional[str] = None) -> Dict:
        parent = comment.get("parent_comment")
        likes = comment.get("likes", [])
        return {
            "_id": str(comment["_id"]),
            "blog": str(comment["blog"]),
            "user": {"_id": str(comment["user"]), "name": name},
            "content": comment["content"],
            "likes": [str(l) for l in likes],
            "likes_count": len(likes),
            "parent_comment": str(parent) if parent else None,
            "depth": comment.get("depth", 0),
            "replies": [str(r) for r in comment.get("replies", [])],
            "created_at": comment.get("created_at"),
        }

    def _present_one(self, comment: Dict) -> Dict:
        names = self.store.names_by_id([comment["user"]])
        return self._present(comment, names.get(comment["user"]))

    def add_comment(self, post_id, author_id, content: str) -> Dict:
        """Attach a new top-level comment to a post."""
        text = _require_text(content)
        user = _require_user_id(author_id)
        post = self.store.find_by_id(COLL_POSTS, post_id, projection={"_id": 1})
        if not post:
            raise NotFound("Blog not found")

        doc = {
            "blog": post["_id"],
            "user": user,
            "content": text,
            "likes": [],
            "parent_comment": None,
            "replies": [],
            "depth": 0,
            "created_at": utcnow(),
        }
        doc["_id"] = self.store.insert(COLL_COMMENTS, doc)
        self.store.update_one(COLL_POSTS, {"_id": post["_id"]}, {"$push": {"comments": doc["_id"]}})
        logger.info(f"Comment {doc['_id']} added to post {post['_id']}")
        return self._present_one(doc)

    def add_reply(self, parent_comment_id, author_id, content: str) -> Dict:
        """Attach a reply under an existing comment. The post id is taken from the parent."""
        text = _require_text(content)
        user = _require_user_id(author_id)
        parent = self._load(parent_comment_id)

        doc = {
            "blog": parent["blog"],
            "user": user,
            "content": text,
            "likes": [],
            "parent_comment": parent["_id"],
            "replies": [],
            "depth": parent.get("depth", 0) + 1,
            "created_at": utcnow(),
        }
        doc["_id"] = self.store.insert(COLL_COMMENTS, doc)
        self.store.update_one(COLL_COMMENTS, {"_id": parent["_id"]}, {"$push": {"replies": doc["_id"]}})
        logger.info(f"Reply {doc['_id']} added under comment {parent['_id']} (depth {doc['depth']})")
        return self._present_one(doc)

    def toggle_like(self, comment_id, caller_id) -> List[str]:
        """Add or remove the caller from the comment's likers; returns the new liker ids."""
        user = _require_user_id(caller_id)
        comment = self._load(comment_id)
        op = "$pull" if user in comment.get("likes", []) else "$addToSet"
        updated = self.store.find_one_and_update(
            COLL_COMMENTS, {"_id": comment["_id"]}, {op: {"likes": user}}
        )
        if not updated:
            raise NotFound("Comment not found")
        return [str(l) for l in updated.get("likes", [])]

    def subtree_ids(self, root_id: ObjectId) -> List[ObjectId]:
        """Ids of every descendant of root_id, found by walking parent_comment links breadth first."""
        found = []
        seen = {root_id}
        frontier = [root_id]
        while frontier:
            children = self.store.find_many(
                COLL_COMMENTS, {"parent_comment": {"$in": frontier}}, projection={"_id": 1}
            )
            frontier = []
            for child in children:
                if child["_id"] not in seen:
                    seen.add(child["_id"])
                    found.append(child["_id"])
                    frontier.append(child["_id"])
        return found

    def delete(self, comment_id, caller_id) -> int:
        """
        Delete a comment and all of its replies.

        Only the comment's author may delete it. Returns the number of
        comment records removed.
        """
        comment = self._load(comment_id)
        if str(comment["user"]) != str(caller_id):
            logger.warning(f"User {caller_id} tried to delete comment {comment['_id']} they do not own")
            raise Forbidden("Not authorized to delete this comment")

        descendants = self.subtree_ids(comment["_id"])
        removed = 0
        if descendants:
            removed += self.store.delete_many(COLL_COMMENTS, {"_id": {"$in": descendants}})

        parent = comment.get("parent_comment")
        if parent:
            matched = self.store.update_one(
                COLL_COMMENTS, {"_id": parent}, {"$pull": {"replies": comment["_id"]}}
            )
        else:
            matched = self.store.update_one(
                COLL_POSTS, {"_id": comment["blog"]}, {"$pull": {"comments": comment["_id"]}}
            )
        if not matched:
            logger.warning(f"Parent of comment {comment['_id']} is already gone; nothing to detach from")

        removed += self.store.delete_one(COLL_COMMENTS, {"_id": comment["_id"]})
        logger.info(f"Deleted comment {comment['_id']} and {len(descendants)} replies")
        return removed

    def delete_for_post(self, post_id: ObjectId) -> int:
        """Remove every comment of a post, at any depth, in one bulk delete."""
        removed = self.store.delete_many(COLL_COMMENTS, {"blog": post_id})
        logger.info(f"Removed {removed} comments of post {post_id}")
        return removed

    def thread(self, post: Dict) -> List[Dict]:
        """
        Assemble the nested comment thread of a post.

        Top-level comments follow the post's comment order and replies follow
        each parent's reply order. Nodes whose parent is missing are left out.
        """
        docs = self.store.find_many(
            COLL_COMMENTS, {"blog": post["_id"]}, sort=[("created_at", 1), ("_id", 1)]
        )
        if not docs:
            return []
        names = self.store.names_by_id(d["user"] for d in docs)
        by_id = {d["_id"]: d for d in docs}
        nodes = {d["_id"]: self._present(d, names.get(d["user"])) for d in docs}

        attached = set()
        roots = []
        for cid in post.get("comments", []):
            if cid in nodes and cid not in attached:
                attached.add(cid)
                roots.append(cid)

        queue = deque(roots)
        while queue:
            cid = queue.popleft()
            children = []
            for rid in by_id[cid].get("replies", []):
                if rid in nodes and rid not in attached:
                    attached.add(rid)
                    children.append(nodes[rid])
                    queue.append(rid)
            nodes[cid]["replies"] = children
        return [nodes[cid] for cid in roots]
