"""
Seed the database with sample blog posts.

Usage:
    python seed.py                 # add sample posts
    python seed.py --reset         # clear posts and comments first
    python seed.py --author-email writer@example.com
"""

import argparse
import sys

from auth import Credentials
from database import COLL_COMMENTS, COLL_POSTS, COLL_USERS, ContentStore, db, parse_object_id
from exceptions import BlogError
from logger import get_logger, setup_logging
from posts import PostService
from users import UserService, normalize_email

logger = get_logger(__name__)

SAMPLE_IMAGE = "https://picsum.photos/1200/800"

SAMPLE_POSTS = [
    ("The Future of Artificial Intelligence", "Exploring the latest advancements in AI technology...", "tech", "published"),
    ("Morning Routine for Productivity", "Discover the best morning habits for peak performance...", "lifestyle", "published"),
    ("Modern Teaching Methods", "Innovative approaches to education in the digital age...", "education", "published"),
    ("Mental Health Awareness", "Understanding and managing mental health challenges...", "health", "published"),
    ("Blockchain Technology Explained", "Comprehensive guide to understanding blockchain...", "tech", "draft"),
    ("Sustainable Living Tips", "How to reduce your environmental footprint...", "lifestyle", "published"),
    ("Online Learning Platforms", "Top platforms for remote education...", "education", "published"),
    ("Nutrition Basics", "Building balanced meals without the guesswork...", "health", "published"),
    ("Getting Started with Python", "A gentle introduction to writing your first scripts...", "tech", "published"),
    ("Minimalist Home Design", "Creating calm spaces with fewer things...", "lifestyle", "draft"),
]


def seed(store: ContentStore, author_email: str, reset: bool = False) -> int:
    """Insert the sample posts for the given author, creating the author if needed."""
    if reset:
        comments = store.delete_many(COLL_COMMENTS, {})
        posts = store.delete_many(COLL_POSTS, {})
        logger.info(f"Cleared {posts} posts and {comments} comments")

    author = store.find_one(COLL_USERS, {"email": normalize_email(author_email)})
    if author:
        author_id = str(author["_id"])
    else:
        created = UserService(store, Credentials()).create("Demo Author", author_email, "changeme")
        author_id = created["_id"]
        logger.info(f"Created demo author {author_email} (password 'changeme')")

    service = PostService(store)
    for title, content, category, status in SAMPLE_POSTS:
        post = service.create(author_id, title, content, category, SAMPLE_IMAGE)
        if status == "published":
            store.update_one(COLL_POSTS, {"_id": parse_object_id(post["_id"])}, {"$set": {"status": "published"}})
    logger.info(f"Seeded {len(SAMPLE_POSTS)} posts")
    return len(SAMPLE_POSTS)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed the blog database with sample posts.")
    parser.add_argument("--reset", action="store_true", help="delete all posts and comments first")
    parser.add_argument("--author-email", default="author@example.com",
                        help="email of the user the posts are attributed to")
    args = parser.parse_args(argv)

    setup_logging()
    if db is None:
        logger.error("DATABASE_URL is not set; nothing to seed")
        return 1
    try:
        seed(ContentStore(db), args.author_email, reset=args.reset)
    except BlogError as e:
        logger.error(f"Seeding failed: {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
