from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile as FormFile

import config
from auth import Credentials, Identity, get_credentials, get_current_user, get_optional_user, require_admin
from comments import CommentService
from dashboard import DashboardService
from database import ContentStore, db, get_store
from exceptions import BlogError, StoreError, ValidationError
from logger import get_logger, setup_logging
from posts import PostService
from schemas import (
    CommentPayload,
    CreatePostPayload,
    CreateUserPayload,
    LoginPayload,
    RegisterPayload,
    StatusPayload,
    UpdateRolePayload,
    parse_payload,
)
from site_settings import SiteSettingsStore
from uploads import AssetStorage, get_asset_storage, store_many
from users import UserService

setup_logging()
logger = get_logger(__name__)

# App and CORS
app = FastAPI(title="Blog API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error responses
@app.exception_handler(BlogError)
async def blog_error_handler(request: Request, exc: BlogError):
    body = {"success": False, "message": exc.message}
    if isinstance(exc, StoreError):
        logger.error(f"{request.method} {request.url.path}: {exc.message} ({exc.details})")
        if config.is_development() and exc.details:
            body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


# Admin bootstrap (optional via env)
if db is not None and config.ADMIN_EMAIL and config.ADMIN_PASSWORD:
    UserService(ContentStore(db), get_credentials()).ensure_admin(
        config.ADMIN_EMAIL, config.ADMIN_PASSWORD, config.ADMIN_NAME
    )


@app.get("/")
def read_root():
    return {"message": "Blog API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": config.DATABASE_NAME or "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if db is not None:
        try:
            response["collections"] = ContentStore(db).collection_names()
            response["database"] = "✅ Connected"
            response["connection_status"] = "Connected"
        except StoreError as e:
            response["database"] = f"⚠️ Error: {str(e.details)[:80]}"
    return response


# Auth routes
@app.post("/api/auth/register", status_code=201)
async def register(payload: RegisterPayload, store: ContentStore = Depends(get_store),
                   credentials: Credentials = Depends(get_credentials)):
    user = UserService(store, credentials).register(payload.name, payload.email, payload.password)
    return {"message": "User registered", "user": user}


@app.post("/api/auth/login")
async def login(payload: LoginPayload, store: ContentStore = Depends(get_store),
                credentials: Credentials = Depends(get_credentials)):
    result = UserService(store, credentials).login(payload.email, payload.password)
    return {"message": "Successfully logged in", **result}


@app.get("/api/auth/me")
async def get_me(identity: Identity = Depends(get_current_user), store: ContentStore = Depends(get_store),
                 credentials: Credentials = Depends(get_credentials)):
    return UserService(store, credentials).me(identity)


# Blog routes
@app.get("/api/blog")
async def list_blogs(category: Optional[str] = None, author: Optional[str] = None,
                     identity: Optional[Identity] = Depends(get_optional_user),
                     store: ContentStore = Depends(get_store)):
    include_unpublished = identity is not None and (
        identity.is_admin or (author is not None and author == identity.identity_id)
    )
    blogs = PostService(store).list(category, author, include_unpublished)
    logger.info(f"Returning {len(blogs)} blogs for {identity.role if identity else 'non-authenticated'} user")
    return blogs


# Must be registered before /api/blog/{key}
@app.get("/api/blog/admin")
async def list_blogs_admin(category: Optional[str] = None, author: Optional[str] = None,
                           admin: Identity = Depends(require_admin),
                           store: ContentStore = Depends(get_store)):
    return PostService(store).list(category, author, include_unpublished=True)


@app.post("/api/blog", status_code=201)
async def create_blog(request: Request, identity: Identity = Depends(get_current_user),
                      store: ContentStore = Depends(get_store),
                      storage: AssetStorage = Depends(get_asset_storage)):
    """Create a post from a JSON body, or from form fields with an optional `image` file."""
    if request.headers.get("content-type", "").startswith("multipart/form-data"):
        form = await request.form()
        payload = parse_payload(CreatePostPayload, {k: v for k, v in form.items() if isinstance(v, str)})
        upload = form.get("image")
        if isinstance(upload, FormFile) and upload.filename:
            stored = storage.store(await upload.read(), upload.content_type, config.DEFAULT_UPLOAD_FOLDER)
            payload.image = stored["url"]
    else:
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Request body must be JSON or multipart form data")
        payload = parse_payload(CreatePostPayload, body)

    blog = PostService(store).create(
        identity.identity_id, payload.title, payload.content, payload.category, payload.image
    )
    return {"message": "Blog created", "blog": blog}


@app.get("/api/blog/{key}")
async def get_blog(key: str, identity: Optional[Identity] = Depends(get_optional_user),
                   store: ContentStore = Depends(get_store)):
    return PostService(store).get(key, identity)


@app.put("/api/blog/{blog_id}")
async def update_blog(blog_id: str, payload: Dict[str, Any] = Body(...),
                      identity: Identity = Depends(get_current_user),
                      store: ContentStore = Depends(get_store)):
    blog = PostService(store).update(blog_id, identity, payload)
    return {"message": "Blog updated", "blog": blog}


@app.patch("/api/blog/{blog_id}/status")
async def update_blog_status(blog_id: str, payload: StatusPayload,
                             admin: Identity = Depends(require_admin),
                             store: ContentStore = Depends(get_store)):
    blog = PostService(store).update(blog_id, admin, {"status": payload.status})
    return {"message": "Blog status updated", "blog": blog}


@app.delete("/api/blog/comments/{comment_id}")
async def delete_comment(comment_id: str, identity: Identity = Depends(get_current_user),
                         store: ContentStore = Depends(get_store)):
    removed = CommentService(store).delete(comment_id, identity.identity_id)
    return {"message": "Comment and its replies deleted successfully", "deleted": removed}


@app.delete("/api/blog/{blog_id}")
async def delete_blog(blog_id: str, identity: Identity = Depends(get_current_user),
                      store: ContentStore = Depends(get_store)):
    PostService(store).delete(blog_id, identity)
    return {"message": "Blog deleted successfully"}


@app.post("/api/blog/{blog_id}/like")
async def toggle_like(blog_id: str, identity: Identity = Depends(get_current_user),
                      store: ContentStore = Depends(get_store)):
    return PostService(store).toggle_like(blog_id, identity.identity_id)


@app.post("/api/blog/{blog_id}/comments", status_code=201)
async def add_comment(blog_id: str, payload: CommentPayload, identity: Identity = Depends(get_current_user),
                      store: ContentStore = Depends(get_store)):
    return CommentService(store).add_comment(blog_id, identity.identity_id, payload.content)


# The post id in these paths is informational; the comment determines the thread.
@app.post("/api/blog/{blog_id}/comments/{comment_id}/like")
async def toggle_comment_like(blog_id: str, comment_id: str, identity: Identity = Depends(get_current_user),
                              store: ContentStore = Depends(get_store)):
    likes = CommentService(store).toggle_like(comment_id, identity.identity_id)
    return {"likes": likes, "likes_count": len(likes)}


@app.post("/api/blog/{blog_id}/comments/{comment_id}/replies", status_code=201)
async def add_reply(blog_id: str, comment_id: str, payload: CommentPayload,
                    identity: Identity = Depends(get_current_user),
                    store: ContentStore = Depends(get_store)):
    return CommentService(store).add_reply(comment_id, identity.identity_id, payload.content)


# Admin user management
@app.get("/api/users")
async def list_users(admin: Identity = Depends(require_admin), store: ContentStore = Depends(get_store),
                     credentials: Credentials = Depends(get_credentials)):
    return {"success": True, "users": UserService(store, credentials).list()}


@app.get("/api/users/{user_id}")
async def get_user(user_id: str, admin: Identity = Depends(require_admin),
                   store: ContentStore = Depends(get_store),
                   credentials: Credentials = Depends(get_credentials)):
    return {"success": True, "user": UserService(store, credentials).get(user_id)}


@app.post("/api/users", status_code=201)
async def create_user(payload: CreateUserPayload, admin: Identity = Depends(require_admin),
                      store: ContentStore = Depends(get_store),
                      credentials: Credentials = Depends(get_credentials)):
    user = UserService(store, credentials).create(payload.name, payload.email, payload.password, payload.role)
    return {"success": True, "message": "User created successfully", "user": user}


@app.patch("/api/users/{user_id}/role")
async def update_user_role(user_id: str, payload: UpdateRolePayload, admin: Identity = Depends(require_admin),
                           store: ContentStore = Depends(get_store),
                           credentials: Credentials = Depends(get_credentials)):
    user = UserService(store, credentials).update_role(user_id, payload.role)
    return {"success": True, "message": f"User role updated to {payload.role}", "user": user}


@app.delete("/api/users/{user_id}")
async def delete_user(user_id: str, admin: Identity = Depends(require_admin),
                      store: ContentStore = Depends(get_store),
                      credentials: Credentials = Depends(get_credentials)):
    UserService(store, credentials).delete(user_id, admin)
    return {"success": True, "message": "User deleted successfully"}


# Dashboard
@app.get("/api/dashboard/stats")
async def dashboard_stats(admin: Identity = Depends(require_admin), store: ContentStore = Depends(get_store)):
    return DashboardService(store).stats()


@app.get("/api/dashboard/activity")
async def dashboard_activity(admin: Identity = Depends(require_admin), store: ContentStore = Depends(get_store)):
    activities = DashboardService(store).activity_feed()
    return {"success": True, "activities": activities}


@app.get("/api/dashboard/popular-blogs")
async def dashboard_popular_blogs(admin: Identity = Depends(require_admin),
                                  store: ContentStore = Depends(get_store)):
    return {"success": True, "popular_blogs": DashboardService(store).popular_posts()}


# Site settings
@app.get("/api/settings")
async def get_settings(store: ContentStore = Depends(get_store)):
    return SiteSettingsStore(store).get()


@app.put("/api/settings")
async def replace_settings(payload: Dict[str, Any] = Body(...), admin: Identity = Depends(require_admin),
                           store: ContentStore = Depends(get_store)):
    return SiteSettingsStore(store).replace(payload)


@app.patch("/api/settings")
async def update_settings(payload: Dict[str, Any] = Body(...), admin: Identity = Depends(require_admin),
                          store: ContentStore = Depends(get_store)):
    return SiteSettingsStore(store).update(payload)


# Uploads
@app.post("/api/upload/upload-single")
async def upload_single(image: UploadFile = File(...), identity: Identity = Depends(get_current_user),
                        storage: AssetStorage = Depends(get_asset_storage)):
    data = await image.read()
    stored = storage.store(data, image.content_type, config.DEFAULT_UPLOAD_FOLDER)
    return {"success": True, "files": [stored]}


@app.post("/api/upload/upload-multiple")
async def upload_multiple(files: List[UploadFile] = File(...), admin: Identity = Depends(require_admin),
                          storage: AssetStorage = Depends(get_asset_storage)):
    items = [(await f.read(), f.content_type) for f in files]
    return {"success": True, "files": store_many(storage, items, config.MULTI_UPLOAD_FOLDER)}


if __name__ == "__main__":
    import uvicorn
    config.validate_settings()
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
