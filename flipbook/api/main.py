"""FastAPI application serving magazines to flipbook viewers.

Public endpoints list a client's published magazines; admin endpoints
(token from ``Authorization: Bearer`` or the ``token`` cookie) upload,
update, reorder and delete them.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Query, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from ..config.settings import get_app_version, get_auth_secret, get_data_dir
from .auth import TOKEN_COOKIE, TOKEN_EXPIRES_IN_SECONDS, AuthService, extract_token, hash_password, public_user
from .models import (
    AdminMagazineListResponse,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    Magazine,
    MagazineListResponse,
    MagazineMutationResponse,
    MagazineResponse,
    MagazineUpdate,
    MessageResponse,
    ReorderRequest,
    UserResponse,
)
from .pdf_info import PDFInfoError, generate_cover_image, read_pdf_metadata, validate_pdf
from .storage import FileStorage, MagazineDatabase, StorageError

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 100 * 1024 * 1024


def _db(request: Request) -> MagazineDatabase:
    return request.app.state.db


def _storage(request: Request) -> FileStorage:
    return request.app.state.storage


def get_current_user(request: Request, authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    """Resolve the logged-in user from bearer header or cookie."""
    token = extract_token(authorization, request.cookies.get(TOKEN_COOKIE))
    return request.app.state.auth.validate_token(token)


def _remove_stored(storage: FileStorage, url: Optional[str]) -> None:
    key = storage.key_from_url(url)
    if key is None:
        return
    try:
        storage.delete(key)
    except (OSError, StorageError) as e:
        logger.error(f"Failed to delete stored file {key}: {e}")


def create_app(
    data_dir: Optional[Path] = None,
    secret: Optional[str] = None,
    public_url: str = "/files",
    secure_cookies: bool = False,
    admin_email: Optional[str] = None,
    admin_password: Optional[str] = None,
) -> FastAPI:
    """Build the API application.

    Args:
        data_dir: Directory for the SQLite database and uploaded files
            (default: FLIPBOOK_DATA_DIR)
        secret: JWT signing secret (default: FLIPBOOK_AUTH_SECRET)
        public_url: URL prefix stored files are served under
        secure_cookies: Mark the login cookie Secure/SameSite=None (HTTPS embeds)
        admin_email: Create or update this admin user on startup
        admin_password: Password for ``admin_email``

    Returns:
        Configured FastAPI app
    """
    data_dir = Path(data_dir) if data_dir is not None else get_data_dir()
    db = MagazineDatabase(data_dir / "flipbook.db")
    storage = FileStorage(data_dir / "files", public_url)
    if admin_email and admin_password:
        db.create_user(admin_email, hash_password(admin_password), role="admin")

    app = FastAPI(
        title="Flipbook Magazine API",
        description="Multi-tenant magazine catalogue for the flipbook viewer",
        version=get_app_version(),
    )
    app.state.db = db
    app.state.storage = storage
    app.state.auth = AuthService(db, secret or get_auth_secret())

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - t0) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response

    @app.get("/")
    async def root():
        return {"message": "Flipbook Magazine API", "version": app.version, "docs": "/docs"}

    # Auth

    @app.post("/api/auth/login", response_model=LoginResponse)
    def login(body: LoginRequest, response: Response, request: Request):
        token, user = request.app.state.auth.login(body.email, body.password)
        response.set_cookie(
            TOKEN_COOKIE,
            token,
            max_age=TOKEN_EXPIRES_IN_SECONDS,
            httponly=True,
            secure=secure_cookies,
            samesite="none" if secure_cookies else "lax",
        )
        return LoginResponse(token=token, user=user)

    @app.post("/api/auth/logout", response_model=MessageResponse)
    def logout(response: Response):
        response.delete_cookie(TOKEN_COOKIE)
        return MessageResponse(message="Logged out")

    @app.get("/api/auth/me", response_model=UserResponse)
    def me(user: Dict[str, Any] = Depends(get_current_user)):
        return UserResponse(user=public_user(user))

    @app.post("/api/auth/change-password", response_model=MessageResponse)
    def change_password(
        body: ChangePasswordRequest,
        request: Request,
        user: Dict[str, Any] = Depends(get_current_user),
    ):
        request.app.state.auth.change_password(user, body.current_password, body.new_password)
        return MessageResponse(message="Password changed")

    # Public magazine endpoints

    @app.get("/api/magazines", response_model=MagazineListResponse)
    def list_magazines(
        request: Request,
        client: Optional[str] = None,
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
    ):
        if not client:
            raise HTTPException(status_code=400, detail="Query parameter 'client' is required")
        rows, total = _db(request).list_published(client, limit=limit, offset=offset)
        return MagazineListResponse(
            magazines=[Magazine(**row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    @app.get("/api/magazines/latest", response_model=MagazineResponse)
    def latest_magazine(request: Request, client: Optional[str] = None):
        if not client:
            raise HTTPException(status_code=400, detail="Query parameter 'client' is required")
        row = _db(request).latest_published(client)
        if row is None:
            raise HTTPException(status_code=404, detail="No magazine found")
        return MagazineResponse(magazine=Magazine(**row))

    @app.get("/api/magazines/admin/all", response_model=AdminMagazineListResponse)
    def all_magazines(
        request: Request,
        client: Optional[str] = None,
        user: Dict[str, Any] = Depends(get_current_user),
    ):
        rows = _db(request).list_all(client)
        return AdminMagazineListResponse(magazines=[Magazine(**row) for row in rows])

    @app.get("/api/magazines/{magazine_id}", response_model=MagazineResponse)
    def get_magazine(magazine_id: str, request: Request):
        row = _db(request).get_magazine(magazine_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Magazine not found")
        return MagazineResponse(magazine=Magazine(**row))

    # Admin magazine endpoints

    @app.post("/api/magazines", response_model=MagazineMutationResponse, status_code=201)
    async def upload_magazine(
        request: Request,
        file: UploadFile = File(...),
        title: str = Form(...),
        client_slug: str = Form(...),
        user: Dict[str, Any] = Depends(get_current_user),
    ):
        """Upload a PDF, generate its cover and register the magazine.

        Stored files are removed again if registration fails.
        """
        data = await file.read()
        if len(data) > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=413, detail="File exceeds 100 MB")
        if not title.strip() or not client_slug.strip():
            raise HTTPException(status_code=400, detail="Title and client_slug are required")
        if not validate_pdf(data):
            raise HTTPException(status_code=400, detail="File is not a valid PDF")

        try:
            metadata = read_pdf_metadata(data)
        except PDFInfoError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        storage = _storage(request)
        pdf_url = None
        cover_url = None
        try:
            _, pdf_url = storage.upload(data, file.filename or "magazine.pdf", f"magazines/{client_slug}")
            _, cover_url = storage.upload(generate_cover_image(data), "cover.jpg", f"covers/{client_slug}")
            row = _db(request).insert_magazine(
                client_slug=client_slug.strip(),
                title=title.strip(),
                pdf_url=pdf_url,
                cover_url=cover_url,
                page_count=metadata.page_count,
                file_size=len(data),
            )
        except Exception as e:
            logger.error(f"Upload failed for {file.filename}: {e}")
            _remove_stored(storage, pdf_url)
            _remove_stored(storage, cover_url)
            raise HTTPException(status_code=500, detail="Upload failed") from e

        logger.info(f"{user['email']} uploaded '{title}' ({metadata.page_count} pages) for {client_slug}")
        return MagazineMutationResponse(message="Magazine uploaded", magazine=Magazine(**row))

    @app.patch("/api/magazines/reorder", response_model=MessageResponse)
    def reorder_magazines(
        body: ReorderRequest,
        request: Request,
        user: Dict[str, Any] = Depends(get_current_user),
    ):
        updated = _db(request).reorder((item.id, item.sort_order) for item in body.order)
        return MessageResponse(message=f"Order updated for {updated} magazines")

    @app.patch("/api/magazines/{magazine_id}", response_model=MagazineMutationResponse)
    def update_magazine(
        magazine_id: str,
        body: MagazineUpdate,
        request: Request,
        user: Dict[str, Any] = Depends(get_current_user),
    ):
        if body.title is None and body.is_published is None:
            raise HTTPException(status_code=400, detail="No updates given")
        row = _db(request).update_magazine(magazine_id, title=body.title, is_published=body.is_published)
        if row is None:
            raise HTTPException(status_code=404, detail="Magazine not found")
        return MagazineMutationResponse(message="Magazine updated", magazine=Magazine(**row))

    @app.delete("/api/magazines/{magazine_id}", response_model=MessageResponse)
    def delete_magazine(
        magazine_id: str,
        request: Request,
        user: Dict[str, Any] = Depends(get_current_user),
    ):
        row = _db(request).delete_magazine(magazine_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Magazine not found")
        storage = _storage(request)
        _remove_stored(storage, row["pdf_url"])
        _remove_stored(storage, row["cover_url"])
        return MessageResponse(message="Magazine deleted")

    # Stored files

    @app.get("/files/{key:path}")
    def stored_file(key: str, request: Request):
        try:
            path = _storage(request).path_for(key)
        except StorageError as e:
            raise HTTPException(status_code=404, detail="File not found") from e
        if not path.is_file():
            raise HTTPException(status_code=404, detail="File not found")
        return FileResponse(path)

    return app
