"""API request and response models."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Magazine(BaseModel):
    """A published (or draft) magazine issue belonging to one client."""

    id: str = Field(..., description="Unique magazine identifier")
    client_slug: str = Field(..., description="Tenant the magazine belongs to")
    title: str
    pdf_url: str = Field(..., description="Public URL of the PDF")
    cover_url: Optional[str] = Field(None, description="Public URL of the cover image, if generated")
    page_count: int = 0
    file_size: int = 0
    is_published: bool = True
    sort_order: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    published_at: Optional[str] = None

    @property
    def year(self) -> Optional[int]:
        """Year the gallery groups this issue under."""
        stamp = self.created_at
        if stamp and stamp[:4].isdigit():
            return int(stamp[:4])
        return None


class MagazineListResponse(BaseModel):
    """Response model for the public magazine list."""

    magazines: List[Magazine]
    total: int
    limit: int
    offset: int


class MagazineResponse(BaseModel):
    """Response model for a single magazine."""

    magazine: Magazine


class AdminMagazineListResponse(BaseModel):
    """All magazines for a client, published or not."""

    magazines: List[Magazine]


class MagazineMutationResponse(BaseModel):
    """Response model for upload and update endpoints."""

    success: bool = True
    message: str
    magazine: Optional[Magazine] = None


class MagazineUpdate(BaseModel):
    """Request body for PATCH /api/magazines/{id}."""

    title: Optional[str] = None
    is_published: Optional[bool] = None


class ReorderItem(BaseModel):
    id: str
    sort_order: int


class ReorderRequest(BaseModel):
    """Request body for PATCH /api/magazines/reorder."""

    order: List[ReorderItem]


class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class UserPublic(BaseModel):
    """User as exposed by the API (never includes the password hash)."""

    id: str
    email: str
    role: str = "admin"
    created_at: Optional[str] = None


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    user: UserPublic


class UserResponse(BaseModel):
    user: UserPublic


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str
