"""Configuration package."""

from .settings import (
    get_admin_credentials,
    get_api_url,
    get_app_name,
    get_app_version,
    get_audio_disabled,
    get_auth_secret,
    get_client_slug,
    get_data_dir,
    get_load_timeout,
    get_range_requests_enabled,
    get_render_timeout,
    get_sound_url,
)
from .profile_loader import ViewerProfile, list_available_profiles, load_profile
from .profile_manager import get_profile, reset_profile, set_profile

__all__ = [
    'get_admin_credentials',
    'get_api_url',
    'get_app_name',
    'get_app_version',
    'get_audio_disabled',
    'get_auth_secret',
    'get_client_slug',
    'get_data_dir',
    'get_load_timeout',
    'get_range_requests_enabled',
    'get_render_timeout',
    'get_sound_url',
    'ViewerProfile',
    'list_available_profiles',
    'load_profile',
    'get_profile',
    'reset_profile',
    'set_profile',
]
