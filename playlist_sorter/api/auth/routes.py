from typing import Optional

from fastapi import APIRouter, Header

from playlist_sorter.spotify import auth_status, bearer_token_from_header, required_scopes

router = APIRouter()


@router.get("/status")
def get_auth_status(authorization: Optional[str] = Header(default=None)) -> dict:
    """
    Report whether the request carries a bearer token from the session
    provider. The token itself is only checked by Spotify on first use.
    """
    token = bearer_token_from_header(authorization)
    return {
        "status": auth_status(token).value,
        "scopes": required_scopes(),
    }
