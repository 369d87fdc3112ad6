from urllib.parse import urlsplit
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import RedirectResponse
from config import Config

router = APIRouter(tags=["Locale"])

LOCALE_COOKIE = "locale"


def resolve_locale(request: Request) -> str:
    """Cookie value if it is a supported locale, otherwise the default"""
    locale = request.cookies.get(LOCALE_COOKIE)
    if locale in Config.SUPPORTED_LOCALES:
        return locale
    return Config.SUPPORTED_LOCALES[0]


def same_origin_path(referer: str, host: str) -> str:
    """Path and query of the referer when it points back at this host, otherwise '/'"""
    if not referer:
        return "/"
    parts = urlsplit(referer)
    if parts.scheme not in ("", "http", "https") or (parts.netloc and parts.netloc != host):
        return "/"
    path = parts.path or "/"
    # "//evil.example" and "/\evil.example" are read as other hosts by browsers
    if not path.startswith("/") or path.startswith("//") or path.startswith("/\\"):
        return "/"
    return f"{path}?{parts.query}" if parts.query else path


@router.api_route("/locale/{code}", methods=["GET", "POST"])
def switch_locale(code: str, request: Request):
    if code not in Config.SUPPORTED_LOCALES:
        raise HTTPException(status_code=400, detail=f"Unsupported locale '{code}'")

    # Back to where the switch was clicked from
    target = same_origin_path(request.headers.get("referer"), request.url.netloc)
    response = RedirectResponse(url=target, status_code=303)
    response.set_cookie(LOCALE_COOKIE, code, max_age=Config.LOCALE_COOKIE_MAX_AGE, samesite="lax")
    return response
