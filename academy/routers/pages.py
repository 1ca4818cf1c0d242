from pathlib import Path

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse

from academy.core.route_policy import is_public_path, match_route, navigation_for


router = APIRouter(tags=['Pages'])

FRONTEND_DIST = Path('frontend') / 'dist'


def _shell(request: Request):
    """Serve the built frontend shell, or a route descriptor when no build is present."""
    path = request.url.path
    rule = match_route(path)
    if rule is None and not is_public_path(path):
        raise HTTPException(status_code=404, detail='Not Found')
    index_file = FRONTEND_DIST / 'index.html'
    if index_file.exists():
        return FileResponse(index_file)
    actor = getattr(request.state, 'actor', None)
    role = actor.role if actor is not None else None
    return JSONResponse(
        {
            'route': path,
            'screen': rule.label if rule else None,
            'role': role,
            'navigation': navigation_for(role),
        }
    )


@router.get('/', include_in_schema=False)
def landing_page(request: Request):
    return _shell(request)


@router.get('/login', include_in_schema=False)
@router.get('/forgot-password', include_in_schema=False)
@router.get('/index', include_in_schema=False)
@router.get('/settings', include_in_schema=False)
@router.get('/dashboard', include_in_schema=False)
def public_or_top_level_page(request: Request):
    return _shell(request)


@router.get('/dashboard/{section}', include_in_schema=False)
@router.get('/dashboard/attendance/{session_id}', include_in_schema=False)
def dashboard_page(request: Request):
    return _shell(request)
